"""OpenAI-compatible chat completion client used for small helper tasks.

The hosted model is treated as unreliable: every helper here either returns
a default on failure or lets the caller supply one.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from openai import OpenAI

from jrdev.core.config import settings

logger = logging.getLogger(__name__)

MISSING_FILES_SYSTEM_PROMPT = (
    "You are an expert code assistant. Analyze the user's request and the output "
    "from a previous attempt to fulfill it. The previous attempt failed to make any "
    "changes. Identify any specific file paths mentioned in the user's request that "
    "seem necessary for the task but might have been missing or inaccessible during "
    "the first attempt. List only the suspected missing file paths, one per line. "
    "If no files seem to be missing, return an empty response. Do not add any "
    "explanation or commentary, only the file paths."
)

PR_DESCRIPTION_SYSTEM_PROMPT = (
    "You write pull request descriptions. Summarize the code changes described in "
    "the coding agent log below in a short markdown description: a one sentence "
    "summary followed by a bullet list of the changes. Mention any commands the "
    "reviewer needs to run. Do not include the raw log."
)

# Keep prompts small; only the end of a long agent log is informative
MAX_LOG_CHARS = 12000


def tail(text: str, limit: int = MAX_LOG_CHARS) -> str:
    return text if len(text) <= limit else text[-limit:]


class LLMService:
    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        self._client = client
        self.model = model or settings.LLM_MODEL

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                base_url=settings.LLM_BASE_URL,
                api_key=settings.LLM_API_KEY,
                timeout=settings.LLM_TIMEOUT_SECONDS,
            )
        return self._client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def identify_missing_files(self, initial_prompt: str, job_output: str) -> List[str]:
        """Suggest file paths the first attempt may have lacked. Returns [] on any failure."""
        try:
            content = self.complete(
                MISSING_FILES_SYSTEM_PROMPT,
                f"User Request:\n---\n{initial_prompt}\n---\n\n"
                f"Job Output Log:\n---\n{tail(job_output)}\n---",
                max_tokens=200,
            )
        except Exception:
            logger.exception("Missing-file analysis failed")
            return []

        files = []
        for line in content.splitlines():
            path = line.strip().strip("`").lstrip("-* ").strip()
            if path and path not in files:
                files.append(path)
        return files

    def generate_pr_description(self, job_output: str) -> str:
        description = self.complete(
            PR_DESCRIPTION_SYSTEM_PROMPT, tail(job_output), temperature=0.3, max_tokens=600
        )
        if not description:
            raise ValueError("Empty pull request description")
        return description
