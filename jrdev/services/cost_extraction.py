"""Session cost extraction from coding-agent logs."""

from __future__ import annotations

import logging
import re
from typing import Optional

from jrdev.services.llm_service import LLMService, tail

logger = logging.getLogger(__name__)

# e.g. "Tokens: 12k sent, 1.2k received. Cost: $0.03 message, $0.07 session."
COST_PATTERN = re.compile(
    r"Cost:\s*\$(?P<message>\d+(?:\.\d+)?)\s*message,\s*\$(?P<session>\d+(?:\.\d+)?)\s*session"
)
NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")

COST_SYSTEM_PROMPT = (
    "Extract the total session cost in US dollars from the log below. "
    "Reply with the number only, for example 0.42. Reply 0 if there is no cost."
)


def parse_cost_marker(log_text: str) -> Optional[float]:
    """Return the session figure of the last cost marker, or None when absent."""
    matches = COST_PATTERN.findall(log_text or "")
    if not matches:
        return None
    _, session = matches[-1]
    return float(session)


class CostExtractor:
    def __init__(self, llm: Optional[LLMService] = None):
        self.llm = llm

    def extract(self, log_text: str) -> float:
        cost = parse_cost_marker(log_text)
        if cost is not None:
            return cost
        if not log_text or self.llm is None:
            return 0.0
        return self._extract_with_llm(log_text)

    def _extract_with_llm(self, log_text: str) -> float:
        try:
            reply = self.llm.complete(COST_SYSTEM_PROMPT, tail(log_text), max_tokens=10)
        except Exception:
            logger.exception("Cost extraction fallback failed")
            return 0.0

        match = NUMBER_PATTERN.search(reply or "")
        if not match:
            logger.warning("Could not parse cost from model reply %r", reply)
            return 0.0
        value = float(match.group(0))
        return value if value > 0 else 0.0
