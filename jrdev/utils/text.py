import re


def kebab_case(sentence: str) -> str:
    slug = re.sub(r"\s+", "-", sentence.strip().lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return re.sub(r"-{2,}", "-", slug).strip("-")
