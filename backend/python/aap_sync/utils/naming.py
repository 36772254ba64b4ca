import re


def to_slug(name: str) -> str:
    """Lower-case a display name and replace whitespace runs with a hyphen"""
    return re.sub(r"\s+", "-", (name or "").strip()).lower()
