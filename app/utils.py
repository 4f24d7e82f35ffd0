"""
Utility functions for the application
"""
import re

_SEPARATORS = re.compile(r"[\s_]+")


def normalize_title(title: str) -> str:
    """
    Normalize Wikipedia title into the key used for node identity

    Underscores and whitespace runs collapse to a single space, the result is
    trimmed, and the first character of every word is uppercased. The rest of
    each word is left as is, so "iPhone" becomes "IPhone" but "NASA" stays.

    Args:
        title: Raw Wikipedia page title

    Returns:
        Normalized title, or "" if nothing but separators was given
    """
    collapsed = _SEPARATORS.sub(" ", title).strip()
    if not collapsed:
        return ""
    return " ".join(word[0].upper() + word[1:] for word in collapsed.split(" "))
