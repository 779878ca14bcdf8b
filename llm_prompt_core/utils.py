"""
Utility functions for the LLM prompt system.

String formatting helpers and extraction of JSON payloads from model replies.
"""

from __future__ import annotations

import json
import re
from typing import Any, List


def list_to_conjunction(L: List[str]) -> str:
    """
    Takes a list of strings and returns a string with every element in the list
    separated by commas, with 'and' before the last element.

    Examples:
        >>> list_to_conjunction(["Alice"])
        "Alice"
        >>> list_to_conjunction(["Alice", "Bob"])
        "Alice and Bob"
        >>> list_to_conjunction(["Alice", "Bob", "Charlie"])
        "Alice, Bob, and Charlie"
    """
    if not L:
        return ""
    elif len(L) == 1:
        return L[0]
    elif len(L) == 2:
        return f"{L[0]} and {L[1]}"
    else:
        return ", ".join(L[:-1]) + f", and {L[-1]}"


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json(response: str) -> dict[str, Any]:
    """
    Parse the JSON object in an LLM reply.

    Handles bare JSON, ```json fenced blocks and prose around a single
    object.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    text = response.strip()

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    if not text.startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object found in response")
        text = text[start:end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON in response: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def truncate(text: str, limit: int) -> str:
    """Shorten text to ``limit`` characters, marking the cut with an ellipsis."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."
