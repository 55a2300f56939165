"""LLM response parser utility.

Both synthesis stages use this to turn raw model text into a list of
proposal dicts. Handles the common failure modes:
- JSON wrapped in markdown code blocks (```json ... ```)
- Commentary before or after the JSON object
- A bare list instead of {"narratives": [...]}

Schema validation of the individual proposals is the validators' job. This
module only recovers the list.
"""

import json
import re

from core.errors import MalformedProposal


def extract_json_list(response: str, key: str) -> list[dict]:
    """Recover the list of proposal objects from an LLM response.

    Tries three extraction strategies in order, stopping at the first that
    produces valid JSON:
        1. Strip markdown code fences and parse the remainder directly.
        2. Extract the outermost {...} block via regex (handles commentary).
        3. Fail with MalformedProposal including the raw response.

    Args:
        response: Raw string returned by LLMClient.complete().
        key: Top-level key holding the list (e.g. "narratives", "ideas").
            A bare JSON list is accepted as well.

    Returns:
        The list under key. Items are returned as-is; they may still fail
        schema validation later.

    Raises:
        MalformedProposal: If no JSON can be recovered, or it holds no list
            under key. The .raw attribute contains the original response.
    """
    cleaned = _strip_code_fences(response)

    data = _try_parse(cleaned)
    if data is None:
        data = _extract_json_object(cleaned)
    if data is None:
        raise MalformedProposal(f"No valid JSON found in LLM response for '{key}'.", raw=response)

    if isinstance(data, list):
        return data

    items = data.get(key)
    if not isinstance(items, list):
        raise MalformedProposal(
            f"LLM response has no '{key}' list (keys: {sorted(data)}).",
            raw=response,
        )
    return items


# ── Private helpers ────────────────────────────────────────────────────────────

def _strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` or ``` ... ``` wrappers."""
    text = re.sub(r"```(?:json)?\s*", "", text)
    text = re.sub(r"```", "", text)
    return text.strip()


def _try_parse(text: str) -> dict | list | None:
    """Attempt a direct json.loads(); return None on failure."""
    try:
        result = json.loads(text)
        return result if isinstance(result, (dict, list)) else None
    except json.JSONDecodeError:
        return None


def _extract_json_object(text: str) -> dict | None:
    """Find the outermost {...} block in text and parse it."""
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    result = _try_parse(match.group(0))
    return result if isinstance(result, dict) else None
