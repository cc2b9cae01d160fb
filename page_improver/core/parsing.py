"""
Structured-response recovery parser.

Model output is unreliable: JSON may be wrapped in markdown fences,
surrounded by prose, or cut off by a token limit. parse_json_from_llm()
never raises; it returns the first complete JSON value it can find,
otherwise whatever fields it can salvage, otherwise the caller's
fallback. parse_and_validate() layers a pydantic schema on top and
degrades invalid values instead of failing.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError


logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_FENCE_OPEN = re.compile(r"```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"```\s*$")
_SOURCES_ARRAY = re.compile(r'"sources"\s*:\s*(\[[\s\S]*)')
_STRING_FIELD = re.compile(r'"(\w+)"\s*:\s*"([^"\\]*)"')


def strip_code_fences(raw: str) -> str:
    """Remove markdown code-fence markers."""
    text = _FENCE_OPEN.sub("", raw)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def extract_complete_json(text: str, start: int = 0) -> Optional[str]:
    """
    Return the first balanced JSON value beginning at ``start``.

    Brackets and braces are counted together; characters inside
    double-quoted strings (including escaped quotes) do not count.
    Returns None when the value never closes.
    """
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
            continue
        if in_string:
            if ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def extract_partial_array(text: str) -> List[Any]:
    """
    Salvage the complete objects from a possibly truncated JSON array.

    ``text`` starts at the opening ``[``. Stops at the closing bracket,
    at anything that is not an object, or at the first object that is
    cut off or does not parse.
    """
    items: List[Any] = []
    if not text.startswith("["):
        return items

    pos = 1
    length = len(text)
    while pos < length:
        while pos < length and text[pos] in " \t\r\n,":
            pos += 1
        if pos >= length or text[pos] != "{":
            break
        chunk = extract_complete_json(text, pos)
        if chunk is None:
            break
        try:
            items.append(json.loads(chunk))
        except json.JSONDecodeError:
            break
        pos += len(chunk)
    return items


def _salvage_fields(text: str) -> Optional[Dict[str, Any]]:
    result: Dict[str, Any] = {}

    match = _SOURCES_ARRAY.search(text)
    if match:
        sources = extract_partial_array(match.group(1))
        if sources:
            result["sources"] = sources

    for key, value in _STRING_FIELD.findall(text):
        if key != "sources":
            result[key] = value

    return result or None


def parse_json_from_llm(
    raw: str,
    phase: str,
    fallback: Callable[[str, str], T]
) -> Union[Dict[str, Any], List[Any], T]:
    """
    Recover a JSON value from model output.

    Args:
        raw: Model output
        phase: Phase name for log lines and the fallback message
        fallback: Called with ``(raw, error)`` when nothing is recoverable

    Returns:
        Parsed JSON, a salvaged dict, or the fallback value
    """
    text = strip_code_fences(raw or "")

    brace = text.find("{")
    if brace != -1:
        candidate = extract_complete_json(text, brace)
        if candidate is not None:
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                pass

        salvaged = _salvage_fields(text[brace:])
        if salvaged:
            logger.warning(f"[{phase}] Recovered partial JSON ({', '.join(sorted(salvaged))})")
            return salvaged

    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        pass

    error = f"Could not parse {phase} result as JSON (response may have been truncated)"
    logger.warning(f"[{phase}] {error}")
    return fallback(raw or "", error)


def _prune_invalid(data: Dict[str, Any], exc: ValidationError) -> Dict[str, Any]:
    """Drop the list elements and keys a ValidationError points at."""
    pruned = dict(data)
    drop_keys = set()
    drop_items: Dict[str, set] = {}

    for err in exc.errors():
        loc = err.get("loc") or ()
        if not loc:
            continue
        key = loc[0]
        if len(loc) >= 2 and isinstance(loc[1], int) and isinstance(pruned.get(key), list):
            drop_items.setdefault(key, set()).add(loc[1])
        else:
            drop_keys.add(key)

    for key, indexes in drop_items.items():
        if key in drop_keys:
            continue
        pruned[key] = [item for i, item in enumerate(pruned[key]) if i not in indexes]
    for key in drop_keys:
        pruned.pop(key, None)
    return pruned


def parse_and_validate(
    raw: str,
    model_cls: Type[M],
    phase: str,
    fallback: Callable[[str, str], M]
) -> M:
    """
    Recover JSON and validate it against a pydantic model.

    On a schema mismatch a warning is logged and the value degrades:
    invalid elements and keys are dropped and the rest is layered over
    the fallback. Never raises.

    Args:
        raw: Model output
        model_cls: Result model
        phase: Phase name for logs
        fallback: Builds the default result from ``(raw, error)``

    Returns:
        A ``model_cls`` instance
    """
    parsed = parse_json_from_llm(raw, phase, fallback)
    if isinstance(parsed, model_cls):
        return parsed
    if not isinstance(parsed, dict):
        return fallback(raw, f"{phase} result is not a JSON object")

    try:
        return model_cls.model_validate(parsed)
    except ValidationError as exc:
        logger.warning(f"[{phase}] Schema validation warning: {str(exc)[:200]}")
        error = f"{phase} result failed schema validation"
        base = fallback(raw, error)
        data = {
            **base.model_dump(by_alias=True),
            **_prune_invalid(parsed, exc),
            "error": error,
        }
        try:
            return model_cls.model_validate(data)
        except ValidationError:
            return base
