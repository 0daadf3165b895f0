# parsing.py
# Tolerant readers for semi-structured model output.
#
# Two strategies live here:
#   - a structured-tree reader (json) with per-field coercion and named
#     defaults, used whenever the body is valid JSON;
#   - a best-effort string scanner for top-level scalars, used when the
#     body is too broken for the tree reader.
# Both share the same fallback policy: a missing string becomes
# missing_text(key), a missing or unparseable number becomes the caller's
# default.

import json
import re
from typing import Any

FENCE = "```"
JSON_FENCE = "```json"

MISSING_TEXT_PREFIX = "未能解析"


class ModelOutputUnparseable(Exception):
    """Raised when a model reply is not usable JSON."""


def missing_text(key: str) -> str:
    return MISSING_TEXT_PREFIX + key


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def strip_fences(response: str | None) -> str:
    """
    Remove a leading ```json / ``` marker and a trailing ``` marker.

    Idempotent: an unfenced body comes back trimmed and otherwise unchanged.
    A None reply is treated as an empty object.
    """
    if response is None:
        return "{}"

    cleaned = response.strip()
    if cleaned.startswith(JSON_FENCE):
        cleaned = cleaned[len(JSON_FENCE):]
    elif cleaned.startswith(FENCE):
        cleaned = cleaned[len(FENCE):]

    if cleaned.endswith(FENCE):
        cleaned = cleaned[: -len(FENCE)]

    return cleaned.strip()


def parse_tree(text: str) -> Any:
    """Parse `text` as any JSON value. Raises ModelOutputUnparseable when it is not JSON."""
    try:
        # strict=False tolerates literal newlines inside strings
        return json.loads(text, strict=False)
    except json.JSONDecodeError as exc:
        raise ModelOutputUnparseable(f"{exc.msg} (line {exc.lineno}, column {exc.colno})") from exc


def parse_object(text: str) -> dict[str, Any]:
    """Parse `text` as a JSON object. Raises ModelOutputUnparseable otherwise."""
    data = parse_tree(text)
    if not isinstance(data, dict):
        raise ModelOutputUnparseable(f"expected a JSON object, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# Field coercion (tree strategy)
# ---------------------------------------------------------------------------


def as_text(value: Any, default: str | None) -> str | None:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value, ensure_ascii=False)


def as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _int_from_text(text: str, default: int) -> int:
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (OverflowError, ValueError):
        return default


def as_int(value: Any, default: int) -> int:
    """Whole numbers, with fractions truncated. inf, nan and non-numeric text give `default`."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return default
    if isinstance(value, str):
        return _int_from_text(value, default)
    return default


def as_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def as_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [as_text(item, "") for item in value]


def as_int_list(value: Any) -> list[int]:
    """Numeric entries only; entries that cannot be read as a number are dropped."""
    if not isinstance(value, list):
        return []
    result: list[int] = []
    for item in value:
        number = as_int(item, None)
        if number is not None:
            result.append(number)
    return result


def as_parameters(value: Any) -> dict[str, str | bool]:
    """Strings and booleans are kept, numbers become text, anything else is JSON-encoded."""
    if not isinstance(value, dict):
        return {}
    result: dict[str, str | bool] = {}
    for key, item in value.items():
        if isinstance(item, (str, bool)):
            result[key] = item
        else:
            result[key] = json.dumps(item, ensure_ascii=False)
    return result


# ---------------------------------------------------------------------------
# String scanning (fallback strategy)
# ---------------------------------------------------------------------------


def _key_pattern(key: str) -> str:
    return r'"' + re.escape(key) + r'"\s*:\s*'


def scan_string(text: str, key: str) -> str:
    """
    Find the first `"key": "..."` in raw text and return the quoted value.

    Works on bodies that are not valid JSON overall. Returns missing_text(key)
    when the key or its closing quote cannot be found.
    """
    match = re.search(_key_pattern(key) + r'"((?:[^"\\]|\\.)*)"', text, re.DOTALL)
    if not match:
        return missing_text(key)

    raw = match.group(1)
    try:
        return json.loads(f'"{raw}"', strict=False)
    except json.JSONDecodeError:
        return raw


def scan_int(text: str, key: str, default: int) -> int:
    """Find the first `"key": <number>` in raw text, scanning to the next , or }."""
    match = re.search(_key_pattern(key) + r"([^,}\]]*)", text)
    if not match:
        return default
    return _int_from_text(match.group(1), default)
