import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger


@dataclass(frozen=True)
class JsonParseResult:
    """Tagged result of a best-effort JSON object extraction."""
    ok: bool
    value: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        if not self.ok or self.value is None:
            return default
        return self.value.get(key, default)


def find_json_object(text: str) -> Optional[str]:
    """Return the first balanced `{...}` span in text, or None.

    Braces inside JSON strings are ignored so a `}` in a quoted value does
    not close the object early.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # unbalanced from this brace, try the next one
        start = text.find("{", start + 1)
    return None


def parse_json_object(text: Optional[str]) -> JsonParseResult:
    """
    Locate and parse the first JSON object in a model response.

    Models often wrap the JSON in prose or code fences, so the whole
    response is never parsed directly.

    Args:
        text: Raw model response

    Returns:
        JsonParseResult with ok=True and the parsed dict, or ok=False and
        the reason parsing failed
    """
    if not text:
        return JsonParseResult(ok=False, error="Empty response")

    candidate = find_json_object(text)
    if candidate is None:
        return JsonParseResult(ok=False, error="No JSON object found in response")

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse JSON object from model response: {e}")
        return JsonParseResult(ok=False, error=f"Invalid JSON: {e}")

    if not isinstance(value, dict):
        return JsonParseResult(ok=False, error="JSON value is not an object")

    return JsonParseResult(ok=True, value=value)
