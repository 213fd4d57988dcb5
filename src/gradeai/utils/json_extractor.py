"""
JSON extraction utilities for LLM responses.

Provides a common function to extract JSON from various LLM response formats.
Handles markdown code blocks, raw JSON, truncated output and edge cases.
"""

import json
import re
from typing import Any, Dict, Optional

from loguru import logger


def _strip_code_fence(text: str) -> str:
    """Return the body of the first ``` block, or the text unchanged."""
    # Try ```json block first (most common format)
    if '```json' in text:
        json_start = text.find('```json') + 7
        json_end = text.find('```', json_start)
        if json_end > json_start:
            return text[json_start:json_end].strip()
        return text[json_start:].strip()

    # Try ``` code block (without language specifier)
    if '```' in text:
        json_start = text.find('```') + 3
        # Skip language identifier if present
        while json_start < len(text) and text[json_start] not in '\n\r{':
            json_start += 1
        if json_start < len(text) and text[json_start] in '\n\r':
            json_start += 1
        json_end = text.find('```', json_start)
        if json_end > json_start:
            return text[json_start:json_end].strip()
        return text[json_start:].strip()

    return text


def extract_json_from_response(raw_response: str) -> Optional[Dict[str, Any]]:
    """
    Extract a JSON object from an LLM response.

    Handles multiple formats:
    - ```json code blocks
    - ``` code blocks (without language specifier)
    - Raw JSON objects embedded in text
    - Output cut off by the token limit (unclosed braces)

    Args:
        raw_response: The raw text response from an LLM

    Returns:
        Parsed JSON dictionary, or None if extraction/parsing fails
    """
    if not raw_response:
        return None

    json_match = _strip_code_fence(raw_response.strip())

    brace_start = json_match.find('{')
    if brace_start < 0:
        return None

    brace_end = json_match.rfind('}')
    if brace_end > brace_start:
        json_str = json_match[brace_start:brace_end + 1]
        parsed = _loads_object(json_str)
        if parsed is not None:
            return parsed
        repaired = _try_repair_and_parse(json_str)
        if repaired is not None:
            return repaired

    # Response may be truncated: close whatever is still open
    logger.debug("Response appears truncated, attempting to close open braces")
    return _try_repair_and_parse(close_truncated_json(json_match[brace_start:]))


def _loads_object(json_str: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.debug(f"JSON parse error: {e}")
        return None
    return parsed if isinstance(parsed, dict) else None


def _try_repair_and_parse(json_str: str) -> Optional[Dict[str, Any]]:
    """
    Attempt to repair common JSON issues and parse.

    Args:
        json_str: JSON string that failed to parse

    Returns:
        Parsed JSON dictionary, or None if repair fails
    """
    # Remove trailing commas before } or ]
    repaired = re.sub(r',\s*([}\]])', r'\1', json_str)

    # Replace smart quotes with regular quotes
    repaired = repaired.replace('“', '"').replace('”', '"')
    repaired = repaired.replace('‘', "'").replace('’', "'")

    # Remove control characters except newline and tab
    repaired = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', repaired)

    return _loads_object(repaired)


def close_truncated_json(json_str: str) -> str:
    """
    Close brackets and strings left open by a truncated response.

    Scans outside of string literals so braces inside text don't count.
    A dangling key or trailing comma is dropped before closing.
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in json_str:
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in '{[':
            stack.append('}' if ch == '{' else ']')
        elif ch in '}]' and stack:
            stack.pop()

    repaired = json_str
    if in_string:
        repaired += '"'

    # Trailing comma, or a key with no value yet
    repaired = re.sub(r',\s*$', '', repaired.rstrip())
    repaired = re.sub(r',?\s*"[^"]*"\s*:\s*$', '', repaired)
    if stack and stack[-1] == '}':
        # Object key cut off before its colon
        repaired = re.sub(r',\s*"[^"]*"$', '', repaired)

    return repaired + ''.join(reversed(stack))
