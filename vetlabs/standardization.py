"""Standardization of structured code -> value mappings (e.g. from a vision model).

A vision model asked for a JSON object of parameter codes is mostly right but
not always: keys can be aliases or legacy codes, values can be numbers, nulls
or nested junk. This module folds such a mapping into the same canonical shape
the anchor extractor produces.
"""

import logging
import numbers
from decimal import Decimal
from typing import Any, Mapping, Optional

from vetlabs.aliases import AliasTable, default_alias_table
from vetlabs.utils import parse_llm_json_response

logger = logging.getLogger(__name__)


def coerce_value_to_string(value: Any) -> Optional[str]:
    """Coerce a structured value to a string, or None when it is not usable.

    Numbers become strings (integral floats without ".0"); booleans, containers,
    None and blank strings are not usable values.
    """

    # Guard: None / booleans are never results
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None

    if isinstance(value, Decimal):
        return str(value) if value.is_finite() else None

    # Integer types from any source (int, numpy.int64, ...)
    if isinstance(value, numbers.Integral):
        return str(int(value))

    # Format without unnecessary decimal places for integral floats
    if isinstance(value, numbers.Real):
        number = float(value)
        if number != number or number in (float("inf"), float("-inf")):
            return None
        return str(int(number)) if number.is_integer() else str(number)

    return None


def merge_structured_values(
    values: Mapping[Any, Any],
    alias_table: Optional[AliasTable] = None,
) -> dict[str, str]:
    """
    Fold a structured code -> value mapping into canonical codes.

    Keys are resolved through the alias table (codes, legacy codes and aliases,
    case-insensitively). Unrecognized keys and unusable values are dropped.
    When two keys fold to the same code, the key that is itself the canonical
    code wins; otherwise the first key wins.

    Args:
        values: Mapping from (approximate) parameter codes to values
        alias_table: Vocabulary used to resolve keys (default: built-in table)

    Returns:
        Dictionary mapping canonical code to string value
    """
    # Guard: not a mapping at all
    if not isinstance(values, Mapping):
        logger.warning(f"[merge] Expected a mapping, got {type(values).__name__}; nothing merged")
        return {}

    table = alias_table if alias_table is not None else default_alias_table()
    merged: dict[str, str] = {}
    from_canonical_key: set[str] = set()

    for key, raw_value in values.items():
        key_text = key if isinstance(key, str) else str(key)
        code = table.resolve(key_text)

        # Unknown parameter
        if code is None:
            logger.debug(f"[merge] Dropping unrecognized key '{key_text}'")
            continue

        value = coerce_value_to_string(raw_value)

        # Unusable value (null, boolean, list, dict, blank)
        if value is None:
            logger.debug(f"[merge] Dropping unusable value for '{key_text}': {raw_value!r}")
            continue

        is_canonical_key = key_text.strip().upper() == code

        # Code already filled: only an exact canonical key may replace an alias/legacy key
        if code in merged:
            if is_canonical_key and code not in from_canonical_key:
                merged[code] = value
                from_canonical_key.add(code)
            continue

        merged[code] = value
        if is_canonical_key:
            from_canonical_key.add(code)

    logger.info(f"[merge] Merged {len(merged)} of {len(values)} structured values")
    return merged


def parse_structured_response(
    response_text: str,
    alias_table: Optional[AliasTable] = None,
) -> dict[str, str]:
    """
    Parse a vision-model reply into a canonical code -> value mapping.

    The reply is expected to be a JSON object, possibly wrapped in markdown
    code fences. Anything else yields an empty mapping.

    Args:
        response_text: Raw model reply
        alias_table: Vocabulary used to resolve keys

    Returns:
        Dictionary mapping canonical code to string value
    """
    parsed = parse_llm_json_response(response_text, fallback=None)

    # JSON parsing failed
    if parsed is None:
        preview = response_text[:200] if isinstance(response_text, str) else repr(response_text)
        logger.error(f"[merge] Failed to parse structured response as JSON: {preview}")
        return {}

    # Valid JSON but not an object
    if not isinstance(parsed, dict):
        logger.error(f"[merge] Structured response is a {type(parsed).__name__}, expected an object")
        return {}

    return merge_structured_values(parsed, alias_table)
