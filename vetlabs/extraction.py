"""Anchor-based extraction of blood test values from OCR text.

The extractor scans recognized text for parameter codes and their English/Thai
aliases, and takes the first plausible value that follows each anchor.
"""

import bisect
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

from vetlabs.aliases import AliasTable, default_alias_table
from vetlabs.config import DEFAULT_LOOKAHEAD, ParameterSpecsConfig
from vetlabs.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Optional sign, digits with optional thousands commas, optional decimal part.
# Digits glued to "^" or "/" belong to a unit (x10^3/uL), not to the result.
NUMBER_PATTERN = re.compile(r"(?<![\d.^/])[-+]?\d[\d,]*(?:\.\d+)?(?![\d^])")

# Result words for qualitative tests, longest alternatives first
QUALITATIVE_PATTERN = re.compile(
    r"(?<![a-z])(not\s+detected|non-?reactive|negative|positive|detected|reactive|neg|pos|ผลลบ|ผลบวก|ลบ|บวก)(?![a-z])",
    re.IGNORECASE,
)

# First character in a window that is not a label/value separator
_MEANINGFUL_CHAR = re.compile(r"[^\s:=\-]")


@dataclass(frozen=True)
class AnchorMatcher:
    """One anchor: a compiled label pattern and the code it resolves to."""

    pattern: re.Pattern
    code: str
    label: str


def _code_pattern(code: str) -> re.Pattern:
    """Whole-word, case-insensitive pattern for a parameter code."""
    return re.compile(rf"\b{re.escape(code)}\b", re.IGNORECASE)


def _alias_pattern(alias: str) -> re.Pattern:
    """Case-insensitive pattern for an alias.

    Latin edges only match at Latin-letter boundaries ("band" never matches
    inside "husband"); Thai edges match anywhere.
    """
    body = r"\s+".join(re.escape(part) for part in alias.split())
    prefix = r"(?<![A-Za-z])" if alias[0].isascii() and alias[0].isalpha() else ""
    suffix = r"(?![A-Za-z])" if alias[-1].isascii() and alias[-1].isalpha() else ""
    return re.compile(f"{prefix}{body}{suffix}", re.IGNORECASE)


def build_anchor_matchers(alias_table: AliasTable) -> tuple[AnchorMatcher, ...]:
    """Build anchors in precedence order.

    Canonical codes come first, then legacy codes (folded to their canonical
    code), then aliases sorted by descending length so longer phrases are
    tried before the shorter aliases they contain.
    """
    anchors = [AnchorMatcher(_code_pattern(code), code, code) for code in alias_table.codes]
    anchors.extend(
        AnchorMatcher(_code_pattern(legacy), code, legacy)
        for legacy, code in alias_table.legacy_codes.items()
    )

    sorted_aliases = sorted(alias_table.aliases.items(), key=lambda item: len(item[0]), reverse=True)
    for alias, code in sorted_aliases:
        # Skip aliases already covered by a code anchor
        if alias_table.is_code(alias):
            continue
        anchors.append(AnchorMatcher(_alias_pattern(alias), code, alias))

    return tuple(anchors)


def _lookahead_window(text: str, start: int, size: int, limit: Optional[int] = None) -> str:
    """Bounded window after an anchor, cut at the end of its first line with content.

    Separators and line breaks before the value are tolerated; once the window
    reaches meaningful text it never continues onto the next line. The window
    never extends past limit (the start of the next label, when known).
    """
    end = start + size if limit is None else min(start + size, limit)
    window = text[start:end]
    content = _MEANINGFUL_CHAR.search(window)
    if content:
        line_end = window.find("\n", content.start())
        if line_end != -1:
            window = window[:line_end]
    return window


def extract_number_after_anchor(
    text: str,
    anchor_end: int,
    lookahead: int = DEFAULT_LOOKAHEAD,
    limit: Optional[int] = None,
) -> Optional[str]:
    """Find the first numeric token shortly after an anchor.

    Handles formats like "7.28", "37.0", "125", "12,500" and "-3".

    Returns:
        Cleaned numeric string (grouping commas and a leading "+" removed), or None
    """
    window = _lookahead_window(text, anchor_end, lookahead, limit)
    match = NUMBER_PATTERN.search(window)
    if not match:
        return None

    raw_value = match.group(0).replace(",", "")
    return raw_value.lstrip("+")


def extract_qualitative_after_anchor(
    text: str,
    anchor_end: int,
    lookahead: int = DEFAULT_LOOKAHEAD,
    limit: Optional[int] = None,
) -> Optional[str]:
    """Find a qualitative result word (Negative, Positive, ...) shortly after an anchor.

    Returns:
        The literal text found, with internal whitespace collapsed, or None
    """
    window = _lookahead_window(text, anchor_end, lookahead, limit)
    match = QUALITATIVE_PATTERN.search(window)
    if not match:
        return None
    return " ".join(match.group(0).split())


def _overlaps(span: tuple[int, int], claimed: list[tuple[int, int]]) -> bool:
    start, end = span
    return any(start < claimed_end and claimed_start < end for claimed_start, claimed_end in claimed)


class AnchorExtractor:
    """Extracts a canonical code -> value mapping from free text."""

    def __init__(
        self,
        alias_table: Optional[AliasTable] = None,
        qualitative_codes: Iterable[str] = (),
        lookahead: int = DEFAULT_LOOKAHEAD,
    ):
        """
        Args:
            alias_table: Vocabulary to anchor on (default: built-in English/Thai table)
            qualitative_codes: Codes matched for a result word instead of a number
            lookahead: Number of characters after an anchor searched for a value
        """
        if not isinstance(lookahead, int) or lookahead < 1:
            raise ConfigurationError(f"lookahead must be a positive integer, got {lookahead!r}")

        self.alias_table = alias_table if alias_table is not None else default_alias_table()
        self.lookahead = lookahead
        self.qualitative_codes = frozenset(
            code for code in (self.alias_table.fold(c) for c in qualitative_codes) if code is not None
        )
        self.anchors = build_anchor_matchers(self.alias_table)

    @classmethod
    def from_specs(
        cls,
        specs: ParameterSpecsConfig,
        alias_table: Optional[AliasTable] = None,
        lookahead: int = DEFAULT_LOOKAHEAD,
    ) -> "AnchorExtractor":
        """Build an extractor that treats the specs' qualitative parameters as text results."""
        return cls(alias_table=alias_table, qualitative_codes=specs.qualitative_codes, lookahead=lookahead)

    def _label_occurrences(self, text: str) -> dict[int, list[tuple[int, int]]]:
        """Find every anchor occurrence, dropping occurrences embedded in a longer label.

        Overlaps are settled longest label first (then anchor precedence), so the
        "neutrophils" inside "Band neutrophils" never acts as an anchor of its own.

        Returns:
            Anchor index -> (start, end) spans, left to right
        """
        found = []
        for order, anchor in enumerate(self.anchors):
            for match in anchor.pattern.finditer(text):
                found.append((match.start(), match.end(), order))

        found.sort(key=lambda occurrence: (occurrence[0] - occurrence[1], occurrence[2], occurrence[0]))

        kept: list[tuple[int, int]] = []
        by_anchor: dict[int, list[tuple[int, int]]] = {}
        for start, end, order in found:
            if _overlaps((start, end), kept):
                continue
            kept.append((start, end))
            by_anchor.setdefault(order, []).append((start, end))

        for spans in by_anchor.values():
            spans.sort()
        return by_anchor

    def extract(self, text: str) -> dict[str, str]:
        """
        Extract parameter values from OCR text.

        Strategy:
        1. Locate anchor occurrences; a label embedded in a longer label is not an anchor.
        2. Walk the anchors in precedence order, skipping codes that already have a value.
        3. For each occurrence of an anchor, left to right, read the value that follows it,
           stopping at the next label.

        Args:
            text: Recognized text, possibly mixing English and Thai

        Returns:
            Dictionary mapping canonical code to the extracted string value.
            A missing code means "not found".
        """
        # Guard: nothing to scan
        if not isinstance(text, str) or not text.strip():
            return {}

        values: dict[str, str] = {}
        occurrences = self._label_occurrences(text)
        label_starts = sorted(start for spans in occurrences.values() for start, _ in spans)

        for order, anchor in enumerate(self.anchors):
            # First successful match per code wins
            if anchor.code in values:
                continue

            is_qualitative = anchor.code in self.qualitative_codes
            for _, end in occurrences.get(order, []):
                # A value never lies beyond the next label
                next_label = bisect.bisect_left(label_starts, end)
                limit = label_starts[next_label] if next_label < len(label_starts) else None

                if is_qualitative:
                    extracted = extract_qualitative_after_anchor(text, end, self.lookahead, limit)
                else:
                    extracted = extract_number_after_anchor(text, end, self.lookahead, limit)

                if extracted is not None:
                    values[anchor.code] = extracted
                    logger.debug(f"[extraction] {anchor.code} <- '{extracted}' via '{anchor.label}'")
                    break

        logger.info(f"[extraction] Extracted {len(values)} values from {len(text)} characters")
        return values


@lru_cache(maxsize=None)
def default_extractor() -> AnchorExtractor:
    """Extractor over the built-in vocabulary and packaged reference data."""
    return AnchorExtractor.from_specs(ParameterSpecsConfig())


def extract_values_from_text(text: str) -> dict[str, str]:
    """Extract parameter values from OCR text with the default extractor."""
    return default_extractor().extract(text)
