"""Value cleaning and construction of flagged readings from code -> value maps."""

import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from vetlabs.config import ParameterSpecsConfig, Species
from vetlabs.flags import Flag, calculate_flag, to_decimal

logger = logging.getLogger(__name__)

# A number followed by an analyzer H/L marker, e.g. "142H" or "2.1 L."
_FLAG_SUFFIX = re.compile(r"^([-+]?\d+(?:\.\d+)?)\s*[HhLl]\.?$")


class Reading(BaseModel):
    """One parameter result: a numeric value or a free-text value, plus its derived flag."""

    model_config = ConfigDict(frozen=True)

    code: str
    value: Decimal | None = None
    value_text: str | None = None
    unit: str | None = None
    flag: Flag | None = None
    test_date: date | None = None
    source_value: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v):
        """Build numeric values from their text form so comparisons stay exact."""

        # Guard: None passthrough
        if v is None:
            return v

        number = to_decimal(v)
        if number is None:
            raise ValueError(f"value is not numeric: {v!r}")
        return number

    @model_validator(mode="after")
    def check_single_value(self):
        """Exactly one of value / value_text carries the result."""
        if self.value is None and not self.value_text:
            raise ValueError(f"{self.code}: reading has neither a value nor a value_text")
        if self.value is not None and self.value_text:
            raise ValueError(f"{self.code}: reading has both a value and a value_text")
        return self


def preprocess_numeric_value(value: Any) -> Optional[str]:
    """
    Clean a raw value for numeric conversion.

    Handles:
    - Surrounding whitespace
    - Thousands separators (e.g., "12,500" → "12500", "256 000" → "256000")
    - Embedded metadata after "=" (e.g., "52.6=1946" → "52.6") and trailing "="
    - Analyzer H/L markers (e.g., "142H" → "142")
    - Leading "+" (e.g., "+3.1" → "3.1")

    Args:
        value: Raw value from extraction or a structured source

    Returns:
        Cleaned string ready for numeric conversion, or None for missing values
    """
    if value is None:
        return None

    s = str(value).strip()
    if not s:
        return None

    # Embedded metadata: keep first number before "="
    if "=" in s and not s.endswith("="):
        s = s.split("=")[0].strip()
    s = s.rstrip("=").strip()

    # Space thousands separators, only when the whole thing is digits and spaces
    if re.match(r"^\d[\d\s]+$", s):
        s = s.replace(" ", "")

    # Comma thousands separators (the extractor treats commas the same way)
    s = s.replace(",", "")

    flag_match = _FLAG_SUFFIX.match(s)
    if flag_match:
        s = flag_match.group(1)

    return s.lstrip("+")


def build_readings(
    values: Mapping[str, str],
    specs: ParameterSpecsConfig,
    species: Any,
    default_species: Species = Species.DOG,
    test_date: Optional[date] = None,
) -> list[Reading]:
    """
    Turn a canonical code -> value map into flagged readings.

    Qualitative parameters keep their text. Quantitative values are cleaned and
    parsed; values that still do not parse are kept as text without a flag.
    Codes without a parameter spec are skipped.

    Args:
        values: Canonical code -> string value (extractor or structured merge output)
        specs: Parameter reference data
        species: Patient species (DOG, CAT or anything else)
        default_species: Bounds branch for species other than DOG/CAT
        test_date: Date of the blood test, carried onto each reading

    Returns:
        Readings in the reference data's display order
    """
    readings = []

    for code in specs.codes:
        raw_value = values.get(code)
        if raw_value is None or not str(raw_value).strip():
            continue

        spec = specs.get(code)
        raw_text = str(raw_value).strip()

        # Qualitative parameters are stored as text, never flagged
        if spec.is_qualitative:
            readings.append(
                Reading(code=code, value_text=raw_text, unit=spec.unit, test_date=test_date, source_value=raw_text)
            )
            continue

        number = to_decimal(preprocess_numeric_value(raw_text))
        if number is None:
            logger.warning(f"[readings] {code}: '{raw_text}' is not numeric, keeping as text")
            readings.append(
                Reading(code=code, value_text=raw_text, unit=spec.unit, test_date=test_date, source_value=raw_text)
            )
            continue

        readings.append(
            Reading(
                code=code,
                value=number,
                unit=spec.unit,
                flag=calculate_flag(number, spec, species, default_species),
                test_date=test_date,
                source_value=raw_text,
            )
        )

    # Codes nobody can interpret
    unknown = sorted(set(values) - set(specs.codes))
    if unknown:
        logger.warning(f"[readings] Skipping codes without a parameter spec: {unknown}")

    return readings


def reflag_readings(
    readings: Iterable[Reading],
    specs: ParameterSpecsConfig,
    species: Any,
    default_species: Species = Species.DOG,
) -> list[Reading]:
    """Recompute derived flags, e.g. after the patient's species or the reference data changed."""
    reflagged = []
    for reading in readings:
        flag = calculate_flag(reading.value, specs.get(reading.code), species, default_species)
        reflagged.append(reading.model_copy(update={"flag": flag}))
    return reflagged
