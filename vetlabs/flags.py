"""Reference range resolution and LOW/NORMAL/HIGH flagging."""

import logging
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from vetlabs.config import ParameterSpec, Species

logger = logging.getLogger(__name__)

ReferenceBounds = tuple[Optional[Decimal], Optional[Decimal]]


class Flag(str, Enum):
    """Clinical flag of a reading. An absent flag (None) means "not computable"."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a reading value to Decimal from its text form, or None if not numeric.

    Floats go through str() so 0.3 compares as 0.3, not 0.299999...
    """

    # Guard: None / booleans are not numbers
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    text = value.strip() if isinstance(value, str) else str(value)
    if not text:
        return None

    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        return None

    return number if number.is_finite() else None


def resolve_reference_bounds(
    spec: Optional[ParameterSpec],
    species: Any,
    default_species: Species = Species.DOG,
) -> ReferenceBounds:
    """
    Select the reference bounds that apply to a species.

    Cats use the cat bounds and dogs the dog bounds. Any other species falls
    back to the default branch (dogs unless configured otherwise).

    Args:
        spec: Parameter reference definition (None gives no bounds)
        species: Species or free-form species text
        default_species: Branch used for species other than DOG/CAT

    Returns:
        (min, max) tuple, either side possibly None
    """
    if spec is None:
        return (None, None)

    branch = Species.parse(species)
    if branch == Species.OTHER:
        branch = default_species if default_species != Species.OTHER else Species.DOG
        logger.debug(f"[ranges] Species '{species}' has no own bounds, using {branch.value} for {spec.code}")

    if branch == Species.CAT:
        return (spec.cat_ref_min, spec.cat_ref_max)
    return (spec.dog_ref_min, spec.dog_ref_max)


def classify_flag(value: Any, ref_min: Any, ref_max: Any) -> Optional[Flag]:
    """
    Classify a value against inclusive reference bounds.

    Rules, in order: absent value -> None; either bound absent -> None;
    below min -> LOW; above max -> HIGH; otherwise NORMAL.
    """
    number = to_decimal(value)
    if number is None:
        return None

    lower = to_decimal(ref_min)
    upper = to_decimal(ref_max)
    if lower is None or upper is None:
        return None

    if number < lower:
        return Flag.LOW
    if number > upper:
        return Flag.HIGH
    return Flag.NORMAL


def calculate_flag(
    value: Any,
    spec: Optional[ParameterSpec],
    species: Any,
    default_species: Species = Species.DOG,
) -> Optional[Flag]:
    """Flag a value for a parameter and species. Qualitative parameters are never flagged."""
    if spec is None or spec.is_qualitative:
        return None

    ref_min, ref_max = resolve_reference_bounds(spec, species, default_species)
    return classify_flag(value, ref_min, ref_max)


def is_in_range(value: Any, ref_min: Any, ref_max: Any) -> bool:
    """Whether a value sits inside its reference range, for chart highlighting.

    Unlike classify_flag, missing bounds count as in range: there is nothing to
    highlight against.
    """
    lower = to_decimal(ref_min)
    upper = to_decimal(ref_max)
    if lower is None or upper is None:
        return True

    number = to_decimal(value)
    if number is None:
        return True

    return lower <= number <= upper


def _format_bound(bound: Decimal) -> str:
    """Render a bound without trailing zeros: 125.0 -> "125", 0.80 -> "0.8"."""
    return format(bound.normalize(), "f")


def format_reference_range(
    spec: Optional[ParameterSpec],
    species: Any,
    default_species: Species = Species.DOG,
) -> str:
    """Human-readable reference range: "10 - 125", ">= 5", "<= 9" or "-"."""
    ref_min, ref_max = resolve_reference_bounds(spec, species, default_species)

    if ref_min is not None and ref_max is not None:
        return f"{_format_bound(ref_min)} - {_format_bound(ref_max)}"
    if ref_min is not None:
        return f">= {_format_bound(ref_min)}"
    if ref_max is not None:
        return f"<= {_format_bound(ref_max)}"
    return "-"
