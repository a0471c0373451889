"""Longitudinal comparison of readings: per-step deltas judged against the reference midpoint."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

import pandas as pd

from vetlabs.aliases import AliasTable, default_alias_table
from vetlabs.config import ParameterSpec, ParameterSpecsConfig, Species
from vetlabs.flags import Flag, calculate_flag, is_in_range, resolve_reference_bounds, to_decimal
from vetlabs.normalization import Reading

logger = logging.getLogger(__name__)

TREND_COLUMNS = ["test_date", "code", "value", "value_text", "unit", "flag"]


class Direction(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"


class Judgment(str, Enum):
    IMPROVING = "improving"
    WORSENING = "worsening"


@dataclass(frozen=True)
class Delta:
    """Change between two consecutive readings of one parameter."""

    direction: Direction
    judgment: Judgment
    change: Decimal
    previous_distance: Decimal
    current_distance: Decimal

    @property
    def arrow(self) -> str:
        return "↑" if self.direction == Direction.INCREASING else "↓"


@dataclass(frozen=True)
class TrendPoint:
    """One reading of a time series with its flag and the delta from its predecessor."""

    test_date: Optional[date]
    value: Decimal
    flag: Optional[Flag]
    in_range: bool
    delta: Optional[Delta]


def compute_delta(previous: Any, current: Any, ref_min: Any, ref_max: Any) -> Optional[Delta]:
    """
    Judge whether a change moves a value toward or away from the reference midpoint.

    Returns None when either value or either bound is missing, and when the
    values are equal (an unchanged value has no delta, not a "flat" one).
    Equal distances to the midpoint count as worsening.

    Args:
        previous: Earlier value
        current: Later value
        ref_min: Reference minimum
        ref_max: Reference maximum

    Returns:
        Delta with direction and judgment, or None
    """
    prev_value = to_decimal(previous)
    curr_value = to_decimal(current)
    if prev_value is None or curr_value is None:
        return None

    lower = to_decimal(ref_min)
    upper = to_decimal(ref_max)
    if lower is None or upper is None:
        return None

    if prev_value == curr_value:
        return None

    midpoint = (lower + upper) / 2
    previous_distance = abs(prev_value - midpoint)
    current_distance = abs(curr_value - midpoint)

    return Delta(
        direction=Direction.INCREASING if curr_value > prev_value else Direction.DECREASING,
        judgment=Judgment.IMPROVING if current_distance < previous_distance else Judgment.WORSENING,
        change=curr_value - prev_value,
        previous_distance=previous_distance,
        current_distance=current_distance,
    )


def pairwise_deltas(values: Sequence[Any], ref_min: Any, ref_max: Any) -> list[Optional[Delta]]:
    """
    Compare each value with its immediate predecessor.

    The values must already be in ascending time order; this function does not
    sort. The first element never has a delta.
    """
    deltas: list[Optional[Delta]] = [None] * len(values)
    for i in range(1, len(values)):
        deltas[i] = compute_delta(values[i - 1], values[i], ref_min, ref_max)
    return deltas


def build_trend(
    readings: Sequence[Reading],
    spec: Optional[ParameterSpec],
    species: Any,
    default_species: Species = Species.DOG,
) -> list[TrendPoint]:
    """
    Build a time series for one parameter from readings already in ascending date order.

    Readings without a numeric value are left out of the series, so each point is
    compared with the previous numeric reading.
    """
    ref_min, ref_max = resolve_reference_bounds(spec, species, default_species)
    numeric = [reading for reading in readings if reading.value is not None]
    deltas = pairwise_deltas([reading.value for reading in numeric], ref_min, ref_max)

    return [
        TrendPoint(
            test_date=reading.test_date,
            value=reading.value,
            flag=calculate_flag(reading.value, spec, species, default_species),
            in_range=is_in_range(reading.value, ref_min, ref_max),
            delta=delta,
        )
        for reading, delta in zip(numeric, deltas)
    ]


def readings_to_frame(readings: Iterable[Reading]) -> pd.DataFrame:
    """Convert readings to a DataFrame with TREND_COLUMNS."""
    rows = [
        {
            "test_date": reading.test_date,
            "code": reading.code,
            "value": reading.value,
            "value_text": reading.value_text,
            "unit": reading.unit,
            "flag": reading.flag.value if reading.flag else None,
        }
        for reading in readings
    ]
    return pd.DataFrame(rows, columns=TREND_COLUMNS)


def _series_code(raw_code: Any, table: AliasTable) -> Optional[str]:
    """Canonical code for a table row, the upper-cased label when unknown, or None when blank."""
    if not isinstance(raw_code, str) or not raw_code.strip():
        return None
    return table.resolve(raw_code) or raw_code.strip().upper()


def compare_readings(
    df: pd.DataFrame,
    specs: ParameterSpecsConfig,
    species: Any,
    default_species: Species = Species.DOG,
    alias_table: Optional[AliasTable] = None,
) -> pd.DataFrame:
    """
    Add comparison columns to a table of readings for one subject.

    Codes are folded onto canonical codes (SGPT rows join the ALT series);
    codes the alias table does not know are kept, upper-cased. Rows are sorted
    by (code, test_date). Flags are recomputed for the given
    species, and each numeric reading is compared with the previous numeric
    reading of the same parameter.

    Args:
        df: DataFrame with at least test_date, code and value columns
        specs: Parameter reference data
        species: Patient species
        default_species: Bounds branch for species other than DOG/CAT
        alias_table: Vocabulary used to fold codes (default: built-in table)

    Returns:
        New DataFrame with ref_min, ref_max, flag, direction, judgment and change columns
    """
    result_cols = ["ref_min", "ref_max", "flag", "direction", "judgment", "change"]

    # Guard: nothing to compare
    if df.empty:
        empty = df.copy()
        for col in result_cols:
            empty[col] = pd.Series(dtype=object)
        return empty

    df = df.copy()
    for col in ["test_date", "code", "value"]:
        if col not in df.columns:
            df[col] = None

    df["test_date"] = pd.to_datetime(df["test_date"], errors="coerce")
    table = alias_table if alias_table is not None else default_alias_table()
    df["code"] = df["code"].map(lambda c: _series_code(c, table))

    # Rows that cannot be placed in a series
    unusable = df["code"].isna() | df["test_date"].isna()
    if unusable.any():
        logger.warning(f"[trends] Dropping {int(unusable.sum())} rows without a code or a valid date")
        df = df[~unusable]

    df = df.sort_values(["code", "test_date"], kind="stable").reset_index(drop=True)

    columns: dict[str, dict] = {col: {} for col in result_cols}

    for code, group in df.groupby("code", sort=False):
        spec = specs.get(code)
        if spec is None:
            logger.debug(f"[trends] No parameter spec for {code}, comparison columns left empty")

        ref_min, ref_max = resolve_reference_bounds(spec, species, default_species)

        # Only numeric readings take part in the series
        numeric_idx = [idx for idx, value in zip(group.index, group["value"]) if to_decimal(value) is not None]
        deltas = pairwise_deltas([df.at[idx, "value"] for idx in numeric_idx], ref_min, ref_max)
        delta_by_idx = dict(zip(numeric_idx, deltas))

        for idx in group.index:
            flag = calculate_flag(df.at[idx, "value"], spec, species, default_species)
            delta = delta_by_idx.get(idx)
            columns["ref_min"][idx] = ref_min
            columns["ref_max"][idx] = ref_max
            columns["flag"][idx] = flag.value if flag else None
            columns["direction"][idx] = delta.direction.value if delta else None
            columns["judgment"][idx] = delta.judgment.value if delta else None
            columns["change"][idx] = delta.change if delta else None

    for col, by_idx in columns.items():
        df[col] = pd.Series([by_idx.get(idx) for idx in df.index], index=df.index, dtype=object)

    logger.info(f"[trends] Compared {len(df)} readings across {df['code'].nunique()} parameters")
    return df
