"""Configuration management: environment settings, species and parameter reference data."""

import json
import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from vetlabs.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SPECS_PATH = Path(__file__).parent / "data" / "parameter_specs.json"
DEFAULT_LOOKAHEAD = 50

# Display order for parameter categories
CATEGORY_ORDER = ("hematology", "differential", "chemistry", "serology")


class Species(str, Enum):
    """Patient species. Anything other than a dog or a cat is OTHER."""

    DOG = "DOG"
    CAT = "CAT"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Any) -> "Species":
        """Map free-form species text to a Species, never raising."""

        # Guard: already parsed
        if isinstance(value, Species):
            return value

        if not isinstance(value, str):
            return cls.OTHER

        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class EngineConfig:
    """Runtime settings for the normalization engine."""

    lookahead: int = DEFAULT_LOOKAHEAD
    default_species: Species = Species.DOG
    parameter_specs_path: Path = DEFAULT_SPECS_PATH
    log_dir: Path = Path("logs")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        lookahead_str = os.getenv("VETLABS_LOOKAHEAD", str(DEFAULT_LOOKAHEAD))
        default_species_str = os.getenv("VETLABS_DEFAULT_SPECIES", Species.DOG.value)
        specs_path_str = os.getenv("VETLABS_PARAMETER_SPECS")
        log_dir_str = os.getenv("VETLABS_LOG_DIR", "logs")

        # Parse lookahead window
        try:
            lookahead = int(lookahead_str)
            if lookahead < 1:
                raise ValueError(lookahead_str)
        except ValueError:
            logger.warning(f"VETLABS_LOOKAHEAD ('{lookahead_str}') is not valid. Defaulting to {DEFAULT_LOOKAHEAD}.")
            lookahead = DEFAULT_LOOKAHEAD

        # The default branch must be one of the species that carry reference bounds
        default_species = Species.parse(default_species_str)
        if default_species == Species.OTHER:
            raise ConfigurationError(f"VETLABS_DEFAULT_SPECIES must be DOG or CAT, got '{default_species_str}'")

        parameter_specs_path = Path(specs_path_str) if specs_path_str else DEFAULT_SPECS_PATH
        if not parameter_specs_path.exists():
            raise ConfigurationError(f"VETLABS_PARAMETER_SPECS ('{parameter_specs_path}') does not exist.")

        return cls(
            lookahead=lookahead,
            default_species=default_species,
            parameter_specs_path=parameter_specs_path,
            log_dir=Path(log_dir_str),
        )


class ParameterSpec(BaseModel):
    """Reference definition of one measurable blood parameter."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    name_th: str | None = None
    category: str
    unit: str | None = None
    is_qualitative: bool = False
    sort_order: int = 0
    dog_ref_min: Decimal | None = None
    dog_ref_max: Decimal | None = None
    cat_ref_min: Decimal | None = None
    cat_ref_max: Decimal | None = None

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        """Codes are stored upper-cased and trimmed."""
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("dog_ref_min", "dog_ref_max", "cat_ref_min", "cat_ref_max", mode="before")
    @classmethod
    def coerce_bound(cls, v):
        """Build bounds from their decimal text so 0.8 stays exactly 0.8."""

        # Guard: None passthrough
        if v is None:
            return v

        if isinstance(v, (int, float)) and not isinstance(v, bool):
            try:
                return Decimal(str(v))
            except InvalidOperation:
                return v
        return v

    @model_validator(mode="after")
    def check_bounds_order(self):
        """Reject reference data where min > max for either species."""
        for species, lo, hi in (
            ("dog", self.dog_ref_min, self.dog_ref_max),
            ("cat", self.cat_ref_min, self.cat_ref_max),
        ):
            if lo is not None and hi is not None and lo > hi:
                raise ValueError(f"{self.code}: {species} reference min {lo} is greater than max {hi}")
        return self


class ParameterSpecsConfig:
    """Central reference data for blood parameters.

    Loads parameter_specs.json once and provides the views the engine needs:
    codes, qualitative codes, units and category groupings.
    """

    def __init__(self, config_path: Path = DEFAULT_SPECS_PATH):
        """Load parameter specs from a JSON file keyed by canonical code."""
        self.config_path = config_path
        self._specs: dict[str, ParameterSpec] = {}

        if not config_path.exists():
            logger.warning(f"parameter_specs.json not found at {config_path}")
            return

        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        self._load(data)
        logger.info(f"Loaded {len(self._specs)} parameter specs from {config_path.name}")

    @classmethod
    def from_mapping(cls, data: dict[str, dict]) -> "ParameterSpecsConfig":
        """Build a config from an in-memory mapping (same shape as the JSON file)."""
        instance = cls.__new__(cls)
        instance.config_path = None
        instance._specs = {}
        instance._load(data)
        return instance

    def _load(self, data: dict[str, dict]) -> None:
        """Validate raw entries into ParameterSpec models."""
        if not isinstance(data, dict):
            raise ConfigurationError("Parameter specs must be a JSON object keyed by code")

        specs = {}
        for code, entry in data.items():
            try:
                spec = ParameterSpec(code=code, **entry)
            except (ValidationError, TypeError) as e:
                raise ConfigurationError(f"Invalid parameter spec for '{code}': {e}") from e
            specs[spec.code] = spec

        # Keep display order stable: sort_order first, then code
        self._specs = dict(sorted(specs.items(), key=lambda item: (item[1].sort_order, item[0])))

    @property
    def exists(self) -> bool:
        """Check if any specs were loaded."""
        return bool(self._specs)

    @property
    def codes(self) -> list[str]:
        """Canonical codes in display order."""
        return list(self._specs.keys())

    @property
    def qualitative_codes(self) -> frozenset[str]:
        """Codes whose results are text (Negative/Positive), not numbers."""
        return frozenset(code for code, spec in self._specs.items() if spec.is_qualitative)

    @property
    def specs(self) -> dict[str, ParameterSpec]:
        """Get specs dictionary keyed by code."""
        return dict(self._specs)

    def get(self, code: str) -> Optional[ParameterSpec]:
        """Get the spec for a code, or None if unknown."""
        if not isinstance(code, str):
            return None
        return self._specs.get(code.strip().upper())

    def is_qualitative(self, code: str) -> bool:
        """Whether a code is a qualitative parameter."""
        spec = self.get(code)
        return bool(spec and spec.is_qualitative)

    def get_unit(self, code: str) -> Optional[str]:
        """Get the reporting unit for a code."""
        spec = self.get(code)
        return spec.unit if spec else None

    def by_category(self) -> dict[str, list[ParameterSpec]]:
        """Group specs by category, known categories first in display order."""
        grouped: dict[str, list[ParameterSpec]] = {}
        for spec in self._specs.values():
            grouped.setdefault(spec.category, []).append(spec)

        ordered = {category: grouped[category] for category in CATEGORY_ORDER if category in grouped}
        for category in sorted(set(grouped) - set(ordered)):
            ordered[category] = grouped[category]
        return ordered
