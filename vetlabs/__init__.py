"""vetlabs - Veterinary blood test result normalization and trend comparison."""

from vetlabs.aliases import (
    CANONICAL_CODES,
    LEGACY_CODES,
    AliasTable,
    default_alias_table,
)
from vetlabs.config import (
    CATEGORY_ORDER,
    EngineConfig,
    ParameterSpec,
    ParameterSpecsConfig,
    Species,
)
from vetlabs.exceptions import ConfigurationError
from vetlabs.extraction import (
    AnchorExtractor,
    AnchorMatcher,
    build_anchor_matchers,
    extract_values_from_text,
)
from vetlabs.flags import (
    Flag,
    calculate_flag,
    classify_flag,
    format_reference_range,
    is_in_range,
    resolve_reference_bounds,
)
from vetlabs.normalization import (
    Reading,
    build_readings,
    preprocess_numeric_value,
    reflag_readings,
)
from vetlabs.standardization import (
    merge_structured_values,
    parse_structured_response,
)
from vetlabs.trends import (
    Delta,
    Direction,
    Judgment,
    TrendPoint,
    build_trend,
    compare_readings,
    compute_delta,
    pairwise_deltas,
    readings_to_frame,
)
from vetlabs.utils import (
    load_dotenv_with_env,
    parse_llm_json_response,
    setup_logging,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Exceptions
    "ConfigurationError",
    # Config
    "EngineConfig",
    "ParameterSpec",
    "ParameterSpecsConfig",
    "Species",
    "CATEGORY_ORDER",
    # Aliases
    "AliasTable",
    "CANONICAL_CODES",
    "LEGACY_CODES",
    "default_alias_table",
    # Extraction
    "AnchorExtractor",
    "AnchorMatcher",
    "build_anchor_matchers",
    "extract_values_from_text",
    # Standardization
    "merge_structured_values",
    "parse_structured_response",
    # Flags
    "Flag",
    "classify_flag",
    "calculate_flag",
    "resolve_reference_bounds",
    "format_reference_range",
    "is_in_range",
    # Normalization
    "Reading",
    "build_readings",
    "reflag_readings",
    "preprocess_numeric_value",
    # Trends
    "Delta",
    "Direction",
    "Judgment",
    "TrendPoint",
    "compute_delta",
    "pairwise_deltas",
    "build_trend",
    "readings_to_frame",
    "compare_readings",
    # Utils
    "load_dotenv_with_env",
    "parse_llm_json_response",
    "setup_logging",
]
