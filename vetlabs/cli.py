"""CLI entry point for vetlabs."""

import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd

from vetlabs.config import EngineConfig, ParameterSpecsConfig, Species
from vetlabs.exceptions import ConfigurationError
from vetlabs.extraction import AnchorExtractor
from vetlabs.flags import format_reference_range
from vetlabs.normalization import build_readings
from vetlabs.standardization import parse_structured_response
from vetlabs.trends import compare_readings
from vetlabs.utils import load_dotenv_with_env, setup_logging

logger = logging.getLogger("vetlabs.cli")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with extract and compare subcommands."""
    parser = argparse.ArgumentParser(prog="vetlabs", description="Normalize veterinary blood test results.")
    parser.add_argument("--env", default="local", help="Load .env.{name} before reading settings (default: local)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Extract flagged readings from OCR text or a vision-model reply")
    extract.add_argument("path", type=Path, help="Text file (OCR output) or JSON reply with --structured")
    extract.add_argument("--structured", action="store_true", help="Treat the file as a code -> value JSON object")
    extract.add_argument("--species", default=None, help="DOG, CAT or other (default: configured default species)")
    extract.add_argument("--json", action="store_true", help="Print readings as JSON")

    compare = subparsers.add_parser("compare", help="Compare readings over time from a CSV (test_date, code, value)")
    compare.add_argument("path", type=Path, help="CSV with test_date (or date), code and value columns")
    compare.add_argument("--species", default=None, help="DOG, CAT or other (default: configured default species)")

    return parser


def run_extract(args: argparse.Namespace, config: EngineConfig, specs: ParameterSpecsConfig) -> int:
    """Extract values from a file and print flagged readings."""
    text = args.path.read_text(encoding="utf-8")

    if args.structured:
        values = parse_structured_response(text)
    else:
        extractor = AnchorExtractor.from_specs(specs, lookahead=config.lookahead)
        values = extractor.extract(text)

    # Empty result is the caller-level failure
    if not values:
        logger.error(f"No values could be extracted from {args.path}")
        return 1

    species = args.species or config.default_species.value
    readings = build_readings(values, specs, species, default_species=config.default_species)

    if args.json:
        print(json.dumps([reading.model_dump(mode="json") for reading in readings], ensure_ascii=False, indent=2))
        return 0

    for reading in readings:
        shown = reading.value if reading.value is not None else reading.value_text
        flag = reading.flag.value if reading.flag else "-"
        ref_range = format_reference_range(specs.get(reading.code), species, config.default_species)
        print(f"{reading.code:<6} {shown!s:>10} {reading.unit or '':<10} {flag:<7} ({ref_range})")
    return 0


def run_compare(args: argparse.Namespace, config: EngineConfig, specs: ParameterSpecsConfig) -> int:
    """Print a comparison table for readings stored in a CSV file."""
    df = pd.read_csv(args.path, dtype={"value": str})
    if "test_date" not in df.columns and "date" in df.columns:
        df = df.rename(columns={"date": "test_date"})

    species = args.species or config.default_species.value
    compared = compare_readings(df, specs, species, default_species=config.default_species)

    if compared.empty:
        logger.error(f"No comparable readings in {args.path}")
        return 1

    columns = ["code", "test_date", "value", "flag", "direction", "judgment"]
    print(compared[columns].to_string(index=False))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv_with_env(args.env)

    try:
        config = EngineConfig.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_dir)
    specs = ParameterSpecsConfig(config.parameter_specs_path)

    if args.species and Species.parse(args.species) == Species.OTHER:
        logger.info(f"Species '{args.species}' uses {config.default_species.value} reference ranges")

    if args.command == "extract":
        return run_extract(args, config, specs)
    return run_compare(args, config, specs)


if __name__ == "__main__":
    sys.exit(main())
