"""
Runner for the cell export to site estimate pipeline.

Steps:
1. Read the cell export in chunks and keep records matching the radio /
   network filter
2. Parse records into observations (malformed records are skipped and counted)
3. Group observations by (mcc, mnc, site_id) and estimate each site's location
4. Write cleaned observations and site estimates (CSV and/or database)

Usage:
    python -m site_estimator.runner --input MLS-full-cell-export.csv --output-dir output

    # Only UK networks, with a config file for the database output
    python -m site_estimator.runner --config config/pipeline_config.json --mcc 234

    # Include UMTS cells as well as LTE
    python -m site_estimator.runner --radio LTE UMTS
"""
import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from site_estimator.core.aggregation import AggregationResult, aggregate
from site_estimator.data.loaders import RecordFilter, filter_records, read_cell_export
from site_estimator.data.parser import ParseResult, parse_records
from site_estimator.outputs.emitters import ResultEmitter, create_emitters
from site_estimator.utils.config import PipelineConfig, create_default_config, load_pipeline_config
from site_estimator.utils.exceptions import SiteEstimatorError
from site_estimator.utils.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def load_observations(config: PipelineConfig) -> ParseResult:
    """
    Read, filter and parse the configured cell export.

    Args:
        config: Pipeline configuration

    Returns:
        ParseResult with all observations of the export, in file order

    Raises:
        DataLoadError: If the export cannot be read
    """
    inputs = config.inputs
    record_filter = RecordFilter(
        radio_types=inputs.radio_types,
        mcc=inputs.mcc,
        mnc=inputs.mnc,
    )

    logger.info(
        "Loading observations",
        path=str(inputs.path),
        radio_types=inputs.radio_types,
        mcc=inputs.mcc,
        mnc=inputs.mnc,
    )

    result = ParseResult()
    filtered_out = 0
    for chunk in read_cell_export(inputs.path, chunk_size=inputs.chunk_size, has_header=inputs.has_header):
        records = filter_records(chunk, record_filter)
        filtered_out += len(chunk) - len(records)
        result.extend(parse_records(records, start_index=result.report.total_records))

    logger.info("Records filtered out", count=filtered_out)
    result.report.log_summary()
    return result


def estimate_sites(config: PipelineConfig, parsed: ParseResult) -> AggregationResult:
    """Aggregate parsed observations into site estimates."""
    result = aggregate(parsed.observations, chunk_size=config.processing.chunk_size)
    result.report.log_summary()
    return result


def emit_results(
    emitters: List[ResultEmitter],
    parsed: ParseResult,
    estimated: AggregationResult,
) -> None:
    """Hand observations and site estimates to every emitter."""
    for emitter in emitters:
        emitter.emit_sites(estimated.sites)
        emitter.emit_observations(parsed.observations)


def run(config: PipelineConfig) -> dict:
    """
    Run the full pipeline.

    Args:
        config: Pipeline configuration

    Returns:
        Dictionary with 'parsed' (ParseResult) and 'estimated' (AggregationResult)

    Raises:
        SiteEstimatorError: On fatal input or output failures
    """
    start_time = datetime.now()

    logger.info("=" * 80)
    logger.info("SITE ESTIMATION")
    logger.info("=" * 80)

    parsed = load_observations(config)
    estimated = estimate_sites(config, parsed)

    emitters = create_emitters(config)
    try:
        emit_results(emitters, parsed, estimated)
    finally:
        for emitter in emitters:
            close = getattr(emitter, 'close', None)
            if close is not None:
                close()

    elapsed = datetime.now() - start_time
    logger.info("Summary",
                elapsed_seconds=elapsed.total_seconds(),
                records=parsed.report.total_records,
                observations=len(parsed.observations),
                skipped_records=parsed.report.skipped_records,
                defaulted_cell_ids=parsed.report.defaulted_cell_ids,
                sites=len(estimated.sites),
                fallback_sites=estimated.report.fallback_count)

    return {
        'parsed': parsed,
        'estimated': estimated,
    }


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Load the config file (or defaults) and apply command-line overrides."""
    if args.config is not None:
        config = load_pipeline_config(args.config)
    else:
        config = create_default_config(
            input_path=args.input or Path('MLS-full-cell-export.csv'),
            output_path=args.output_dir or Path('output'),
        )

    updates = {}
    if args.input is not None:
        updates['path'] = args.input
    if args.radio is not None:
        updates['radio_types'] = args.radio
    if args.mcc is not None:
        updates['mcc'] = args.mcc
    if args.mnc is not None:
        updates['mnc'] = args.mnc
    if args.no_header:
        updates['has_header'] = False
    if updates:
        config.inputs = config.inputs.model_copy(update=updates)

    if args.output_dir is not None:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        config.outputs = config.outputs.model_copy(update={'base_path': args.output_dir})

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='Site Estimator - clean a cell export and estimate site locations',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Estimate LTE sites from an export
  python -m site_estimator.runner --input MLS-full-cell-export.csv --output-dir output

  # Only one country, with database output configured in a config file
  python -m site_estimator.runner --config config/pipeline_config.json --mcc 234
        """
    )

    parser.add_argument(
        '--input',
        type=Path,
        default=None,
        help='Cell export CSV (default: from config, else MLS-full-cell-export.csv)'
    )

    parser.add_argument(
        '--output-dir',
        type=Path,
        default=None,
        help='Directory for CSV outputs (default: from config, else output)'
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Pipeline config file (.json or .yaml)'
    )

    parser.add_argument(
        '--radio',
        nargs='+',
        default=None,
        help='Radio types to keep (default: LTE)'
    )

    parser.add_argument(
        '--mcc',
        nargs='+',
        default=None,
        help='Mobile country codes to keep (default: all)'
    )

    parser.add_argument(
        '--mnc',
        nargs='+',
        default=None,
        help='Mobile network codes to keep (default: all)'
    )

    parser.add_argument(
        '--no-header',
        action='store_true',
        help='The export has no header row'
    )

    parser.add_argument(
        '--env-file',
        type=Path,
        default=Path('.env'),
        help='Environment file with database credentials (default: .env)'
    )

    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (default: INFO)'
    )

    parser.add_argument(
        '--json-logs',
        action='store_true',
        help='Emit JSON logs'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=None,
        help='Also write logs to this file'
    )

    args = parser.parse_args(argv)

    configure_logging(log_level=args.log_level, log_file=args.log_file, json_output=args.json_logs)

    if args.env_file.exists():
        load_dotenv(args.env_file)
        logger.info("Loaded environment file", path=str(args.env_file))

    try:
        config = build_config(args)
        run(config)
        return 0
    except (SiteEstimatorError, FileNotFoundError, ValueError) as e:
        logger.error("Execution failed", error=str(e), exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
