"""
Structured logging configuration using structlog.

Runs over a full cell export are long batch jobs: JSON output is meant for
a log collector, the console renderer for development. Site keys in event
context are rendered as ``mcc-mnc-site_id`` so they read the same in both.
"""
import sys
import logging
import structlog
from pathlib import Path
from typing import Optional

SITE_KEY_FIELDS = ('mcc', 'mnc', 'site_id')


def _is_site_key(value) -> bool:
    return isinstance(value, tuple) and getattr(value, '_fields', None) == SITE_KEY_FIELDS


def format_site_key(value) -> str:
    """Render a site key as ``mcc-mnc-site_id``, e.g. ``234-10-100``."""
    return "-".join(str(part) for part in value)


def format_site_keys(logger, method_name, event_dict):
    """structlog processor rendering SiteKey values (and lists of them) as strings."""
    for name, value in event_dict.items():
        if _is_site_key(value):
            event_dict[name] = format_site_key(value)
        elif isinstance(value, list) and value and all(_is_site_key(item) for item in value):
            event_dict[name] = [format_site_key(item) for item in value]
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    json_output: bool = False
):
    """
    Configure structured logging for a pipeline run.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file receiving a copy of every log line
        json_output: If True, output JSON logs; else human-readable console

    Example:
        >>> configure_logging(log_level="INFO", log_file=Path("logs/site_estimate.log"))
        >>> logger = get_logger(__name__)
        >>> logger.warning("zero_sample_observations_excluded", site=SiteKey(234, 10, 100), excluded=2)
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(level)

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        format_site_keys,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str):
    """
    Get a structured logger for a module.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("records_parsed", parsed=1204331, skipped=17)
    """
    return structlog.get_logger(name)
