"""
AppGraph - Main entry point.

Usage:
    python -m infra.appgraph.main synth --manifest app.yaml
    appgraph validate --module infra.salad_app.app

Configuration is entirely via environment variables.
See config.py for all available settings.
"""

from __future__ import annotations

import logging
import sys
from typing import List, Optional

import json_log_formatter

from .config import AppGraphConfig

logger = logging.getLogger(__name__)


def setup_logging(config: AppGraphConfig) -> None:
    """Configure logging based on configuration.

    Logs go to stderr so that declarations printed to stdout stay clean.

    Args:
        config: AppGraph configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def main(argv: Optional[List[str]] = None) -> int:
    """Load configuration, set up logging and run the CLI."""
    from .tools.graph_cli import run

    try:
        config = AppGraphConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config)
    config.log_config()
    return run(argv, config)


if __name__ == "__main__":
    sys.exit(main())
