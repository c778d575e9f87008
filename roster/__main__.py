"""Entry point for running the roster service as a module."""

import argparse
import os
import sys

import uvicorn

from roster.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Roster - time-bound role subscriptions for a chat community"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Port to bind to (default: 8080)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="Log output format (default: json)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/roster.yaml"),
        help="Path to roster.yaml configuration file (default: config/roster.yaml)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Enable auto-reload for development (default: false)",
    )
    return parser


def main() -> None:
    """Main entry point for the roster service."""
    args = build_parser().parse_args()

    # Settings are read by the app process, which may be a reloader child
    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    configure_logging(log_level=args.log_level, json_format=args.log_format == "json")
    logger.info(
        "roster_launching",
        host=args.host,
        port=args.port,
        config=args.config,
        reload=args.reload,
    )

    try:
        uvicorn.run(
            "roster.main:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        logger.info("roster_interrupted")
        sys.exit(0)
    except Exception as e:
        logger.error("roster_start_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
