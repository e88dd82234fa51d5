"""Main entry point for the Word Garden API server."""
import argparse
import logging
from typing import List, Optional

import uvicorn

from wordgarden.app import create_app
from wordgarden.config import ensure_directories, settings
from wordgarden.logging_config import setup_logging
from wordgarden.monitoring import start_monitoring

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="wordgarden", description="Word Garden vocabulary API")
    parser.add_argument("command", nargs="?", default="serve", choices=["serve"])
    parser.add_argument("--host", default=settings.api.host)
    parser.add_argument("--port", type=int, default=settings.api.port)
    parser.add_argument("--metrics-port", type=int, default=settings.api.metrics_port)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Run the API under uvicorn."""
    args = parse_args(argv)

    ensure_directories()
    setup_logging("Starting Word Garden API ...")

    if args.metrics_port:
        start_monitoring(args.metrics_port)

    logger.info(f"Serving on {args.host}:{args.port}")
    # uvicorn keeps the logging configured above
    uvicorn.run(create_app(), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
