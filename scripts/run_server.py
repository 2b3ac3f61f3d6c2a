#!/usr/bin/env python
"""Entry point for the GameShelf API server.

Usage:
    python scripts/run_server.py
    python scripts/run_server.py --host 0.0.0.0 --port 8080

Equivalent to ``uvicorn gameshelf.main:app``. Run a single process: background
imports and the cleanup cron live in-process, and startup fails any job still
marked running.
"""

import argparse
import sys
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the GameShelf API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    uvicorn.run(
        "gameshelf.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        # Keep the root logging configured by gameshelf.main
        log_config=None,
    )


if __name__ == "__main__":
    main()
