"""
Start the Lead Routing API with Uvicorn.

Usage:
    python scripts/run_server.py
    python scripts/run_server.py --port 8080 --reload

PORT from the environment is used when --port is not given (default 8000).
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.logging_config import configure_logging


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the Lead Routing API")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: $PORT or 8000)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    args = parser.parse_args(argv)

    # Configure before uvicorn starts so workers inherit it
    configure_logging()

    port = args.port or int(os.environ.get("PORT", 8000))

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=port,
        reload=args.reload,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
