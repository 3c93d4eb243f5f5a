"""
Entry point for running the web service as a module.

Usage:
    python -m web [--port 8000] [--host 127.0.0.1] [--reload]
"""

import argparse
import logging
import os

import uvicorn


def main():
    parser = argparse.ArgumentParser(
        description="chorus: web service (workflow and refine API)"
    )
    parser.add_argument(
        "--port", type=int, default=8000,
        help="Port to serve on (default: 8000)"
    )
    parser.add_argument(
        "--host", type=str, default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload for development"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=os.environ.get("CHORUS_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"\n  chorus: web service")
    print(f"  API at http://{args.host}:{args.port}/api\n")

    uvicorn.run(
        "web.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
