#!/usr/bin/env python3
"""
Entry point that starts the FastAPI server
"""
import argparse
import sys
from pathlib import Path

# make the project root importable
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the chainbolt API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="auto-reload on code changes")
    args = parser.parse_args()

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
