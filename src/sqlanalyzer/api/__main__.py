"""
Entry point for running the analysis service directly.

Usage:
    python -m sqlanalyzer.api
    python -m sqlanalyzer.api --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import argparse

import uvicorn

from sqlanalyzer.api.settings import get_api_settings


def main() -> None:
    """Run the analysis HTTP service."""
    settings = get_api_settings()

    parser = argparse.ArgumentParser(description="sqlanalyzer HTTP service")
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Bind port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = parser.parse_args()

    print(f"Starting sqlanalyzer on http://{args.host}:{args.port}")
    print(f"  API docs: http://{args.host}:{args.port}/docs")
    print()

    uvicorn.run(
        "sqlanalyzer.api.app:create_app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        factory=True,
    )


if __name__ == "__main__":
    main()
