"""Uvicorn runner for the Review service.

Serves the FastAPI app defined in ``app.py``. Settings (store, messaging
provider, review policy) come from the environment; see ``reviews.config``.

Usage:
    python src/server.py                      # Serve on 0.0.0.0:8000
    python src/server.py --port 8010          # Custom port
    python src/server.py --reload             # Auto-reload for development
"""

import argparse

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Review service HTTP server")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument("--workers", type=int, default=1, help="Number of worker processes")
    args = parser.parse_args()

    uvicorn.run(
        "app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=None if args.reload else args.workers,
        log_config=None,
    )


if __name__ == "__main__":
    main()
