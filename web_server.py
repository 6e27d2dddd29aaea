#!/usr/bin/env python3
"""
CLI tool to start the timekeeper FastAPI web server.

Usage:
    python3 web_server.py                    # Start with defaults
    python3 web_server.py --host 0.0.0.0     # Listen on all interfaces
    python3 web_server.py --port 8080        # Use custom port
    python3 web_server.py --reload           # Enable auto-reload for development
    python3 web_server.py --init-db          # Create tables without Alembic (development)

Environment Variables:
    TIMEKEEPER_DB_URL: Database URL (default: sqlite:///./timekeeper.db)
    TIMEKEEPER_ENV: Environment (production/development, default: development)
    TIMEKEEPER_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
    TIMEKEEPER_HORIZON_DAYS: Materialization horizon in days (default: 730)

Run `alembic upgrade head` once before the first start, or pass --init-db
for a throwaway development database.
"""

import argparse
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def load_env_file() -> None:
    """
    Load environment variables from backend/.env file.

    Variables already set in the environment take precedence.
    """
    env_path = Path(__file__).parent / "backend" / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def parse_arguments(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Arguments:
        --host: Host to bind (default: 127.0.0.1)
        --port: Port to bind (default: 8000)
        --reload: Enable auto-reload for development (default: False)
    """
    parser = argparse.ArgumentParser(
        description="Start the timekeeper FastAPI web server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start development server with auto-reload
  python3 web_server.py --reload

  # Start server on all interfaces (accessible from network)
  python3 web_server.py --host 0.0.0.0 --port 8000

Environment Variables:
  TIMEKEEPER_DB_URL        Database URL
  TIMEKEEPER_ENV           Environment (production/development)
  TIMEKEEPER_LOG_LEVEL     Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        """
    )

    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1). "
             "Use 0.0.0.0 to listen on all interfaces."
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind the server to (default: 8000)"
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development. Not recommended for production."
    )

    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables from the models before starting. "
             "Use Alembic migrations for production databases."
    )

    return parser.parse_args(argv)


def main() -> None:
    """Main entry point for the web server CLI tool."""
    args = parse_arguments()

    # Ensure the repo root is on sys.path so "backend.src.main" is importable
    repo_root = str(Path(__file__).parent)
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)

    load_env_file()

    if args.init_db:
        from backend.src.db.database import init_db
        init_db()
        print("Database tables created")

    print("\nStarting timekeeper web server...")
    print(f"Host: {args.host}")
    print(f"Port: {args.port}")
    print(f"Auto-reload: {'enabled' if args.reload else 'disabled'}")
    print(f"\nAPI documentation: http://{args.host}:{args.port}/docs")
    print(f"Health check: http://{args.host}:{args.port}/health")
    print("\nPress CTRL+C to stop the server\n")

    try:
        uvicorn.run(
            "backend.src.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="info",
        )
    except KeyboardInterrupt:
        print("\n\nServer stopped by user (CTRL+C)")
        sys.exit(0)


if __name__ == "__main__":
    main()
