"""
Server startup script.

Usage:
    callhub-server                  # start uvicorn on $PORT (default 8000)
    callhub-server --init-db        # create tables first
    callhub-server --seed           # create tables and demo data first
"""

from __future__ import annotations

import argparse
import asyncio
import os

import uvicorn

from callhub.database import init_db
from callhub.logger import setup_logging
from callhub.retry import with_db_retry


def main():
    parser = argparse.ArgumentParser(description="Start the CallHub API server")
    parser.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")))
    parser.add_argument("--init-db", action="store_true", help="Create tables before starting")
    parser.add_argument("--seed", action="store_true", help="Create tables and demo data before starting")
    parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    args = parser.parse_args()

    setup_logging()

    if args.seed:
        from callhub.seed import seed

        tokens = asyncio.run(seed())
        for email, token in tokens.items():
            print(f"  {email:<28} {token}")
    elif args.init_db:
        asyncio.run(with_db_retry(init_db))

    uvicorn.run("callhub.app:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
