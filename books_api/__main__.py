import argparse

import uvicorn

from .config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(prog="books-api", description="In-memory book catalog HTTP service")
    parser.add_argument("--host", default=None, help="bind host (default: APP_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="bind port (default: APP_PORT or 2112)")
    args = parser.parse_args()

    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port

    uvicorn.run("books_api.app:app", host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
