"""Run the relay with uvicorn: ``python -m thinkrelay``."""

import uvicorn

from .main import create_app, load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
