"""Application entry point for the CS2KZ API server."""

from cs2kz.app import App
from cs2kz.config import Config
from cs2kz.logging import setup_logging
from cs2kz.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
