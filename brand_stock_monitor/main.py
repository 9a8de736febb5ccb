from __future__ import annotations

import logging

from . import config
from .config import Settings
from .server import MonitorApp, MonitorServer

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(settings: Settings) -> None:
    """Log to the console and append to ``settings.log_file``."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    except OSError as e:
        logging.getLogger(__name__).warning("Cannot open log file %s: %s", settings.log_file, e)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def main() -> None:
    """Load settings and serve until interrupted."""
    settings = config.load_settings()
    setup_logging(settings)
    logger = logging.getLogger(__name__)

    app = MonitorApp.create(settings)
    if app.config_error is not None:
        logger.error("Starting in misconfigured mode; every request will return 500 until fixed.")
    else:
        logger.info(
            "Starting brand inventory monitor for %d brands (state file %s)",
            len(app.monitor.brands()), settings.state_file,
        )

    server = MonitorServer(app)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down.")
    finally:
        if server.httpd is not None:
            server.httpd.server_close()


if __name__ == "__main__":
    main()
