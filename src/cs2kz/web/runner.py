"""Uvicorn server runner."""

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from cs2kz.app import App
from cs2kz.config import Config
from cs2kz.web.server import create_fastapi_app


def run_server(app: App, config: Config) -> None:
    fastapi_app = create_fastapi_app(app, config)

    log_config = LOGGING_CONFIG.copy()
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"

    uvicorn.run(
        fastapi_app,
        host=config.host,
        port=config.port,
        log_config=log_config,
        log_level="debug" if config.debug else "info",
        access_log=config.debug,
        ws_ping_interval=config.websocket_heartbeat_interval,
    )
