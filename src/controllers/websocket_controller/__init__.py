from .listener import init as init_listener
from .routes import init as init_routes
from hypercorn.config import Config
from quart import Quart
from tools.logger import *
import logging


class HealthCheckFilter(logging.Filter):
    """Filter to suppress health probe lines from the hypercorn access log."""

    def filter(self, record):
        message = record.getMessage().lower()
        if "/health" in message:
            return False
        return True


def _configure_server_logging():
    """Configure hypercorn loggers to filter health probe messages."""
    health_filter = HealthCheckFilter()

    for logger_name in ["hypercorn.access"]:
        logger = logging.getLogger(logger_name)
        logger.addFilter(health_filter)


def init(app, registry):
    """
    Initialize the Websocket controller by registering routes.
    """
    log_info("Initializing Websocket Controller...")

    init_listener(app, registry)
    init_routes(app, registry)

    @app.after_serving
    async def shutdown():
        sessions = await registry.terminate_all()
        log_info(f"Server stopping, terminated {len(sessions)} sessions")

    log_info("Websocket Controller initialized successfully.")


def create_app(registry) -> Quart:
    app = Quart("terminal_gateway")
    init(app, registry)
    return app


def get_server_config(host, port) -> Config:
    _configure_server_logging()

    config = Config()
    config.bind = [f"{host}:{port}"]
    config.accesslog = "-"
    config.errorlog = "-"
    config.websocket_ping_interval = 20
    return config
