from .websocket_controller import (
    create_app as create_websocket_app,
    get_server_config,
)
from hypercorn.asyncio import serve
from tools.logger import *
from use_cases.terminal_session import SessionRegistry


async def main_gateway_task(config):
    """
    Main function to serve terminal sessions over websockets.

    Raises:
        OSError: if the listen address cannot be bound
    """
    registry = SessionRegistry(
        close_policy=config.close_policy,
        shell=config.shell,
        cols=config.cols,
        rows=config.rows,
    )
    app = create_websocket_app(registry)

    log_info(
        f"Socket server running at {config.host}:{config.port} "
        f"(shell {config.shell}, close policy {config.close_policy.value})"
    )
    await serve(app, get_server_config(config.host, config.port))
