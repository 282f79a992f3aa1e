import asyncio

from quart import websocket
from tools.logger import log_debug, log_error, log_info
from controllers.websocket_controller.connection import (
    INTERNAL_ERROR,
    WebSocketConnection,
)

PATH = "/"


def _retrieve_error(task: asyncio.Task):
    if task.cancelled():
        return None
    return task.exception()


def init(app, registry):
    """
    Accept terminal clients on the websocket route.

    Every accepted socket gets its own session, created eagerly before any
    client frame is read. The handler lives until the client disconnects or
    the session terminates, whichever comes first.
    """
    log_info(f"Registering websocket route: {PATH}")

    @app.websocket(PATH)
    async def terminal_socket():
        connection = WebSocketConnection(websocket._get_current_object())
        await connection.accept()
        log_info(f"Socket connection {connection.connection_id} established")

        try:
            session = await registry.create_session(connection)
        except asyncio.CancelledError:
            connection.mark_closed()
            raise
        except Exception as e:
            log_error(f"Dropping connection {connection.connection_id}: {e}")
            await connection.close(INTERNAL_ERROR)
            return

        reader = asyncio.create_task(connection.receive_loop())
        terminated = asyncio.create_task(session.wait_terminated())
        try:
            done, _ = await asyncio.wait(
                {reader, terminated}, return_when=asyncio.FIRST_COMPLETED
            )
            if reader in done:
                error = _retrieve_error(reader)
                if error:
                    log_debug(f"Receive loop for {connection.connection_id} ended: {error}")
                connection.handle_disconnect()
        except asyncio.CancelledError:
            # Quart cancels the handler when the client disconnects
            connection.handle_disconnect()
            raise
        finally:
            reader.cancel()
            terminated.cancel()
