from tools.logger import log_info


def init(app, registry):
    """
    Register read-only HTTP routes for probing the gateway.
    """
    log_info("Registering HTTP routes: /health, /sessions")

    @app.route("/health", methods=["GET"])
    async def health():
        return {"status": "ok", "sessions": registry.get_session_count()}

    @app.route("/sessions", methods=["GET"])
    async def sessions():
        return registry.list_sessions()
