"""
Gateway configuration.

Defaults and the GatewayConfig container built from command line arguments.
"""

import os
from dataclasses import dataclass
from enum import Enum


class ClosePolicy(Enum):
    """What the registry terminates when a client connection closes."""
    GLOBAL = "global"    # every tracked terminal process
    SESSION = "session"  # only the closing connection's process


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_COLS = 80
DEFAULT_ROWS = 24
DEFAULT_CLOSE_POLICY = ClosePolicy.GLOBAL


def default_shell() -> str:
    return os.environ.get("SHELL") or "/bin/bash"


@dataclass
class GatewayConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    close_policy: ClosePolicy = DEFAULT_CLOSE_POLICY
    shell: str = ""
    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.shell:
            self.shell = default_shell()
        if isinstance(self.close_policy, str):
            self.close_policy = ClosePolicy(self.close_policy)

    @classmethod
    def from_args(cls, args) -> "GatewayConfig":
        """Build a config from an argparse namespace."""
        return cls(
            host=args.host,
            port=args.port,
            close_policy=ClosePolicy(args.close_policy),
            shell=args.shell or "",
            log_level=args.log_level,
        )
