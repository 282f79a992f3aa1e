## Main Execution Script
from controllers import main_gateway_task
from tools.config import DEFAULT_HOST, DEFAULT_PORT, ClosePolicy, GatewayConfig
from tools.logger import *
import argparse
import asyncio
import sys


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Terminal Gateway")
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help="Port to listen on (use -p or --port)",
    )
    parser.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help="Address to bind",
    )
    parser.add_argument(
        "--close-policy",
        choices=[policy.value for policy in ClosePolicy],
        default=ClosePolicy.GLOBAL.value,
        help="Terminate every session (global) or only the closing one (session) on disconnect",
    )
    parser.add_argument(
        "--shell",
        default=None,
        help="Shell to spawn for each session (defaults to $SHELL)",
    )
    parser.add_argument(
        "-l",
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (use -l or --log-level)",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    set_log_level(args.log_level)
    config = GatewayConfig.from_args(args)

    try:
        asyncio.run(main_gateway_task(config))
    except KeyboardInterrupt:
        log_warning("Keyboard interrupt received. Closing sessions and exiting.")
    except OSError as e:
        log_critical(f"Unable to listen on {config.host}:{config.port}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
