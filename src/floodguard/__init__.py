"""
FloodGuard - flood and spam protection for OneBot group chats.

This package provides:
- Per-(group, user) message history with automatic expiry
- Eight time-windowed flood heuristics
- Warn, mute or kick actions through the OneBot HTTP API
- A small admin API for settings and statistics
"""

from floodguard.config import Config, load_config

__version__ = "1.0.0"
__all__ = ["Config", "load_config", "main"]


def main(argv: list[str] | None = None) -> None:
    """
    Command line entry point.

    Loads the configuration, sets up logging and serves until SIGINT or
    SIGTERM. Exits with status 1 on a configuration error or a crash.
    """
    import argparse
    import dataclasses
    import signal
    import sys

    from floodguard.guard import FloodGuard
    from floodguard.utils.logging import get_logger, setup_logging

    parser = argparse.ArgumentParser(prog="floodguard", description="Flood protection for OneBot group chats")
    parser.add_argument("--env-file", help="Read configuration from this .env file")
    parser.add_argument("--dry-run", action="store_true", help="Log actions instead of calling OneBot")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env_file)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.dry_run:
        config = dataclasses.replace(config, dry_run=True)

    setup_logging(config)
    logger = get_logger(__name__)
    logger.info("FloodGuard v%s forwarding actions to %s", __version__, config.onebot_api_url)

    guard = FloodGuard(config)

    def on_sigterm(signum: int, frame: object) -> None:
        raise KeyboardInterrupt

    # Same exit path as Ctrl+C, so guard.run() reaches its close()
    signal.signal(signal.SIGTERM, on_sigterm)

    try:
        guard.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception as e:
        logger.exception("FloodGuard crashed: %s", e)
        sys.exit(1)
