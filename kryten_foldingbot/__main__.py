"""CLI entry point for kryten-foldingbot."""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .config import load_config
from .main import FoldingBotApp

DEFAULT_CONFIG_PATHS = (
    "/etc/kryten/kryten-foldingbot/config.yaml",
    "./config.yaml",
)

logger = logging.getLogger("foldingbot")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kryten-foldingbot",
        description="Folding@home team chat bot for CyTube",
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Check the config file and exit",
    )
    return parser.parse_args(argv)


def find_config(explicit: str | None) -> str | None:
    """Return the explicit config path or the first default that exists."""
    if explicit:
        return explicit
    return next((p for p in DEFAULT_CONFIG_PATHS if Path(p).exists()), None)


def validate(config_path: str) -> int:
    """Load *config_path* once; exit status 0 when it is valid."""
    try:
        config = load_config(config_path)
    except Exception as e:
        logger.error("Config validation failed: %s", e)
        return 1
    logger.info(
        "Config is valid: bot %s, %d channel(s), stats API %s",
        config.bot.username, len(config.channels), config.folding.api_uri,
    )
    return 0


async def serve(config_path: str) -> None:
    """Run the bot until it is stopped by a signal or the client exits."""
    app = FoldingBotApp(config_path)

    # No add_signal_handler on Windows; Ctrl+C raises KeyboardInterrupt there
    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(app.stop()))

    try:
        await app.start()
    finally:
        await app.stop()


def main(argv: list[str] | None = None) -> None:
    """Sync entry point for pyproject.toml [project.scripts]."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    config_path = find_config(args.config)
    if config_path is None:
        logger.error("No config file found. Use --config or place config.yaml in CWD.")
        sys.exit(1)

    if args.validate_config:
        sys.exit(validate(config_path))

    try:
        asyncio.run(serve(config_path))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
