import logging

from .config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure logging for the engine and CLI based on settings.

    The format includes timestamp, log level, logger name, and message.
    """
    log_level_name = settings.log_level.upper()
    level = getattr(logging, log_level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    # Keep the package logger at the configured level even if the root
    # logger was configured earlier
    logging.getLogger("geostamp").setLevel(level)
