# logging_config.py
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def setup_logging(level: str = "INFO", json_format: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Replace loguru's default handler with a stderr sink (JSON lines when json_format),
    plus an optional rotating file sink.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level,
        colorize=not json_format,
        serialize=json_format,
    )
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=CONSOLE_FORMAT,
            level=level,
            serialize=json_format,
            rotation="10 MB",
            retention="7 days",
        )
