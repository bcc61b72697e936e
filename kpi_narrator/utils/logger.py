import logging
import os

ROOT = "kpi_narrator"
LEVEL_ENV = "KPI_NARRATOR_LOG_LEVEL"


def set_level(level: str) -> None:
    """Set the level for every kpi_narrator logger at once."""
    logging.getLogger(ROOT).setLevel(
        getattr(logging, level.upper(), logging.INFO)
    )


def get_logger(name: str):
    """
    Logger under the `kpi_narrator.` namespace with one stream handler.

    Children inherit their level from the package logger, which starts at
    $KPI_NARRATOR_LOG_LEVEL (default INFO).
    """
    root = logging.getLogger(ROOT)
    if root.level == logging.NOTSET:
        set_level(os.getenv(LEVEL_ENV) or "INFO")

    logger = logging.getLogger(f"{ROOT}.{name}")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s — %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)

    # CLI installs a root handler too; avoid printing twice
    logger.propagate = False

    return logger
