import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
QUIET_LOGGERS = ("sqlalchemy", "httpx", "httpcore", "aiosqlite")


def setup_logging(level: str = "INFO", *, engine_level: str | None = None) -> None:
    """Send application logs to stdout.

    ``engine_level`` sets the ``margin_ledger`` logger separately so ledger
    recomputation can be traced without turning up the whole service.
    Calling this again replaces the handler installed by the previous call.
    """
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "_margin_ledger_handler", False):
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._margin_ledger_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    logging.getLogger("margin_ledger").setLevel((engine_level or level).upper())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
