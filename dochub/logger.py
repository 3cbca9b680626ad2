# This module configures logging for the whole service
import logging
import sys

_INITIALIZED_FLAG = "_dochub_inited"


def init_logger(level: str = "INFO") -> logging.Logger:
    """
    Idempotent logger init:
    - Always logs to stdout.
    - Respects the configured LOG_LEVEL.
    """
    root = logging.getLogger()
    if getattr(root, _INITIALIZED_FLAG, False):
        return logging.getLogger("dochub")

    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    root.setLevel(lvl)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(lvl)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    )
    root.addHandler(handler)

    # boto is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    setattr(root, _INITIALIZED_FLAG, True)
    logger = logging.getLogger("dochub")
    logger.debug("Logger initialized")
    return logger
