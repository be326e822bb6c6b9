"""Logging setup for the stock ledger service."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

NEGATIVE_STOCK_LOGGER = "stockledger.alerts.negative_stock"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach one stream handler to the ``stockledger`` logger.

    Safe to call more than once: an existing handler is reused and only the
    level is updated.
    """
    logger = logging.getLogger("stockledger")
    logger.setLevel(level.upper())

    if not any(getattr(h, "_stockledger", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._stockledger = True
        logger.addHandler(handler)

    return logger
