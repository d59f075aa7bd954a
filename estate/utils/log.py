# estate/utils/log.py
"""Logging setup shared by services and routers."""
import logging

from ..config import settings


def get_logger(name=__name__):
    level = (settings.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

