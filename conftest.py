"""Pytest configuration for test logging."""
from ratcalc.config import LOG_LEVEL
from ratcalc.logging_config import configure_logging

configure_logging(LOG_LEVEL)
