"""Centralized logging configuration."""
import logging


def configure_logging(level: str = "WARNING"):
    """Configure the root logger and the ratcalc loggers."""
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s [%(levelname)8s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        force=True  # Override any existing configuration
    )

    logging.getLogger("ratcalc").setLevel(log_level)
    logging.getLogger().setLevel(log_level)
