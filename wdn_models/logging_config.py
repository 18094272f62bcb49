"""
Centralized logging configuration for water network models.

All output goes to stderr so that solver logs written to stdout stay
readable.
"""

import logging
import sys


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level=logging.INFO):
    """
    Configure the root logger with a single stderr handler.

    Args:
        level: Logging level for the root logger
    """
    root_logger = logging.getLogger()

    # Remove ALL existing handlers from root logger
    root_logger.handlers = []

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger.addHandler(stderr_handler)
    root_logger.setLevel(level)

    for logger_name in ('wdn_models', 'pyomo'):
        logging.getLogger(logger_name).propagate = True

    # Suppress verbose loggers
    logging.getLogger('pyomo.repn.plugins.nl_writer').setLevel(logging.ERROR)
    logging.getLogger('pyomo.core').setLevel(logging.WARNING)


def silence():
    """Only report errors from the model builders and Pyomo."""
    logging.getLogger('wdn_models').setLevel(logging.ERROR)
    logging.getLogger('pyomo').setLevel(logging.ERROR)


def get_configured_logger(name):
    """
    Get a logger that propagates to the root stderr handler.

    Args:
        name: Logger name (usually __name__)

    Returns:
        logging.Logger: Configured logger
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    # Don't add any handlers - use root's stderr handler
    logger.handlers = []
    return logger
