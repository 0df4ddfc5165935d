# Logging configuration
import logging
import os
from datetime import datetime

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SIMPLE_FORMAT = '%(levelname)s - %(message)s'


def setup_logger(name='call_agent', log_file=None, log_dir=None, level=None):
    """Daily log file plus console output.

    LOG_DIR and LOG_LEVEL come from the environment when not passed in.
    Calling this again for the same name returns the configured logger.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = level or getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    logger.setLevel(level)
    logger.propagate = False

    if log_file is None:
        log_dir = log_dir or os.getenv('LOG_DIR', 'logs')
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"call_agent_{datetime.now().strftime('%Y%m%d')}.log")

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(SIMPLE_FORMAT))

    for handler in (file_handler, console_handler):
        handler.setLevel(level)
        logger.addHandler(handler)

    return logger


class CallLogger(logging.LoggerAdapter):
    """Prefixes every message with the call it belongs to"""

    def process(self, msg, kwargs):
        return f"Call {self.extra['call_id']} - {msg}", kwargs


def call_logger(call_id):
    return CallLogger(logger, {'call_id': call_id})


logger = setup_logger()
