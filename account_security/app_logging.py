"""Log output formatting."""

import logging
from typing import Union

from pythonjsonlogger import jsonlogger


def setup_logger(level: Union[int, str] = logging.INFO,
                 json: bool = True) -> logging.Logger:
    """Attach a stream handler to the root logger."""
    logHandler = logging.StreamHandler()
    if json:
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s'
        )
    logHandler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.addHandler(logHandler)
    logger.setLevel(level)
    return logger
