import os
import logging
import pytz
from datetime import datetime


class TimezoneFormatter(logging.Formatter):
    def __init__(self, fmt=None, datefmt=None, tz_name='UTC'):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.timezone = pytz.timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        record_time = datetime.fromtimestamp(record.created, self.timezone)
        return record_time.strftime(datefmt) if datefmt else record_time.isoformat()


def setup_logging(level=None, tz_name=None):
    """Configure the root logger once and return it.

    Level and timezone fall back to LOG_LEVEL and LOG_TIMEZONE from the
    environment.
    """
    logger = logging.getLogger()
    if not logger.handlers:
        formatter = TimezoneFormatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S %Z',
            tz_name=tz_name or os.environ.get('LOG_TIMEZONE', 'UTC'),
        )

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        logger.setLevel(level or os.environ.get('LOG_LEVEL', 'INFO'))
        logger.addHandler(handler)

    return logger
