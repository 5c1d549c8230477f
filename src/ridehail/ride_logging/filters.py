"""Record filters: mask rider contact details and default the correlation id."""

import logging
import re


class PIIFilter(logging.Filter):
    """Replaces emails and Malaysian phone numbers in the message with placeholders.

    Registration and login log lines can carry both.
    """

    EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
    # Malaysian mobile and landline formats: +60123456789, 012-345 6789, 0312345678
    PHONE_PATTERN = re.compile(r"(?<![\w-])\+?6?0\d{1,2}[-.\s]?\d{3,4}[-.\s]?\d{4}\b")

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            msg = record.msg
            if "@" in msg:
                msg = self.EMAIL_PATTERN.sub("[EMAIL]", msg)
            if any(c.isdigit() for c in msg):
                msg = self.PHONE_PATTERN.sub("[PHONE]", msg)
            record.msg = msg
        return True


class DefaultCorrelationFilter(logging.Filter):
    """Fills correlation_id with "-" for records logged outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True
