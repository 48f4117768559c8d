"""
Error taxonomy for device control
"""

from typing import Optional


class RokuError(Exception):
    """Base class for all device control errors"""


class RokuHttpError(RokuError):
    """The device answered with a non-2xx status"""

    def __init__(self, status: int, body: Optional[str] = None):
        super().__init__(f"Roku request failed with status {status}")
        self.status = status
        self.body = body


class RokuNetworkError(RokuError):
    """Transport failure or timeout talking to the device"""


class RokuValidationError(RokuError):
    """Caller-side misuse; never retried"""
