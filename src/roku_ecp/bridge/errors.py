"""
Bridge boundary errors
"""


class BridgeError(Exception):
    """Request that ends without reaching the device, or a failed command

    `event_status` is the status recorded in the stats ring for this request.
    """

    def __init__(self, status_code: int, message: str, event_status: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.event_status = event_status
