"""
Exceptions raised by the rotation engine
"""


class PoolExhausted(Exception):
    """No credential can be selected (the pool is empty)"""


class TransportFailure(Exception):
    """The upstream could not be reached or did not answer in time"""

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class InvalidPayload(ValueError):
    """The inbound request body is not a JSON object"""
