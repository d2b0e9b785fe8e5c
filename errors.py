"""Exception hierarchy shared by the ads modules."""


class ChatError(Exception):
    """Base exception"""
    pass


class ConfigurationError(ChatError):
    """Missing or invalid configuration"""
    pass


class APIError(ChatError):
    """API communication error"""
    pass


class TransportError(APIError):
    """HTTP layer failure: connection, TLS, timeout or non-success status"""
    pass


class BufferOverflow(ChatError):
    """A single stream line reached the buffer capacity before its newline"""

    def __init__(self, capacity: int, pending: int):
        self.capacity = capacity
        self.pending = pending
        super().__init__(
            f"Stream buffer overflow: line reached {pending} bytes (capacity {capacity})"
        )
