from typing import Optional


class SshTermError(Exception):
    pass


class AuthError(SshTermError):
    """Ticket acquisition failed; no connection was attempted."""


class TransportError(SshTermError):
    """The streaming socket failed to open or closed unexpectedly."""


class ProtocolError(SshTermError):
    """A frame could not be decoded as any known kind."""


class PlaybackParseError(SshTermError):
    def __init__(self, message: str, line_no: Optional[int] = None):
        super().__init__(message)
        self.line_no = line_no


class ApiError(SshTermError):
    def __init__(self, message: str, status: Optional[int] = None, path: str = ""):
        super().__init__(message)
        self.status = status
        self.path = path


class SessionExpiredError(ApiError):
    pass
