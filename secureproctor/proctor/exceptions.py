"""
Proctoring Errors - Recoverable error taxonomy for the integrity engine
"""

from typing import Optional


class ProctorError(Exception):
    """Base class for all proctoring engine errors"""


class InvalidTransition(ProctorError):
    """Operation attempted while the session is in the wrong state"""

    def __init__(self, session_id: str, status: str, operation: str):
        self.session_id = session_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} session {session_id} while it is {status}"
        )


class NotFound(ProctorError):
    """Operation referenced an unknown session or candidate id"""

    def __init__(self, kind: str, object_id: str):
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"{kind.capitalize()} not found: {object_id}")


class SessionNotFinal(ProctorError):
    """Report requested for a session that has not finished"""

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(
            f"Session {session_id} is {status}; reports require a completed or terminated session"
        )


class StoreUnavailable(ProctorError):
    """Persistence layer could not be reached"""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)
