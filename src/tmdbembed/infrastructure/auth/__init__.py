from .credentials import authenticate
from .login_governor import LoginAttemptGovernor
from .sessions import SessionStore

__all__ = ["LoginAttemptGovernor", "SessionStore", "authenticate"]
