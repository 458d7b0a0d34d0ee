"""Core functionality"""
from .errors import RmoteError, SetupError, AuthError, ConnectError, TraversalError, RemoteOperationError
from .ssh_manager import SSHManager

__all__ = [
    "RmoteError", "SetupError", "AuthError", "ConnectError", "TraversalError",
    "RemoteOperationError",
    "SSHManager",
]
