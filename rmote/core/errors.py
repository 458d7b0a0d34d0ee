"""
Exception hierarchy for rmote
"""


class RmoteError(Exception):
    """Base class for every error rmote raises on purpose."""


class SetupError(RmoteError):
    """Startup failed: connection, authentication, remote root, watcher."""


class ConnectError(SetupError):
    """TCP connect or SSH handshake failed."""


class AuthError(SetupError):
    """The server rejected our credentials."""


class TraversalError(RmoteError):
    """A local directory or its metadata could not be read during full sync."""


class RemoteOperationError(RmoteError):
    """A remote mkdir / unlink / rmdir failed and the post-check confirms it."""

    def __init__(self, op: str, path, reason=None):
        self.op = op
        self.path = str(path)
        msg = f"remote {op} failed for {self.path}"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(msg)
