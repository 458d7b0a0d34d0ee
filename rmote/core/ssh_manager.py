"""
SSH connection manager: key-based login and the SFTP channel
"""
import os
from typing import Optional

import paramiko

from .. import config as _cfg
from ..utils.logging import log, warn
from .errors import AuthError, ConnectError


class SSHManager:
    """
    Wraps paramiko SSHClient + SFTPClient.
    Sends SSH keep-alives so an idle watch session is not dropped by NAT.

    Connection settings default to the values in rmote.config at the time
    the manager is created.
    """

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 user: Optional[str] = None, key_path: Optional[str] = None,
                 passphrase: Optional[str] = None):
        self.host = host or _cfg.SSH_HOST
        self.port = port or _cfg.SSH_PORT
        self.user = user or _cfg.SSH_USER
        self.key_path = key_path if key_path is not None else _cfg.SSH_KEY_PATH
        self.passphrase = passphrase if passphrase is not None else _cfg.SSH_PASSPHRASE
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    # ── connection ─────────────────────────────────────────────────────────

    def connect(self):
        """Open the SSH session and its SFTP subsystem. Raises AuthError / ConnectError."""
        if not self.host:
            raise ConnectError("no remote host configured")

        log(f"[SSH] connecting to {self.user}@{self.host}:{self.port} …")
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        kw: dict = dict(hostname=self.host, port=self.port, username=self.user,
                        timeout=20, banner_timeout=30, auth_timeout=30)
        if self.key_path:
            key_file = os.path.expanduser(self.key_path)
            if os.path.isfile(key_file):
                kw["key_filename"] = key_file
            else:
                warn(f"[SSH] key {key_file} not found; trying ssh-agent and default keys")
        if self.passphrase:
            kw["passphrase"] = self.passphrase

        try:
            client.connect(**kw)
        except paramiko.AuthenticationException as exc:
            client.close()
            raise AuthError(f"SSH public key authentication failed for "
                            f"{self.user}@{self.host}: {exc}") from exc
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise ConnectError(f"connecting to {self.host}:{self.port} failed: {exc}") from exc

        # Keep-alive: send a NOP every 30s
        client.get_transport().set_keepalive(30)

        try:
            sftp = client.open_sftp()
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise ConnectError(f"opening SFTP subsystem failed: {exc}") from exc

        self._ssh = client
        self._sftp = sftp
        log("[SSH] connected ✓")

    def _close_quietly(self):
        try:
            if self._sftp:
                self._sftp.close()
        except Exception:
            pass
        try:
            if self._ssh:
                self._ssh.close()
        except Exception:
            pass
        self._ssh = None
        self._sftp = None

    def disconnect(self):
        if self._ssh is None:
            return
        self._close_quietly()
        log("[SSH] disconnected.")

    @property
    def connected(self) -> bool:
        try:
            return bool(self._ssh and self._ssh.get_transport().is_active())
        except Exception:
            return False

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise RuntimeError("SFTP client not connected")
        return self._sftp

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc):
        self.disconnect()
