"""Shared fakes standing in for paramiko transports and channels."""

import socket
from typing import Iterable, List, Optional

import paramiko
import pytest

from ubntkit.session import DeviceSession


class FakeChannel:
    """
    A session channel that replays scripted output.

    Each chunk becomes readable once the previous one has been consumed.
    With ``eof=True`` the remote end signals EOF after the last chunk;
    otherwise reads past the end time out.
    """

    def __init__(
        self,
        chunks: Iterable[bytes] = (),
        eof: bool = True,
        exit_status: Optional[int] = 0,
        fail_exec: bool = False,
    ):
        self._pending: List[bytes] = [bytes(c) for c in chunks]
        self._eof = eof
        self._exit_status = exit_status
        self.fail_exec = fail_exec
        self.in_buffer = bytearray()
        self.closed = False
        self.eof_sent = False
        self.timeout: Optional[float] = None
        self.commands: List[str] = []
        self.sent = bytearray()
        self.recv_sizes: List[int] = []

    @property
    def eof_received(self) -> bool:
        return self._eof and not self._pending

    def _deliver(self) -> None:
        if not self.in_buffer and self._pending:
            self.in_buffer += self._pending.pop(0)

    def settimeout(self, timeout: float) -> None:
        self.timeout = timeout

    def exec_command(self, command: str) -> None:
        if self.fail_exec:
            raise paramiko.SSHException("exec request failed")
        self.commands.append(command)

    def recv_ready(self) -> bool:
        self._deliver()
        return bool(self.in_buffer)

    def recv(self, nbytes: int) -> bytes:
        self._deliver()
        self.recv_sizes.append(nbytes)
        if not self.in_buffer:
            if self.eof_received:
                return b""
            raise socket.timeout("timed out")
        data = bytes(self.in_buffer[:nbytes])
        del self.in_buffer[:nbytes]
        return data

    def sendall(self, data: bytes) -> None:
        self.sent += data

    def shutdown_write(self) -> None:
        self.eof_sent = True

    def close(self) -> None:
        self.closed = True

    def exit_status_ready(self) -> bool:
        return self.eof_received and self._exit_status is not None

    def recv_exit_status(self) -> Optional[int]:
        return self._exit_status


class FakeTransport:
    """A connected transport that authenticates against fixed credentials."""

    def __init__(
        self,
        channels: Iterable[FakeChannel] = (),
        password: str = "ubnt",
        allowed_types: Iterable[str] = ("publickey", "password"),
        accepted_key: Optional[bytes] = None,
        partial: bool = False,
    ):
        self.channels = list(channels)
        self.password = password
        self.allowed_types = list(allowed_types)
        self.accepted_key = accepted_key
        self.partial = partial
        self.active = True
        self.authenticated = False
        self.calls: List[str] = []

    def is_active(self) -> bool:
        return self.active

    def is_authenticated(self) -> bool:
        return self.authenticated

    def auth_password(self, username: str, password: str) -> List[str]:
        self.calls.append("auth_password")
        if password != self.password:
            raise paramiko.AuthenticationException("Authentication failed.")
        if self.partial:
            return ["publickey"]
        self.authenticated = True
        return []

    def auth_none(self, username: str) -> List[str]:
        self.calls.append("auth_none")
        raise paramiko.BadAuthenticationType("Bad authentication type", self.allowed_types)

    def auth_publickey(self, username: str, key: paramiko.PKey) -> List[str]:
        self.calls.append("auth_publickey")
        if self.accepted_key is None or key.asbytes() != self.accepted_key:
            raise paramiko.AuthenticationException("Authentication failed.")
        self.authenticated = True
        return []

    def open_session(self, timeout: Optional[float] = None) -> FakeChannel:
        self.calls.append("open_session")
        if not self.channels:
            raise paramiko.ChannelException(2, "Connect failed")
        return self.channels.pop(0)

    def close(self) -> None:
        self.active = False


class FakeTransportFactory:
    """Hands out prepared transports (or raises prepared errors) in order."""

    def __init__(self, *transports):
        self.transports = list(transports)
        self.calls = []

    def __call__(self, identity, timeout):
        self.calls.append((identity, timeout))
        transport = self.transports.pop(0)
        if isinstance(transport, BaseException):
            raise transport
        return transport


def login(*channels: FakeChannel) -> DeviceSession:
    """Return a session already authenticated over a FakeTransport."""
    transport = FakeTransport(channels=channels)
    session = DeviceSession("192.168.1.20", transport_factory=FakeTransportFactory(transport))
    assert session.connect_with_password("ubnt") == 0
    return session


@pytest.fixture(scope="session")
def key_pair(tmp_path_factory):
    """Write two RSA key pairs; returns (pub_a, priv_a, pub_b, priv_b, blob_a)."""
    directory = tmp_path_factory.mktemp("keys")
    paths = []
    blob = None
    for name in ("a", "b"):
        key = paramiko.RSAKey.generate(2048)
        private_path = directory / f"id_{name}"
        public_path = directory / f"id_{name}.pub"
        key.write_private_key_file(str(private_path))
        public_path.write_text(f"{key.get_name()} {key.get_base64()} test@{name}\n")
        paths.extend([str(public_path), str(private_path)])
        if blob is None:
            blob = key.asbytes()
    return (*paths, blob)
