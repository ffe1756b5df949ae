"""SSH session management for UBNT devices."""

import logging
import socket
from enum import Enum, IntEnum
from typing import Any, Callable, Optional

import paramiko
from paramiko.pkey import PKey, PublicBlob, UnknownKeyType
from pydantic import BaseModel, ConfigDict, Field

from .utils import port_to_string

logger = logging.getLogger(__name__)


class DeviceIdentity(BaseModel):
    """Address and user a session is bound to. Never changes after creation."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1, description="Hostname or IP address of the device")
    port: int = Field(default=22, ge=1, le=65535, description="SSH port")
    username: str = Field(..., min_length=1, description="SSH username")


class SessionState(str, Enum):
    """Lifecycle of a DeviceSession."""

    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class ConnectStatus(IntEnum):
    """Outcome of a connect + authenticate cycle. ``OK`` is 0, everything else is a failure."""

    OK = 0
    AUTH_DENIED = 1
    AUTH_PARTIAL = 2
    CONNECT_ERROR = -1
    TIMEOUT = -2
    PUBLIC_KEY_ERROR = -10
    PRIVATE_KEY_ERROR = -11
    KEY_MISMATCH = -12

    @property
    def ok(self) -> bool:
        return self is ConnectStatus.OK


TransportFactory = Callable[[DeviceIdentity, float], paramiko.Transport]


def open_transport(identity: DeviceIdentity, timeout: float) -> paramiko.Transport:
    """Open a TCP connection to the device and run the SSH handshake."""
    sock = socket.create_connection((identity.host, identity.port), timeout=timeout)
    transport = paramiko.Transport(sock)
    try:
        transport.start_client(timeout=timeout)
    except BaseException:
        transport.close()
        raise
    return transport


class DeviceSession:
    """
    A single SSH session to a UBNT device.

    The session owns exactly one paramiko transport at a time. A failed
    connect or authentication leaves the session unusable for another attempt
    until ``recreate()`` is called, which swaps in a fresh transport for the
    same identity.
    """

    def __init__(
        self,
        host: str,
        port: int = 22,
        username: str = "ubnt",
        connect_timeout: float = 30.0,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize session parameters. No network I/O happens here.

        Args:
            host: The hostname or IP address of the device
            port: SSH port (default: 22)
            username: SSH username (default: ubnt)
            connect_timeout: TCP connect and handshake timeout in seconds
            transport_factory: Callable that opens a started client transport
        """
        self.identity = DeviceIdentity(host=host, port=port, username=username)
        self.connect_timeout = connect_timeout
        self._transport_factory = transport_factory or open_transport
        self._transport: Optional[paramiko.Transport] = None
        self.state = SessionState.UNCONNECTED

    @property
    def host(self) -> str:
        return self.identity.host

    @property
    def port(self) -> int:
        return self.identity.port

    @property
    def username(self) -> str:
        return self.identity.username

    @property
    def transport(self) -> Optional[paramiko.Transport]:
        """The live transport, or None before connect and after disconnect."""
        return self._transport

    @property
    def authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    def __repr__(self) -> str:
        return (
            f"DeviceSession({self.username}@{self.host}:{port_to_string(self.port)}, "
            f"{self.state.value})"
        )

    def recreate(self) -> None:
        """Discard the current transport and start over with the same identity."""
        self._close_transport()
        self.state = SessionState.UNCONNECTED
        logger.debug("Recreated session for %s@%s:%d", self.username, self.host, self.port)

    def _close_transport(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def _connect(self) -> ConnectStatus:
        """Open the transport. Only valid from UNCONNECTED."""
        if self.state is not SessionState.UNCONNECTED:
            logger.debug("Cannot connect %r: session must be recreated first", self)
            return ConnectStatus.CONNECT_ERROR

        logger.debug("Connecting to %s:%d", self.host, self.port)
        try:
            self._transport = self._transport_factory(self.identity, self.connect_timeout)
        except socket.timeout:
            logger.debug("Timed out connecting to %s:%d", self.host, self.port)
            return ConnectStatus.TIMEOUT
        except (paramiko.SSHException, OSError) as e:
            logger.debug("Failed to connect to %s:%d: %s", self.host, self.port, e)
            return ConnectStatus.CONNECT_ERROR

        self.state = SessionState.CONNECTED
        return ConnectStatus.OK

    def _finish_auth(self) -> ConnectStatus:
        assert self._transport is not None
        if not self._transport.is_authenticated():
            return ConnectStatus.AUTH_PARTIAL
        self.state = SessionState.AUTHENTICATED
        logger.debug("Authenticated %s@%s", self.username, self.host)
        return ConnectStatus.OK

    def connect_with_password(self, password: str) -> ConnectStatus:
        """
        Connect and authenticate with a password.

        Args:
            password: Password for the session user

        Returns:
            ConnectStatus.OK on success, otherwise the failing step's status
        """
        status = self._connect()
        if status is not ConnectStatus.OK:
            return status

        assert self._transport is not None
        try:
            self._transport.auth_password(self.username, password)
        except paramiko.AuthenticationException as e:
            logger.debug("Password authentication rejected for %s@%s: %s", self.username, self.host, e)
            return ConnectStatus.AUTH_DENIED
        except (paramiko.SSHException, OSError) as e:
            logger.debug("Password authentication failed for %s@%s: %s", self.username, self.host, e)
            return ConnectStatus.CONNECT_ERROR

        return self._finish_auth()

    def _offers_publickey(self) -> ConnectStatus:
        """Ask the server which auth methods it accepts; OK means publickey is one of them."""
        assert self._transport is not None
        try:
            self._transport.auth_none(self.username)
        except paramiko.BadAuthenticationType as e:
            if "publickey" in e.allowed_types:
                return ConnectStatus.OK
            return ConnectStatus.AUTH_DENIED
        except paramiko.AuthenticationException:
            return ConnectStatus.AUTH_DENIED
        except (paramiko.SSHException, OSError) as e:
            logger.debug("Auth method query failed for %s: %s", self.host, e)
            return ConnectStatus.CONNECT_ERROR
        return ConnectStatus.OK

    def connect_with_key(self, public_key_path: str, private_key_path: str) -> ConnectStatus:
        """
        Connect and authenticate with a key pair.

        Steps run in order and each one only runs if the previous succeeded:
        import the public key, connect, check the server accepts public key
        auth, import the private key (which must match the public key) and
        authenticate with it.

        Args:
            public_key_path: Path to the OpenSSH public key file
            private_key_path: Path to the matching private key file

        Returns:
            ConnectStatus.OK on success, otherwise the failing step's status
        """
        try:
            public_key = PublicBlob.from_file(public_key_path)
        except (OSError, ValueError) as e:
            logger.debug("Could not import public key %s: %s", public_key_path, e)
            return ConnectStatus.PUBLIC_KEY_ERROR

        status = self._connect()
        if status is not ConnectStatus.OK:
            return status

        status = self._offers_publickey()
        if status is not ConnectStatus.OK:
            return status
        if self._transport is not None and self._transport.is_authenticated():
            return self._finish_auth()

        try:
            private_key = PKey.from_path(private_key_path)
        except (OSError, ValueError, UnknownKeyType, paramiko.SSHException) as e:
            logger.debug("Could not import private key %s: %s", private_key_path, e)
            return ConnectStatus.PRIVATE_KEY_ERROR

        if private_key.asbytes() != public_key.key_blob:
            logger.debug("Private key %s does not match %s", private_key_path, public_key_path)
            return ConnectStatus.KEY_MISMATCH

        assert self._transport is not None
        try:
            self._transport.auth_publickey(self.username, private_key)
        except paramiko.AuthenticationException as e:
            logger.debug("Public key authentication rejected for %s@%s: %s", self.username, self.host, e)
            return ConnectStatus.AUTH_DENIED
        except (paramiko.SSHException, OSError) as e:
            logger.debug("Public key authentication failed for %s@%s: %s", self.username, self.host, e)
            return ConnectStatus.CONNECT_ERROR

        return self._finish_auth()

    def disconnect(self) -> None:
        """Close the SSH transport. Calling it again is a no-op."""
        self._close_transport()
        self.state = SessionState.CLOSED

    def is_connected(self) -> bool:
        """Whether the underlying transport reports an active connection."""
        return self._transport is not None and self._transport.is_active()

    def __enter__(self) -> "DeviceSession":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.disconnect()
