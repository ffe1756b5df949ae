"""High level access to Ubiquiti (UBNT) devices."""

import logging
from typing import Any, Dict, Optional

from .config import ClientSettings
from .executor import CommandResult, exec_command
from .mca import mca_to_json, parse_mca_status
from .scp import PullResult, pull_file
from .session import ConnectStatus, DeviceSession, TransportFactory
from .utils import strip_control

logger = logging.getLogger(__name__)

WSTALIST_COMMAND = "wstalist"
SCAN_COMMAND = "iwlist ath0 scan | scanparser"
MCA_STATUS_COMMAND = "mca-status"
SAVE_COMMAND = "cfgmtd -w -p /etc/"


class UBNTDevice:
    """A UBNT access point reached over one SSH session."""

    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        username: Optional[str] = None,
        settings: Optional[ClientSettings] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize the device. No connection is made until connect_password()
        or connect_key() is called.

        Args:
            host: The hostname or IP address of the device
            port: SSH port (default: settings.port)
            username: SSH username (default: settings.username)
            settings: Timeouts, buffer sizes and the config file path
            transport_factory: Override for opening the SSH transport
        """
        self.settings = settings or ClientSettings()
        self.session = DeviceSession(
            host=host,
            port=port if port is not None else self.settings.port,
            username=username or self.settings.username,
            connect_timeout=self.settings.connect_timeout,
            transport_factory=transport_factory,
        )

    @property
    def host(self) -> str:
        return self.session.host

    def connect_password(self, password: str) -> ConnectStatus:
        """Connect and authenticate with a password."""
        return self.session.connect_with_password(password)

    def connect_key(self, public_key_path: str, private_key_path: str) -> ConnectStatus:
        """Connect and authenticate with a key pair."""
        return self.session.connect_with_key(public_key_path, private_key_path)

    def renew_session(self) -> None:
        """Start over with a fresh session, e.g. after a failed login."""
        self.session.recreate()

    def disconnect(self) -> None:
        self.session.disconnect()

    def is_connected(self) -> bool:
        return self.session.is_connected()

    def execute(self, command: str) -> Optional[CommandResult]:
        """
        Execute a command on the device.

        Args:
            command: The command to execute

        Returns:
            CommandResult, or None if the command could not be started
        """
        return exec_command(
            self.session,
            command,
            timeout=self.settings.timeout,
            buffer_size=self.settings.buffer_size,
        )

    def _stripped_output(self, command: str) -> Optional[str]:
        result = self.execute(command)
        if result is None:
            return None
        return strip_control(result.output)

    def wstalist(self) -> Optional[str]:
        """List the stations associated with the device."""
        return self._stripped_output(WSTALIST_COMMAND)

    def scan(self) -> Optional[str]:
        """List the other access points the device can see."""
        return self._stripped_output(SCAN_COMMAND)

    def mca_status_json(self) -> Optional[str]:
        """Return the ``mca-status`` output converted to a JSON document."""
        result = self.execute(MCA_STATUS_COMMAND)
        if result is None:
            return None
        return mca_to_json(result.output)

    def mca_status(self) -> Optional[Dict[str, str]]:
        """Return the ``mca-status`` output as a dict."""
        result = self.execute(MCA_STATUS_COMMAND)
        if result is None:
            return None
        return parse_mca_status(result.output)

    def save(self) -> bool:
        """
        Persist configuration changes to flash.

        Only checks that the command ran; its output is not inspected.
        """
        return self.execute(SAVE_COMMAND) is not None

    def copy_config(self) -> PullResult:
        """Download the device configuration file."""
        return pull_file(
            self.session,
            self.settings.config_path,
            chunk_size=self.settings.chunk_size,
            timeout=self.settings.timeout,
        )

    def __enter__(self) -> "UBNTDevice":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.disconnect()


def dispatch(
    host: str,
    port: int,
    username: str,
    password: str,
    command: str,
    settings: Optional[ClientSettings] = None,
    transport_factory: Optional[TransportFactory] = None,
) -> Optional[CommandResult]:
    """
    Connect, run one command and disconnect.

    Returns:
        The command result, or None if login failed or the command could
        not be started
    """
    device = UBNTDevice(
        host, port=port, username=username, settings=settings, transport_factory=transport_factory
    )
    with device:
        status = device.connect_password(password)
        if status is not ConnectStatus.OK:
            logger.debug("dispatch to %s failed to log in: %s", host, status.name)
            return None
        return device.execute(command)
