"""ubntkit - A Python library for managing Ubiquiti access points over SSH."""

from .config import ClientSettings, load_settings
from .session import ConnectStatus, DeviceIdentity, DeviceSession, SessionState
from .executor import CommandResult, exec_command
from .mca import TransformError, mca_to_json, parse_mca_status
from .scp import PullResult, ScpPullRequest, ScpRequest, TransferStatus, pull_file
from .device import UBNTDevice, dispatch

__version__ = "0.1.0"

__all__ = [
    "ClientSettings",
    "load_settings",
    "ConnectStatus",
    "DeviceIdentity",
    "DeviceSession",
    "SessionState",
    "CommandResult",
    "exec_command",
    "TransformError",
    "mca_to_json",
    "parse_mca_status",
    # Config file transfer
    "PullResult",
    "ScpPullRequest",
    "ScpRequest",
    "TransferStatus",
    "pull_file",
    "UBNTDevice",
    "dispatch",
]
