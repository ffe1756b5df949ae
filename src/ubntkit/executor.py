"""Remote command execution over a DeviceSession."""

import logging
import socket
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import paramiko

from .session import DeviceSession
from .utils import rstrip

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_BUFFER_SIZE = 8192
POLL_INTERVAL = 0.05


@dataclass
class CommandResult:
    """Output of one remote command."""

    command: str
    output: str
    nbytes: int = 0
    complete: bool = True  # False if a poll timed out before the remote end sent EOF
    exit_status: Optional[int] = None


def _drained(channel: paramiko.Channel) -> bool:
    """True once the remote end is done and nothing is left in the receive buffer."""
    return (channel.eof_received or channel.closed) and not channel.recv_ready()


def poll_channel(channel: paramiko.Channel, timeout: float) -> int:
    """
    Wait up to ``timeout`` seconds for data on a channel.

    Returns:
        Number of bytes ready to read, or 0 if none arrived in time or the
        channel reached EOF
    """
    deadline = time.monotonic() + timeout
    while True:
        if channel.recv_ready():
            return len(channel.in_buffer)
        if channel.eof_received or channel.closed:
            return 0
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return 0
        time.sleep(min(POLL_INTERVAL, remaining))


def close_channel(channel: paramiko.Channel) -> None:
    """Signal EOF to the remote end and close the channel."""
    if not channel.closed:
        try:
            channel.shutdown_write()
        except (paramiko.SSHException, OSError, EOFError) as e:
            logger.debug("Could not send EOF on channel: %s", e)
    channel.close()


@contextmanager
def closing_channel(channel: paramiko.Channel) -> Iterator[paramiko.Channel]:
    """Close the channel however the block exits."""
    try:
        yield channel
    finally:
        close_channel(channel)


def open_channel(session: DeviceSession, timeout: float) -> Optional[paramiko.Channel]:
    """Open a session channel, or return None if the session cannot provide one."""
    transport = session.transport
    if transport is None or not session.authenticated:
        logger.debug("Cannot open channel on %r", session)
        return None
    try:
        return transport.open_session(timeout=timeout)
    except (paramiko.SSHException, OSError, EOFError) as e:
        logger.debug("Failed to open channel on %r: %s", session, e)
        return None


def _read_until_eof(
    channel: paramiko.Channel, command: str, timeout: float, buffer_size: int
) -> CommandResult:
    buffer = bytearray()
    channel.settimeout(timeout)

    while not _drained(channel):
        available = poll_channel(channel, timeout)
        if available <= 0:
            break
        try:
            data = channel.recv(min(available, buffer_size))
        except socket.timeout:
            break
        if not data:
            break
        buffer += data

    complete = _drained(channel)
    if not complete:
        logger.debug("Stopped reading %r after %d bytes without EOF", command, len(buffer))

    exit_status = channel.recv_exit_status() if channel.exit_status_ready() else None

    return CommandResult(
        command=command,
        output=rstrip(bytes(buffer).decode("utf-8", errors="replace")) or "",
        nbytes=len(buffer),
        complete=complete,
        exit_status=exit_status,
    )


def exec_command(
    session: DeviceSession,
    command: str,
    timeout: float = DEFAULT_TIMEOUT,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> Optional[CommandResult]:
    """
    Execute a command on the device and read its output.

    Output is collected until the remote end signals EOF. A single poll that
    sees no data within ``timeout`` also ends the read; such results carry
    ``complete=False``.

    Args:
        session: An authenticated DeviceSession
        command: The command to execute
        timeout: Seconds to wait for each poll and read
        buffer_size: Maximum bytes taken per read

    Returns:
        CommandResult, or None if the channel could not be opened or the
        exec request failed
    """
    channel = open_channel(session, timeout)
    if channel is None:
        return None

    with closing_channel(channel):
        try:
            channel.exec_command(command)
        except (paramiko.SSHException, OSError, EOFError) as e:
            logger.debug("Exec request for %r failed: %s", command, e)
            return None
        return _read_until_eof(channel, command, timeout, buffer_size)
