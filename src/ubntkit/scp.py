"""Chunked SCP file download from UBNT devices.

The device's dropbear/busybox ``scp`` only serves reads of 2048 bytes at a
time, so files are pulled in fixed-size chunks through the SCP source
protocol (``scp -f``) over a plain session channel.
"""

import logging
import math
import shlex
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import paramiko

from .executor import DEFAULT_TIMEOUT, close_channel, open_channel
from .session import DeviceSession

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 2048
MAX_CONTROL_LINE = 4096


class ScpRequest(Enum):
    """What the remote end offered in response to a pull request."""

    NEWFILE = "newfile"
    ENDDIR = "enddir"
    WARNING = "warning"
    EOF = "eof"
    ERROR = "error"


class ScpState(Enum):
    NEW = "new"
    INITIALIZED = "initialized"
    OFFERED = "offered"
    READING = "reading"
    COMPLETE = "complete"
    ERROR = "error"
    CLOSED = "closed"


class TransferStatus(Enum):
    """Outcome of pull_file."""

    COMPLETE = "complete"
    TRUNCATED = "truncated"
    INIT_FAILED = "init_failed"
    NO_FILE = "no_file"
    REMOTE_ERROR = "remote_error"


@dataclass
class PullResult:
    """Bytes pulled from the device and how the transfer ended."""

    path: str
    status: TransferStatus
    data: bytes = b""
    size: int = 0  # size advertised by the remote end
    message: Optional[str] = None

    @property
    def nbytes(self) -> int:
        return len(self.data)

    @property
    def truncated(self) -> bool:
        return self.nbytes < self.size

    @property
    def ok(self) -> bool:
        return self.status is TransferStatus.COMPLETE


class ScpPullRequest:
    """
    One SCP download of a single remote file.

    Usage mirrors the SCP source protocol: ``init()`` starts ``scp -f`` on
    the device, ``pull_request()`` reads what the device offers, ``accept()``
    asks for the file contents and ``read()`` returns them chunk by chunk.
    ``close()`` must always be called; the request is also a context manager.
    """

    def __init__(self, session: DeviceSession, path: str, timeout: float = DEFAULT_TIMEOUT):
        self.session = session
        self.path = path
        self.timeout = timeout
        self.state = ScpState.NEW
        self.size = 0
        self.mode: Optional[str] = None
        self.filename: Optional[str] = None
        self.message: Optional[str] = None
        self._processed = 0
        self._channel: Optional[paramiko.Channel] = None

    def init(self) -> bool:
        """Start the remote ``scp`` process. Returns False if it could not be started."""
        channel = open_channel(self.session, self.timeout)
        if channel is None:
            self.state = ScpState.ERROR
            return False

        self._channel = channel
        channel.settimeout(self.timeout)
        command = f"scp -f {shlex.quote(self.path)}"
        try:
            channel.exec_command(command)
            channel.sendall(b"\0")
        except (paramiko.SSHException, OSError, EOFError) as e:
            logger.debug("Could not start %r: %s", command, e)
            self.state = ScpState.ERROR
            return False

        self.state = ScpState.INITIALIZED
        return True

    def _read_line(self) -> bytes:
        assert self._channel is not None
        line = bytearray()
        while len(line) < MAX_CONTROL_LINE:
            ch = self._channel.recv(1)
            if not ch:
                break
            line += ch
            if ch == b"\n":
                break
        return bytes(line)

    def _ack(self) -> None:
        assert self._channel is not None
        self._channel.sendall(b"\0")

    def pull_request(self) -> ScpRequest:
        """
        Read the next control message from the device.

        Returns:
            ScpRequest.NEWFILE when a file is offered (``size``, ``mode`` and
            ``filename`` are then set), ScpRequest.EOF when the device has
            nothing more to send
        """
        if self._channel is None or self.state in (ScpState.NEW, ScpState.ERROR, ScpState.CLOSED):
            return ScpRequest.ERROR

        try:
            while True:
                line = self._read_line()
                if not line:
                    self.state = ScpState.COMPLETE
                    return ScpRequest.EOF

                kind, body = line[:1], line[1:].rstrip(b"\n").decode("utf-8", errors="replace")
                if kind == b"T":
                    # timestamps, the file header follows
                    self._ack()
                    continue
                if kind == b"C":
                    return self._offer(body)
                if kind == b"E":
                    self._ack()
                    return ScpRequest.ENDDIR
                if kind == b"\x01":
                    self.message = body
                    return ScpRequest.WARNING

                self.message = body if kind == b"\x02" else line.decode("utf-8", errors="replace")
                self.state = ScpState.ERROR
                return ScpRequest.ERROR
        except (socket.timeout, paramiko.SSHException, OSError, EOFError) as e:
            logger.debug("Pull request for %s failed: %s", self.path, e)
            self.message = str(e)
            self.state = ScpState.ERROR
            return ScpRequest.ERROR

    def _offer(self, header: str) -> ScpRequest:
        try:
            mode, size, filename = header.split(" ", 2)
            self.size = int(size)
        except ValueError:
            self.message = f"Malformed file header: {header!r}"
            self.state = ScpState.ERROR
            return ScpRequest.ERROR

        self.mode = mode
        self.filename = filename
        self._processed = 0
        self.state = ScpState.OFFERED
        logger.debug("Device offers %s (%d bytes)", filename, self.size)
        return ScpRequest.NEWFILE

    def accept(self) -> bool:
        """
        Ask the device to start sending the offered file.

        Returns:
            False if the request could not be sent or the device reported an
            error; ``message`` then holds the reason
        """
        if self.state is not ScpState.OFFERED:
            return False
        try:
            self._ack()
            self.state = ScpState.READING
            if self.size == 0:
                self._finish_file()
        except (socket.timeout, paramiko.SSHException, OSError, EOFError) as e:
            logger.debug("Accept for %s failed: %s", self.path, e)
            self.message = str(e) or type(e).__name__
            self.state = ScpState.ERROR
        return self.state is not ScpState.ERROR

    def _finish_file(self) -> None:
        """
        Consume the status byte after the file data and acknowledge it.

        A non-zero status is followed by an error line from the device, which
        is kept in ``message``.
        """
        assert self._channel is not None
        status = self._channel.recv(1)
        if status == b"\0":
            self._ack()
            self.state = ScpState.COMPLETE
            return

        if status in (b"\x01", b"\x02"):
            self.message = self._read_line().rstrip(b"\n").decode("utf-8", errors="replace")
        else:
            self.message = f"Unexpected SCP status after file data: {status!r}"
        logger.debug("Transfer of %s failed on the device: %s", self.path, self.message)
        self.state = ScpState.ERROR

    def read(self, size: int) -> bytes:
        """
        Read up to ``size`` bytes of the accepted file.

        Returns:
            The next chunk, or b"" once the file is finished or the transfer
            failed
        """
        if self.state is not ScpState.READING or self._channel is None:
            return b""

        want = min(size, self.size - self._processed)
        chunk = bytearray()
        try:
            while len(chunk) < want:
                data = self._channel.recv(want - len(chunk))
                if not data:
                    break
                chunk += data
        except (socket.timeout, paramiko.SSHException, OSError, EOFError) as e:
            logger.debug(
                "Read of %s stopped at %d bytes: %s", self.path, self._processed + len(chunk), e
            )
            self.message = str(e) or type(e).__name__
            self.state = ScpState.ERROR
        self._processed += len(chunk)

        if self.state is not ScpState.READING:
            return bytes(chunk)
        if self._processed < self.size and len(chunk) < want:
            self.state = ScpState.ERROR
            return bytes(chunk)
        if self._processed == self.size:
            try:
                self._finish_file()
            except (socket.timeout, paramiko.SSHException, OSError, EOFError) as e:
                logger.debug("No status from the device after %s: %s", self.path, e)
                self.message = str(e) or type(e).__name__
                self.state = ScpState.ERROR
        return bytes(chunk)

    def close(self) -> None:
        """Close the underlying channel. Safe to call more than once."""
        if self._channel is not None:
            close_channel(self._channel)
            self._channel = None
        self.state = ScpState.CLOSED

    def __enter__(self) -> "ScpPullRequest":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def pull_file(
    session: DeviceSession,
    remote_path: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
) -> PullResult:
    """
    Download a file from the device in ``chunk_size`` pieces.

    At most ``ceil(size / chunk_size)`` reads are issued; the transfer stops
    early if a read comes back empty. A result with fewer bytes than the
    advertised size has status TRUNCATED. A full-size result that the device
    flagged as failed after the data has status REMOTE_ERROR.

    Args:
        session: An authenticated DeviceSession
        remote_path: Path of the file on the device
        chunk_size: Bytes requested per read
        timeout: Seconds to wait on each channel read

    Returns:
        PullResult with the file contents
    """
    with ScpPullRequest(session, remote_path, timeout=timeout) as request:
        if not request.init():
            return PullResult(path=remote_path, status=TransferStatus.INIT_FAILED)

        if request.pull_request() is not ScpRequest.NEWFILE:
            return PullResult(
                path=remote_path, status=TransferStatus.NO_FILE, message=request.message
            )

        size = request.size
        if not request.accept():
            return PullResult(
                path=remote_path,
                status=_transfer_status(request, 0),
                size=size,
                message=request.message or "device did not start sending the file",
            )

        data = bytearray()
        for _ in range(math.ceil(size / chunk_size)):
            chunk = request.read(chunk_size)
            if not chunk:
                break
            data += chunk

        logger.debug("Pulled %d of %d bytes from %s", len(data), size, remote_path)
        return PullResult(
            path=remote_path,
            status=_transfer_status(request, len(data)),
            data=bytes(data),
            size=size,
            message=request.message,
        )


def _transfer_status(request: ScpPullRequest, nbytes: int) -> TransferStatus:
    if nbytes < request.size:
        return TransferStatus.TRUNCATED
    if request.state is not ScpState.COMPLETE:
        return TransferStatus.REMOTE_ERROR
    return TransferStatus.COMPLETE
