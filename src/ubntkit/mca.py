"""Conversion of ``mca-status`` output into JSON."""

import json
from typing import Dict, List

from .utils import rstrip


class TransformError(ValueError):
    """Raised when device output cannot be turned into a JSON document."""


def mca_to_json(text: str, validate: bool = True) -> str:
    """
    Convert ``mca-status`` output into a JSON array holding one object.

    The device prints ``key=value`` pairs separated by commas and line
    breaks, e.g.::

        deviceName=ap1,deviceId=00:11:22:33:44:55,firmwareVersion=XW.v6.3
        uptime=1234
        wlanConnections=4

    which becomes ``[{"deviceName":"ap1","deviceId":"00:11:22:33:44:55",...}]``.
    All values are kept as strings. The first ``", "`` in the input is
    rewritten to ``"--"`` so a value that contains one does not split into
    two fields.

    Args:
        text: Raw command output
        validate: Parse the result and raise TransformError if it is not a
            JSON array with a single object

    Returns:
        The JSON document as a string
    """
    text = rstrip(text) or ""
    if not text:
        raise TransformError("mca-status output is empty")

    text = text.replace(", ", "--", 1)

    parts: List[str] = ['[{"']
    prev = ""
    for ch in text:
        if ch == "=":
            parts.append('":"')
        elif ch == ",":
            parts.append('","')
        elif ch == "\r":
            # \n\r endings: the \n already opened the next key
            if prev != "\n":
                parts.append('"')
        elif ch == "\n":
            # after \r the value quote is already closed
            parts.append(',"' if prev == "\r" else '","')
        else:
            parts.append(ch)
        prev = ch
    parts.append('"}]')

    document = "".join(parts)
    if validate:
        _check_document(document)
    return document


def _check_document(document: str) -> None:
    try:
        data = json.loads(document)
    except json.JSONDecodeError as e:
        raise TransformError(f"mca-status output is not key=value data: {e}") from e
    if not isinstance(data, list) or len(data) != 1 or not isinstance(data[0], dict):
        raise TransformError("mca-status output did not produce a single object")


def parse_mca_status(text: str) -> Dict[str, str]:
    """Convert ``mca-status`` output into a dict of string keys and values."""
    return json.loads(mca_to_json(text))[0]
