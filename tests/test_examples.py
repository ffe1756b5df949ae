"""Tests for the example scripts."""

import importlib.util
import sys
from pathlib import Path

import pytest

from conftest import FakeChannel, FakeTransport, FakeTransportFactory
from ubntkit import session as session_module

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"


@pytest.fixture
def status_report(monkeypatch, tmp_path):
    """Load examples/status_report.py and run it in tmp_path against a fake device."""
    spec = importlib.util.spec_from_file_location(
        "status_report", EXAMPLES_DIR / "status_report.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "argv", ["status_report.py", "192.168.1.20", "ubnt"])

    def run(scp_channel):
        channels = [
            FakeChannel([b"deviceName=ap1,platform=NanoStation M5\r\nuptime=42\r\n"]),
            FakeChannel([b"[]\n"]),
            scp_channel,
        ]
        transport = FakeTransport(channels=channels)
        monkeypatch.setattr(session_module, "open_transport", FakeTransportFactory(transport))
        return module.main()

    return run


def test_status_report_saves_backup(status_report, tmp_path, capsys):
    data = b"users.1.name=ubnt\n"
    channel = FakeChannel([f"C0644 {len(data)} system.cfg\n".encode(), data, b"\0"])

    assert status_report(channel) == 0

    assert (tmp_path / "192.168.1.20-system.cfg").read_bytes() == data
    assert f"Saved {len(data)} bytes" in capsys.readouterr().out


def test_status_report_without_config_file(status_report, tmp_path, capsys):
    channel = FakeChannel([b"\x02scp: /tmp/system.cfg: No such file or directory\n"])

    assert status_report(channel) == 1

    assert not (tmp_path / "192.168.1.20-system.cfg").exists()
    out = capsys.readouterr().out
    assert "Could not back up system.cfg" in out
    assert "Saved" not in out
