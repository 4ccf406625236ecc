"""Tests for the launch-at-login toggle."""

from pathlib import Path

import pytest

from voice_typing import autostart


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


def test_launch_command_has_autostart_flag():
    """Test that the login item starts the app minimized."""
    command = autostart.launch_command()

    assert command[-1] == "--autostart"
    assert "voice_typing" in command


def test_linux_desktop_entry(home, monkeypatch):
    """Test enabling and disabling on Linux writes and removes the .desktop file."""
    monkeypatch.setattr(autostart, "get_platform", lambda: "linux")

    autostart.enable()

    desktop = home / ".config" / "autostart" / "voicetyping.desktop"
    assert autostart.is_enabled()
    content = desktop.read_text(encoding="utf-8")
    assert "Exec=" in content
    assert "--autostart" in content

    autostart.disable()
    assert not desktop.exists()
    assert not autostart.is_enabled()


def test_macos_launch_agent(home, monkeypatch):
    """Test enabling on macOS writes a RunAtLoad launch agent."""
    monkeypatch.setattr(autostart, "get_platform", lambda: "macos")

    autostart.enable()

    plist = home / "Library" / "LaunchAgents" / "com.voicetyping.plist"
    assert "<key>RunAtLoad</key>" in plist.read_text(encoding="utf-8")
    assert autostart.is_enabled()

    autostart.disable()
    autostart.disable()  # removing twice is fine
    assert not autostart.is_enabled()


def test_write_failure_raises(home, monkeypatch):
    """Test that file system errors become AutostartError."""
    monkeypatch.setattr(autostart, "get_platform", lambda: "linux")
    (home / ".config").write_text("not a directory", encoding="utf-8")

    with pytest.raises(autostart.AutostartError):
        autostart.enable()
