"""Launch-at-login toggle for Windows, macOS and Linux desktops."""

import logging
import platform
import sys
from pathlib import Path

from voice_typing.config import APP_NAME

logger = logging.getLogger(__name__)

AUTOSTART_FLAG = "--autostart"
RUN_KEY = r"Software\Microsoft\Windows\CurrentVersion\Run"


class AutostartError(Exception):
    """Raised when the login item cannot be changed."""


def get_platform() -> str:
    system = platform.system()
    if system == "Darwin":
        return "macos"
    return system.lower()


def launch_command() -> list[str]:
    """Command line the login item runs."""
    if getattr(sys, "frozen", False):
        return [sys.executable, AUTOSTART_FLAG]
    return [sys.executable, "-m", "voice_typing", AUTOSTART_FLAG]


def _plist_path() -> Path:
    return Path.home() / "Library" / "LaunchAgents" / f"com.{APP_NAME.lower()}.plist"


def _desktop_path() -> Path:
    return Path.home() / ".config" / "autostart" / f"{APP_NAME.lower()}.desktop"


def is_enabled() -> bool:
    system = get_platform()
    if system == "windows":
        import winreg

        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, RUN_KEY, 0, winreg.KEY_READ) as key:
                winreg.QueryValueEx(key, APP_NAME)
            return True
        except OSError:
            return False
    if system == "macos":
        return _plist_path().is_file()
    return _desktop_path().is_file()


def enable() -> None:
    """Register the app to start at login, minimized.

    Raises:
        AutostartError: If the login item could not be written
    """
    _set(True)


def disable() -> None:
    """Remove the login item. Removing a missing item is not an error.

    Raises:
        AutostartError: If the login item could not be removed
    """
    _set(False)


def _set(enabled: bool) -> None:
    system = get_platform()
    try:
        if system == "windows":
            _set_windows(enabled)
        elif system == "macos":
            _set_macos(enabled)
        else:
            _set_linux(enabled)
    except OSError as e:
        # OSError: registry access or file write failures
        logger.error(f"Failed to {'enable' if enabled else 'disable'} autostart: {e}")
        raise AutostartError(str(e)) from e


def _set_windows(enabled: bool) -> None:
    import winreg

    with winreg.OpenKey(winreg.HKEY_CURRENT_USER, RUN_KEY, 0, winreg.KEY_SET_VALUE) as key:
        if enabled:
            command = " ".join(f'"{part}"' if " " in part else part for part in launch_command())
            winreg.SetValueEx(key, APP_NAME, 0, winreg.REG_SZ, command)
            logger.info(f"Windows autostart enabled: {command}")
        else:
            try:
                winreg.DeleteValue(key, APP_NAME)
                logger.info("Windows autostart disabled")
            except FileNotFoundError:
                pass


def _set_macos(enabled: bool) -> None:
    plist_path = _plist_path()
    if not enabled:
        plist_path.unlink(missing_ok=True)
        logger.info("macOS autostart disabled")
        return

    arguments = "\n".join(f"        <string>{part}</string>" for part in launch_command())
    plist_content = f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>Label</key>
    <string>com.{APP_NAME.lower()}</string>
    <key>ProgramArguments</key>
    <array>
{arguments}
    </array>
    <key>RunAtLoad</key>
    <true/>
</dict>
</plist>
"""
    plist_path.parent.mkdir(parents=True, exist_ok=True)
    plist_path.write_text(plist_content, encoding="utf-8")
    logger.info(f"macOS autostart enabled: {plist_path}")


def _set_linux(enabled: bool) -> None:
    desktop_file = _desktop_path()
    if not enabled:
        desktop_file.unlink(missing_ok=True)
        logger.info("Linux autostart disabled")
        return

    exec_cmd = " ".join(launch_command())
    desktop_content = f"""[Desktop Entry]
Type=Application
Name={APP_NAME}
Exec={exec_cmd}
Hidden=false
NoDisplay=false
X-GNOME-Autostart-enabled=true
Comment=Voice dictation with cloud transcription
"""
    desktop_file.parent.mkdir(parents=True, exist_ok=True)
    desktop_file.write_text(desktop_content, encoding="utf-8")
    logger.info(f"Linux autostart enabled: {desktop_file} -> {exec_cmd}")
