"""Global hotkey registration (Windows ``RegisterHotKey``).

On other platforms registration fails with ``HotkeyError``; callers log it
and continue with the UI trigger only.
"""

import ctypes
import ctypes.wintypes
import logging
import threading
from typing import Callable, Optional

from voice_typing.config import DEFAULT_HOTKEY

logger = logging.getLogger(__name__)

_windll = getattr(ctypes, "windll", None)
if _windll and hasattr(_windll, "user32"):
    user32 = _windll.user32
    _kernel32 = _windll.kernel32
    _native_hotkeys_available = True
else:
    user32 = None
    _kernel32 = None
    _native_hotkeys_available = False

MOD_ALT = 0x0001
MOD_CONTROL = 0x0002
MOD_SHIFT = 0x0004
MOD_WIN = 0x0008
MOD_NOREPEAT = 0x4000
WM_HOTKEY = 0x0312
WM_QUIT = 0x0012
RECORD_HOTKEY_ID = 1

_MODIFIERS = {"CTRL": MOD_CONTROL, "ALT": MOD_ALT, "SHIFT": MOD_SHIFT, "WIN": MOD_WIN}
VK = {c: ord(c) for c in "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"}
VK.update({f"F{n}": 0x70 + n - 1 for n in range(1, 13)})


class HotkeyError(Exception):
    """Raised when hotkey registration fails."""


def parse_hotkey_string(s: str) -> tuple[int, int]:
    """
    Parse a hotkey string like 'CTRL+Y' into modifier flags and virtual key code.

    Args:
        s: Hotkey string (e.g., "CTRL+Y", "CTRL+SHIFT+F9")

    Returns:
        Tuple of (modifier_flags, virtual_key_code)

    Raises:
        ValueError: If hotkey string is invalid
    """
    parts = [p.strip().upper() for p in s.split("+") if p.strip()]
    if not parts:
        raise ValueError("Empty hotkey")

    key = parts[-1]
    mods = 0
    for token in parts[:-1]:
        if token not in _MODIFIERS:
            raise ValueError(f"Unknown modifier: {token}")
        mods |= _MODIFIERS[token]

    if key not in VK:
        raise ValueError("Only A..Z, 0..9 and F1..F12 keys supported")
    return mods, VK[key]


class HotkeyManager:
    """Owns one global hotkey and the message pump thread that receives it.

    The callback runs on the pump thread; GUI callers must marshal it to
    their own thread.
    """

    def __init__(self, callback: Callable[[], None]):
        self.callback = callback
        self.hotkey: Optional[str] = None
        self.msg_thread: Optional[threading.Thread] = None
        self._hotkey_mods: Optional[int] = None
        self._hotkey_vk: Optional[int] = None
        self._msg_tid: Optional[int] = None
        self._running = False
        self._registration_event: Optional[threading.Event] = None
        self._registration_error: Optional[str] = None

    @property
    def registered(self) -> bool:
        return self._running and self.msg_thread is not None and self.msg_thread.is_alive()

    def register(self, hotkey_string: str = DEFAULT_HOTKEY) -> None:
        """
        Register the hotkey and start the message pump thread.

        Calling this again replaces the previous registration.

        Raises:
            HotkeyError: If registration fails
        """
        try:
            mods, key = parse_hotkey_string(hotkey_string)
        except ValueError as e:
            raise HotkeyError(f"Invalid hotkey: {e}") from e

        self._hotkey_mods = mods | MOD_NOREPEAT
        self._hotkey_vk = key
        self._stop_pump(timeout=0.5)

        if not _native_hotkeys_available:
            raise HotkeyError("Failed to register hotkey: Windows APIs unavailable on this platform.")

        # The hotkey must be registered on the thread that pumps messages
        self._running = True
        self._registration_event = threading.Event()
        self._registration_error = None
        self.msg_thread = threading.Thread(target=self._message_pump, daemon=True)
        self.msg_thread.start()

        if not self._registration_event.wait(timeout=1.0):
            self._running = False
            raise HotkeyError("Timed out waiting for hotkey registration")

        if self._registration_error:
            self._running = False
            self.msg_thread.join(timeout=0.5)
            raise HotkeyError(self._registration_error)

        self.hotkey = hotkey_string
        logger.info(f"Registered hotkey: {hotkey_string}")

    def unregister(self) -> None:
        """Unregister the hotkey and stop the message pump."""
        self._stop_pump(timeout=1.0)
        if user32:
            user32.UnregisterHotKey(None, RECORD_HOTKEY_ID)
        if self.hotkey:
            logger.info(f"Unregistered hotkey: {self.hotkey}")
        self.hotkey = None

    def _stop_pump(self, timeout: float) -> None:
        self._running = False
        if not (self.msg_thread and self.msg_thread.is_alive()):
            return
        if self._msg_tid and user32:
            # Ends GetMessageW in the pump thread
            user32.PostThreadMessageW(self._msg_tid, WM_QUIT, 0, 0)
        self.msg_thread.join(timeout=timeout)

    def _message_pump(self) -> None:
        """Receive WM_HOTKEY messages (runs in the background thread)."""
        if not _kernel32 or not user32:
            self._registration_error = "Failed to register hotkey: Windows APIs unavailable on this platform."
            self._running = False
            if self._registration_event:
                self._registration_event.set()
            return

        self._msg_tid = _kernel32.GetCurrentThreadId()

        if not user32.RegisterHotKey(None, RECORD_HOTKEY_ID, self._hotkey_mods, self._hotkey_vk):
            self._registration_error = "Failed to register hotkey. The combination may already be in use."
            self._running = False
            if self._registration_event:
                self._registration_event.set()
            return

        if self._registration_event:
            self._registration_event.set()

        try:
            msg = ctypes.wintypes.MSG()
            while self._running:
                ret = user32.GetMessageW(ctypes.byref(msg), None, 0, 0)
                if ret == 0:  # WM_QUIT
                    break
                if msg.message == WM_HOTKEY and msg.wParam == RECORD_HOTKEY_ID:
                    try:
                        self.callback()
                    except Exception as e:
                        # Keep the pump alive; one failed press must not disable the hotkey
                        logger.exception(f"Hotkey callback failed: {e}")
                user32.TranslateMessage(ctypes.byref(msg))
                user32.DispatchMessageW(ctypes.byref(msg))
        finally:
            user32.UnregisterHotKey(None, RECORD_HOTKEY_ID)
