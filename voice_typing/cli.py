"""Headless command-line front-end for voice-typing."""

from __future__ import annotations

import argparse
import logging
import time
from typing import Optional

import pyperclip

from voice_typing.app import DictationApp
from voice_typing.audio import list_input_devices
from voice_typing.config import DEFAULT_HOTKEY, PROVIDER_NAMES
from voice_typing.coordinator import CoordinatorState, TriggerSource
from voice_typing.hotkeys import HotkeyError, HotkeyManager
from voice_typing.models import ApiKeyStatus, ProviderId, TranscriptionOutcome

logger = logging.getLogger(__name__)


class ConsoleFrontend:
    """Prints state changes and transcripts; Enter toggles recording."""

    def __init__(self, app: DictationApp, copy: bool = True):
        self.app = app
        self.copy = copy
        app.coordinator.add_state_listener(self.on_state)
        app.coordinator.add_result_listener(self.on_result)

    def on_state(self, state: CoordinatorState) -> None:
        if state is CoordinatorState.RECORDING:
            print("[REC] Speak now. Press Enter or the hotkey again to stop.")
        elif state is CoordinatorState.TRANSCRIBING:
            print("[REC] Stopped. Transcribing...")

    def on_result(self, outcome: TranscriptionOutcome) -> None:
        state = self.app.buffer.snapshot()
        stamp = time.strftime("%H:%M:%S", time.localtime())
        if not outcome.ok:
            print(f"[{stamp}] ({state.text or outcome.failure.value})")
            return

        print(f"[{stamp}] {outcome.text}")
        if self.copy:
            try:
                pyperclip.copy(outcome.text)
                print("(copied to clipboard)")
            except pyperclip.PyperclipException as e:
                print(f"(clipboard copy failed: {e})")
        self.app.history.record(outcome.text)
        # Each utterance stands alone in the console
        self.app.buffer.clear()

    def on_enter(self) -> None:
        state = self.app.coordinator.state
        if state is CoordinatorState.RECORDING:
            self.app.coordinator.stop(TriggerSource.UI)
        elif state is CoordinatorState.IDLE:
            self.app.coordinator.start(TriggerSource.UI)
            if self.app.buffer.showing_message:
                print(self.app.buffer.text)
        else:
            print("(still transcribing)")


def run(args: argparse.Namespace, app: DictationApp | None = None) -> None:
    app = app or DictationApp()

    if args.provider:
        app.registry.select_provider(ProviderId(args.provider))
    if args.input_device is not None:
        app.set_input_device(args.input_device)

    config = app.registry.active_config()
    print(f"Provider: {PROVIDER_NAMES[config.provider_id.value]} ({config.selected_model})")
    if not config.has_api_key:
        print(f"No API key stored for {config.provider_id.value}. Use --set-key or the GUI settings.")

    frontend = ConsoleFrontend(app, copy=not args.no_copy)

    hotkeys = HotkeyManager(lambda: app.coordinator.toggle(TriggerSource.HOTKEY))
    try:
        hotkeys.register(args.hotkey)
        print(f"Toggle hotkey: {args.hotkey}")
    except HotkeyError as e:
        logger.warning(f"Global hotkey unavailable: {e}")
        print("(global hotkey unavailable; use Enter)")

    print("Press Enter to start/stop recording, type q and Enter to quit.")
    try:
        while True:
            line = input()
            if line.strip().lower() in {"q", "quit", "exit"}:
                break
            frontend.on_enter()
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        hotkeys.unregister()
        if app.coordinator.state is CoordinatorState.RECORDING:
            app.coordinator.stop(TriggerSource.UI)
        app.shutdown()
        print("Quitting.")


def set_key(app: DictationApp, provider: str, api_key: str) -> int:
    """Store a key and validate it synchronously. Returns a process exit code."""
    provider_id = ProviderId(provider)
    app.registry.set_api_key(provider_id, api_key, schedule_validation=False)
    status = app.registry.validate_key(provider_id)
    print(f"{PROVIDER_NAMES[provider_id.value]} API key: {status.value}")
    return 0 if status is ApiKeyStatus.VALID else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="voice-typing --mode cli",
        description="Dictate from the terminal with cloud transcription",
    )
    parser.add_argument("--hotkey", default=DEFAULT_HOTKEY, help="Global hotkey to start/stop recording")
    parser.add_argument(
        "--provider",
        choices=[p.value for p in ProviderId],
        default=None,
        help="Transcription provider to use (saved as the new default)",
    )
    parser.add_argument("--input-device", type=int, default=None, help="Input device index")
    parser.add_argument("--list-devices", action="store_true", help="List input devices and exit")
    parser.add_argument(
        "--set-key",
        nargs=2,
        metavar=("PROVIDER", "KEY"),
        help="Store and validate an API key, then exit",
    )
    parser.add_argument("--no-copy", action="store_true", help="Do not copy transcripts to the clipboard")
    args = parser.parse_args(argv)

    if args.list_devices:
        for index, name in list_input_devices():
            print(f"{index:3d}  {name}")
        return 0

    if args.set_key:
        provider, api_key = args.set_key
        if provider not in {p.value for p in ProviderId}:
            parser.error(f"unknown provider: {provider}")
        return set_key(DictationApp(), provider, api_key)

    run(args)
    return 0
