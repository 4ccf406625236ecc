"""Tkinter GUI for voice-typing."""

import logging
import time
from tkinter import END, BooleanVar, Listbox, Menu, StringVar, Text, Tk, Toplevel, messagebox, ttk

from voice_typing import autostart, hotkeys
from voice_typing.app import DictationApp
from voice_typing.audio import list_input_devices
from voice_typing.config import DEFAULT_HOTKEY, HISTORY_LIMIT_CHOICES, PROVIDER_NAMES
from voice_typing.coordinator import CoordinatorState, TriggerSource
from voice_typing.logging_config import LOG_FILE
from voice_typing.models import ApiKeyStatus, ProviderConfig, ProviderId
from voice_typing.text_merge import BufferState

logger = logging.getLogger(__name__)

STATUS_TEXT = {
    CoordinatorState.IDLE: "Ready",
    CoordinatorState.RECORDING: "Recording... press the hotkey or Stop to finish",
    CoordinatorState.TRANSCRIBING: "Transcribing...",
}

KEY_STATUS_TEXT = {
    ApiKeyStatus.UNVERIFIED: "Not verified",
    ApiKeyStatus.VERIFYING: "Verifying...",
    ApiKeyStatus.VALID: "Valid",
    ApiKeyStatus.INVALID: "Invalid",
}

DEFAULT_DEVICE_LABEL = "System default"


def _limit_label(limit: int) -> str:
    return "Unlimited" if limit == 0 else str(limit)


class App(Tk):
    """Main application window."""

    def __init__(self, app: DictationApp | None = None, start_minimized: bool = False):
        super().__init__()
        self.title("Voice Typing")
        self.geometry("720x480")
        self.protocol("WM_DELETE_WINDOW", self._on_close)

        self.option_add("*Font", ("Segoe UI", 10))
        style = ttk.Style(self)
        style.configure("Section.TLabelframe", padding=(12, 10))
        style.configure("Section.TLabelframe.Label", font=("Segoe UI", 9, "bold"))

        self.app = app or DictationApp()
        self.hotkey_manager: hotkeys.HotkeyManager | None = None
        self._rendering = False

        # Secondary windows
        self._settings_window: Toplevel | None = None
        self._history_window: Toplevel | None = None
        self._log_window: Toplevel | None = None
        self._history_list: Listbox | None = None
        self._settings_refresh = None

        self._build_menus()
        self._build_ui()

        # Listeners fire on worker threads; hand everything to the Tk loop
        self.app.buffer.add_listener(lambda state: self.after(0, self._render_buffer, state))
        self.app.coordinator.add_state_listener(lambda state: self.after(0, self._render_state, state))
        self.app.registry.add_listener(lambda pid, cfg: self.after(0, self._on_config_changed, pid, cfg))

        self._render_state(CoordinatorState.IDLE)
        self._update_provider_label()
        if start_minimized:
            self.iconify()
        self.after(100, self._auto_startup)

    def _build_menus(self) -> None:
        menubar = Menu(self)
        settings_menu = Menu(menubar, tearoff=False)
        settings_menu.add_command(label="Settings...", command=self._open_settings)
        menubar.add_cascade(label="Settings", menu=settings_menu)

        view_menu = Menu(menubar, tearoff=False)
        view_menu.add_command(label="History...", command=self._open_history)
        view_menu.add_command(label="Logs", command=self._open_log_viewer)
        menubar.add_cascade(label="View", menu=view_menu)

        self.config(menu=menubar)

    def _build_ui(self) -> None:
        ctrl = ttk.Frame(self, padding=(12, 12, 12, 8))
        ctrl.pack(fill="x")
        self.btn_record = ttk.Button(ctrl, text="Start recording", command=self._toggle_record)
        self.btn_record.grid(row=0, column=0, padx=(0, 8))
        self.lbl_status = ttk.Label(ctrl, text="")
        self.lbl_status.grid(row=0, column=1, sticky="w")
        self.lbl_provider = ttk.Label(ctrl, text="", foreground="#6c757d")
        self.lbl_provider.grid(row=0, column=2, sticky="e")
        ctrl.columnconfigure(1, weight=1)

        out = ttk.Frame(self, padding=(12, 0, 12, 8))
        out.pack(fill="both", expand=True)
        self.txt_out = Text(out, wrap="word", undo=True)
        self.txt_out.pack(fill="both", expand=True)
        self.txt_out.bind("<KeyRelease>", self._sync_from_widget)
        self.txt_out.bind("<ButtonRelease>", self._sync_from_widget)
        self.txt_out.bind("<FocusOut>", self._sync_from_widget)

        actions = ttk.Frame(self, padding=(12, 0, 12, 12))
        actions.pack(fill="x")
        ttk.Button(actions, text="Copy", command=self._copy).grid(row=0, column=0, padx=(0, 8))
        ttk.Button(actions, text="Save & clear", command=self._save_and_clear).grid(row=0, column=1)

    # -- buffer <-> widget --------------------------------------------------

    def _widget_cursor(self) -> int:
        return len(self.txt_out.get("1.0", "insert"))

    def _sync_from_widget(self, event=None) -> None:
        """Push the user's edits and caret position into the shared buffer."""
        if self._rendering:
            return
        text = self.txt_out.get("1.0", "end-1c")
        if text != self.app.buffer.text:
            self.txt_out.configure(foreground="black")
            self.app.buffer.set_text(text, self._widget_cursor())
        else:
            self.app.buffer.set_cursor(self._widget_cursor())

    def _render_buffer(self, state: BufferState) -> None:
        if self.txt_out.get("1.0", "end-1c") == state.text and not state.showing_message:
            return
        self._rendering = True
        try:
            self.txt_out.delete("1.0", END)
            self.txt_out.insert("1.0", state.text)
            self.txt_out.mark_set("insert", f"1.0+{state.cursor}c")
            self.txt_out.see("insert")
            self.txt_out.configure(foreground="#6c757d" if state.showing_message else "black")
        finally:
            self._rendering = False

    # -- recording ----------------------------------------------------------

    def _toggle_record(self) -> None:
        coordinator = self.app.coordinator
        if coordinator.state is CoordinatorState.RECORDING:
            coordinator.stop(TriggerSource.UI)
        else:
            self._sync_from_widget()
            coordinator.start(TriggerSource.UI)

    def _on_hotkey(self) -> None:
        self.deiconify()
        self.lift()
        self.focus_force()
        self._sync_from_widget()
        self.app.coordinator.toggle(TriggerSource.HOTKEY)

    def _render_state(self, state: CoordinatorState) -> None:
        self.lbl_status.config(text=STATUS_TEXT[state])
        if state is CoordinatorState.RECORDING:
            self.btn_record.config(text="Stop and transcribe", state="normal")
        elif state is CoordinatorState.TRANSCRIBING:
            self.btn_record.config(text="Transcribing...", state="disabled")
        else:
            self.btn_record.config(text="Start recording", state="normal")
        logger.debug(f"State: {state.value}")

    def _auto_startup(self) -> None:
        self.app.registry.validate_on_startup()
        try:

            def hotkey_callback():
                self.after(0, self._on_hotkey)

            self.hotkey_manager = hotkeys.HotkeyManager(hotkey_callback)
            self.hotkey_manager.register(DEFAULT_HOTKEY)
            self.lbl_status.config(text=f"Ready (hotkey: {DEFAULT_HOTKEY})")
        except hotkeys.HotkeyError as e:
            # The record button still works without a global hotkey
            logger.warning(f"Hotkey registration failed: {e}")
            self.hotkey_manager = None

    # -- actions ------------------------------------------------------------

    def _copy(self) -> None:
        self._sync_from_widget()
        if self.app.copy_to_clipboard():
            self.lbl_status.config(text="Copied to clipboard")

    def _save_and_clear(self) -> None:
        self._sync_from_widget()
        self.app.save_and_clear()
        self._refresh_history_list()

    def _update_provider_label(self) -> None:
        config = self.app.registry.active_config()
        self.lbl_provider.config(text=f"{PROVIDER_NAMES[config.provider_id.value]} · {config.selected_model}")

    def _on_config_changed(self, provider_id: ProviderId, config: ProviderConfig) -> None:
        self._update_provider_label()
        if self._settings_refresh is not None:
            self._settings_refresh()

    # -- secondary windows --------------------------------------------------

    def _open_window(self, window_attr: str, title: str, builder, resizable: bool = False) -> None:
        """Open or focus a secondary window."""
        existing = getattr(self, window_attr)
        if existing and existing.winfo_exists():
            existing.deiconify()
            existing.lift()
            existing.focus_set()
            return

        window = Toplevel(self)
        window.title(title)
        window.resizable(resizable, resizable)
        setattr(self, window_attr, window)
        window.protocol("WM_DELETE_WINDOW", lambda: self._close_window(window_attr))
        builder(window)

    def _close_window(self, window_attr: str) -> None:
        window = getattr(self, window_attr)
        if window and window.winfo_exists():
            window.destroy()
        setattr(self, window_attr, None)
        if window_attr == "_settings_window":
            self._settings_refresh = None
        elif window_attr == "_history_window":
            self._history_list = None

    def _open_settings(self) -> None:
        registry = self.app.registry
        history = self.app.history

        def build(window: Toplevel) -> None:
            frame = ttk.Frame(window, padding=12)
            frame.pack(fill="both", expand=True)

            # Provider
            provider_box = ttk.Labelframe(frame, text="Transcription", style="Section.TLabelframe")
            provider_box.grid(row=0, column=0, sticky="we")
            provider_box.columnconfigure(1, weight=1)

            names = {PROVIDER_NAMES[p.value]: p for p in ProviderId}
            var_provider = StringVar(value=PROVIDER_NAMES[registry.active_provider.value])
            var_key = StringVar(value=registry.active_config().api_key)
            var_model = StringVar()
            lbl_key_status = ttk.Label(provider_box, text="")

            ttk.Label(provider_box, text="Provider").grid(row=0, column=0, sticky="w", pady=4)
            cmb_provider = ttk.Combobox(
                provider_box, textvariable=var_provider, values=list(names), state="readonly", width=32
            )
            cmb_provider.grid(row=0, column=1, sticky="we", pady=4)

            ttk.Label(provider_box, text="API key").grid(row=1, column=0, sticky="w", pady=4)
            ent_key = ttk.Entry(provider_box, textvariable=var_key, show="•", width=40)
            ent_key.grid(row=1, column=1, sticky="we", pady=4)
            lbl_key_status.grid(row=2, column=1, sticky="w")

            ttk.Label(provider_box, text="Model").grid(row=3, column=0, sticky="w", pady=4)
            cmb_model = ttk.Combobox(provider_box, textvariable=var_model, state="readonly", width=32)
            cmb_model.grid(row=3, column=1, sticky="we", pady=4)

            def refresh() -> None:
                config = registry.config(names[var_provider.get()])
                status = KEY_STATUS_TEXT[config.api_key_status]
                if config.models_loading:
                    status += " (loading models...)"
                lbl_key_status.config(text=status)
                labels = [f"{m.display_name} ({m.id})" for m in config.available_models]
                cmb_model.config(values=labels)
                for model, label in zip(config.available_models, labels):
                    if model.id == config.selected_model:
                        var_model.set(label)

            def on_provider(*_):
                provider_id = names[var_provider.get()]
                registry.select_provider(provider_id)
                var_key.set(registry.config(provider_id).api_key)
                refresh()

            def on_key(*_):
                registry.set_api_key(names[var_provider.get()], var_key.get())

            def on_model(*_):
                config = registry.config(names[var_provider.get()])
                index = cmb_model.current()
                if 0 <= index < len(config.available_models):
                    registry.select_model(config.provider_id, config.available_models[index].id)

            cmb_provider.bind("<<ComboboxSelected>>", on_provider)
            ent_key.bind("<KeyRelease>", on_key)
            ent_key.bind("<<Paste>>", lambda e: self.after(10, on_key))
            cmb_model.bind("<<ComboboxSelected>>", on_model)

            # Microphone
            mic_box = ttk.Labelframe(frame, text="Microphone", style="Section.TLabelframe")
            mic_box.grid(row=1, column=0, sticky="we", pady=(8, 0))
            devices = list_input_devices()
            device_labels = [DEFAULT_DEVICE_LABEL] + [f"{idx}: {name}" for idx, name in devices]
            current = self.app.input_device
            var_device = StringVar(value=DEFAULT_DEVICE_LABEL)
            for idx, name in devices:
                if idx == current:
                    var_device.set(f"{idx}: {name}")
            cmb_device = ttk.Combobox(mic_box, textvariable=var_device, values=device_labels, state="readonly", width=44)
            cmb_device.grid(row=0, column=0, sticky="we")

            def on_device(*_):
                index = cmb_device.current()
                self.app.set_input_device(None if index <= 0 else devices[index - 1][0])

            cmb_device.bind("<<ComboboxSelected>>", on_device)

            # History
            history_box = ttk.Labelframe(frame, text="History", style="Section.TLabelframe")
            history_box.grid(row=2, column=0, sticky="we", pady=(8, 0))
            var_history = BooleanVar(value=history.enabled)
            var_limit = StringVar(value=_limit_label(history.limit))
            ttk.Checkbutton(
                history_box,
                text="Keep a history of transcripts",
                variable=var_history,
                command=lambda: history.set_enabled(var_history.get()),
            ).grid(row=0, column=0, columnspan=2, sticky="w")
            ttk.Label(history_box, text="Keep at most").grid(row=1, column=0, sticky="w", pady=4)
            cmb_limit = ttk.Combobox(
                history_box,
                textvariable=var_limit,
                values=[_limit_label(n) for n in HISTORY_LIMIT_CHOICES],
                state="readonly",
                width=12,
            )
            cmb_limit.grid(row=1, column=1, sticky="w", pady=4)

            def on_limit(*_):
                history.set_limit(HISTORY_LIMIT_CHOICES[cmb_limit.current()])
                self._refresh_history_list()

            cmb_limit.bind("<<ComboboxSelected>>", on_limit)

            # System
            system_box = ttk.Labelframe(frame, text="System", style="Section.TLabelframe")
            system_box.grid(row=3, column=0, sticky="we", pady=(8, 0))
            var_autostart = BooleanVar(value=autostart.is_enabled())

            def on_autostart():
                try:
                    if var_autostart.get():
                        autostart.enable()
                    else:
                        autostart.disable()
                except autostart.AutostartError as e:
                    var_autostart.set(autostart.is_enabled())
                    messagebox.showerror("Autostart", str(e), parent=window)

            ttk.Checkbutton(
                system_box, text="Start with the system (minimized)", variable=var_autostart, command=on_autostart
            ).grid(row=0, column=0, sticky="w")
            hotkey_text = (
                f"Global hotkey: {self.hotkey_manager.hotkey}"
                if self.hotkey_manager and self.hotkey_manager.hotkey
                else "Global hotkey not available"
            )
            ttk.Label(system_box, text=hotkey_text, foreground="#6c757d").grid(row=1, column=0, sticky="w")

            self._settings_refresh = refresh
            refresh()

        self._open_window("_settings_window", "Settings", build)

    def _open_history(self) -> None:
        def build(window: Toplevel) -> None:
            window.geometry("560x380")
            frame = ttk.Frame(window, padding=12)
            frame.pack(fill="both", expand=True)
            frame.columnconfigure(0, weight=1)
            frame.rowconfigure(0, weight=1)

            listbox = Listbox(frame, activestyle="none")
            listbox.grid(row=0, column=0, sticky="nsew")
            scrollbar = ttk.Scrollbar(frame, orient="vertical", command=listbox.yview)
            scrollbar.grid(row=0, column=1, sticky="ns")
            listbox.configure(yscrollcommand=scrollbar.set)
            self._history_list = listbox

            def selected_id() -> str | None:
                selection = listbox.curselection()
                if not selection:
                    return None
                items = self.app.history.items()
                return items[selection[0]].id if selection[0] < len(items) else None

            def restore():
                item_id = selected_id()
                if item_id and self.app.restore(item_id):
                    self._close_window("_history_window")

            def delete():
                item_id = selected_id()
                if item_id:
                    self.app.history.delete(item_id)
                    self._refresh_history_list()

            def clear():
                if messagebox.askyesno("History", "Delete all history entries?", parent=window):
                    self.app.history.clear()
                    self._refresh_history_list()

            buttons = ttk.Frame(frame)
            buttons.grid(row=1, column=0, columnspan=2, sticky="w", pady=(8, 0))
            ttk.Button(buttons, text="Restore", command=restore).grid(row=0, column=0, padx=(0, 8))
            ttk.Button(buttons, text="Delete", command=delete).grid(row=0, column=1, padx=(0, 8))
            ttk.Button(buttons, text="Clear all", command=clear).grid(row=0, column=2)
            listbox.bind("<Double-Button-1>", lambda e: restore())

            self._refresh_history_list()

        self._open_window("_history_window", "History", build, resizable=True)

    def _refresh_history_list(self) -> None:
        listbox = self._history_list
        if listbox is None or not listbox.winfo_exists():
            return
        listbox.delete(0, END)
        for item in self.app.history.items():
            stamp = _time_label(item.timestamp)
            preview = item.text.replace("\n", " ")
            listbox.insert(END, f"{stamp}  {preview[:80]}{'…' if len(preview) > 80 else ''}")

    def _open_log_viewer(self) -> None:
        """Open a window to view the current log file."""

        def build(window: Toplevel) -> None:
            window.geometry("900x600")
            frame = ttk.Frame(window, padding=12)
            frame.pack(fill="both", expand=True)
            frame.columnconfigure(0, weight=1)
            frame.rowconfigure(1, weight=1)

            ttk.Label(frame, text=f"Logs are written to {LOG_FILE}").grid(row=0, column=0, sticky="w", pady=(0, 8))
            text = Text(frame, wrap="word")
            text.grid(row=1, column=0, sticky="nsew")
            scrollbar = ttk.Scrollbar(frame, orient="vertical", command=text.yview)
            scrollbar.grid(row=1, column=1, sticky="ns")
            text.configure(yscrollcommand=scrollbar.set)

            try:
                content = LOG_FILE.read_text(encoding="utf-8")
            except FileNotFoundError:
                content = "Log file not found."
            except (OSError, UnicodeDecodeError) as e:
                content = f"Could not read log file: {e}"
            text.insert("1.0", content)
            text.see("end")
            text.configure(state="disabled")

        self._open_window("_log_window", "Logs", build, resizable=True)

    def _on_close(self) -> None:
        try:
            if self.hotkey_manager:
                self.hotkey_manager.unregister()
            if self.app.coordinator.state is CoordinatorState.RECORDING:
                self.app.coordinator.stop(TriggerSource.UI)
            self.app.shutdown()
        finally:
            self.destroy()


def _time_label(timestamp_ms: int) -> str:
    return time.strftime("%d.%m. %H:%M", time.localtime(timestamp_ms / 1000))


def main(start_minimized: bool = False) -> None:
    """Main entry point for the GUI application."""
    app = App(start_minimized=start_minimized)
    app.mainloop()
