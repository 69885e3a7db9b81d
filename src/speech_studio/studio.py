"""Line-oriented interactive shell over a session coordinator."""

from __future__ import annotations

from typing import Callable

from speech_studio.console import format_pitch, format_rate, format_volume
from speech_studio.models import PITCH_RANGE, RATE_RANGE, VOLUME_RANGE, clamp
from speech_studio.session import SessionCoordinator, Shortcut

STUDIO_HELP = """\
Type text to set what will be spoken, or a command:
  /speak            speak the current text (accelerator, ignored while speaking)
  /pause            pause or resume playback
  /stop             stop playback
  /mic              start or stop listening (accelerator)
  /esc              stop everything that is active
  /send             copy the transcript into the text to speak
  /voices           list voices          /voice N      select voice N
  /rate X  /pitch X  /volume X           adjust speech parameters
  /lang TAG         recognition language
  /history          list history         /load ID      show a history entry
  /clear-history    remove all history   /quit         leave the studio"""

_SHORTCUTS = {
    "/speak": Shortcut.SPEAK,
    "/mic": Shortcut.TOGGLE_RECORDING,
    "/esc": Shortcut.ABORT,
}


class StudioShell:
    """Maps typed lines onto coordinator actions; ``handle_line`` returns ``False`` to quit."""

    def __init__(self, coordinator: SessionCoordinator, output: Callable[[str], None]) -> None:
        self._coordinator = coordinator
        self._output = output

    def handle_line(self, line: str) -> bool:
        stripped = line.strip()
        if not stripped:
            return True
        if not stripped.startswith("/"):
            self._coordinator.controls.text = stripped
            return True

        command, _, argument = stripped.partition(" ")
        command = command.lower()
        argument = argument.strip()
        coordinator = self._coordinator

        if command in ("/quit", "/exit"):
            coordinator.handle_shortcut(Shortcut.ABORT)
            return False
        if command in _SHORTCUTS:
            coordinator.handle_shortcut(_SHORTCUTS[command])
        elif command == "/pause":
            coordinator.toggle_pause()
        elif command == "/stop":
            coordinator.stop_speech()
        elif command == "/send":
            coordinator.send_to_tts()
        elif command == "/voices":
            coordinator.refresh_voices()
            for group in coordinator.catalog.groups:
                for index, voice in group.voices:
                    self._output(f"{index:>3}  {group.prefix:<4} {voice.label}")
        elif command == "/voice":
            self._select_voice(argument)
        elif command in ("/rate", "/pitch", "/volume"):
            self._set_parameter(command[1:], argument)
        elif command == "/lang":
            if argument:
                coordinator.controls.language = argument
            self._output(f"language: {coordinator.controls.language}")
        elif command == "/history":
            entries = coordinator.history.entries
            if not entries:
                self._output("No history yet")
            for entry in entries:
                self._output(f"{entry.id}  {entry.time}  {entry.text}")
        elif command == "/load":
            if coordinator.load_from_history(argument) is None:
                self._output(f"No history entry with id {argument or '?'}")
        elif command == "/clear-history":
            coordinator.clear_history()
        elif command == "/help":
            self._output(STUDIO_HELP)
        else:
            self._output(f"Unknown command {command}; /help lists commands")
        return True

    def _select_voice(self, argument: str) -> None:
        try:
            index = int(argument)
        except ValueError:
            self._output("Usage: /voice N")
            return
        voice = self._coordinator.catalog.get(index)
        if voice is None:
            self._coordinator.controls.voice_index = None
            self._output(f"No voice #{index}; the platform default will be used")
            return
        self._coordinator.controls.voice_index = index
        self._output(f"voice: {voice.label}")

    def _set_parameter(self, name: str, argument: str) -> None:
        try:
            value = float(argument)
        except ValueError:
            self._output(f"Usage: /{name} NUMBER")
            return
        controls = self._coordinator.controls
        bounds = {"rate": RATE_RANGE, "pitch": PITCH_RANGE, "volume": VOLUME_RANGE}[name]
        setattr(controls, name, clamp(value, bounds))
        formatted = {
            "rate": format_rate(controls.rate),
            "pitch": format_pitch(controls.pitch),
            "volume": format_volume(controls.volume),
        }[name]
        self._output(f"{name}: {formatted}")
