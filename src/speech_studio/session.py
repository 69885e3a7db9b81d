"""Session coordination between the TTS and STT state machines, history and the view."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

from speech_studio.errors import EmptyInputError, UnsupportedError
from speech_studio.models import (
    HistoryEntry,
    SttEvent,
    SttState,
    StatusTone,
    TtsEvent,
    TtsState,
    UtteranceRequest,
    VoiceGroup,
)
from speech_studio.speech.catalog import VoiceCatalog
from speech_studio.speech.history import TranscriptHistoryStore
from speech_studio.speech.interfaces import SpeechRecognitionPlatform, SpeechSynthesisPlatform
from speech_studio.speech.stt import SttSession
from speech_studio.speech.tts import TtsControls, TtsSession, TtsWatchdog
from speech_studio.telemetry.logging import Telemetry

Dispatch = Callable[..., None]

LISTENING_PLACEHOLDER = "Listening..."
TTS_UNSUPPORTED_MESSAGE = "Text-to-speech is not supported on this system."


class StudioView(Protocol):
    """Presentation collaborator fed by the coordinator."""

    def show_status(self, text: str, tone: StatusTone) -> None: ...

    def show_notice(self, message: str) -> None: ...

    def show_unsupported(self, *, tts: bool, stt: bool) -> None: ...

    def show_tts_controls(self, controls: TtsControls) -> None: ...

    def show_visualizer(self, active: bool, label: str) -> None: ...

    def show_listening(self, active: bool) -> None: ...

    def show_transcript(self, final: str, interim: str) -> None: ...

    def show_voices(self, groups: list[VoiceGroup], selected: int | None) -> None: ...

    def show_history(self, entries: list[HistoryEntry]) -> None: ...


class Shortcut(str, Enum):
    """Keyboard accelerators understood by the coordinator."""

    SPEAK = "speak"
    TOGGLE_RECORDING = "toggle_recording"
    ABORT = "abort"


@dataclass(slots=True, frozen=True)
class Capabilities:
    tts: bool
    stt: bool

    @property
    def any(self) -> bool:
        return self.tts or self.stt


@dataclass(slots=True)
class SpeechControls:
    """Current values of the TTS and STT control surfaces."""

    text: str = ""
    voice_index: int | None = None
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    language: str = "en-US"


def _call_now(callback: Callable[..., Any], *args: Any) -> None:
    callback(*args)


class SessionCoordinator:
    """Routes user actions to the speech machines and their events to the view and history."""

    def __init__(
        self,
        *,
        view: StudioView,
        history: TranscriptHistoryStore,
        synthesis: SpeechSynthesisPlatform | None = None,
        recognition: SpeechRecognitionPlatform | None = None,
        controls: SpeechControls | None = None,
        dispatch: Dispatch | None = None,
        telemetry: Telemetry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._view = view
        self._history = history
        self._telemetry = telemetry
        self._dispatch = dispatch or _call_now
        self._logger = logger or logging.getLogger("speech_studio.session")
        self.controls = controls or SpeechControls()
        self.capabilities = Capabilities(tts=synthesis is not None, stt=recognition is not None)

        self._transcript = ""
        self._error_shown = False

        self.tts: TtsSession | None = None
        self.watchdog: TtsWatchdog | None = None
        if synthesis is not None:
            self.tts = TtsSession(synthesis, self.emit)
            self.watchdog = TtsWatchdog(self.tts, synthesis)
            synthesis.bind(lambda event: self._dispatch(self.handle_tts_event, event))
        self.stt = SttSession(recognition, self.emit)
        if recognition is not None:
            recognition.bind(lambda event: self._dispatch(self.handle_stt_event, event))
        self.catalog = VoiceCatalog(synthesis, on_change=self._voices_changed)

        history.on_change = self._view.show_history
        self._logger.info(
            "session_capabilities",
            extra={"tts": self.capabilities.tts, "stt": self.capabilities.stt},
        )
        if not self.capabilities.any:
            self._view.show_unsupported(tts=False, stt=False)

    @property
    def history(self) -> TranscriptHistoryStore:
        return self._history

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def is_speaking(self) -> bool:
        return self.tts is not None and self.tts.is_speaking

    @property
    def is_recording(self) -> bool:
        return self.stt.intent_listening or self.stt.is_listening

    @property
    def status(self) -> tuple[str, StatusTone]:
        if self.tts is not None and self.tts.state is TtsState.SPEAKING:
            return "Speaking", StatusTone.SPEAKING
        if self.tts is not None and self.tts.state is TtsState.PAUSED:
            return "Paused", StatusTone.NEUTRAL
        if self.stt.state is SttState.LISTENING:
            return "Listening", StatusTone.LISTENING
        return "Ready", StatusTone.NEUTRAL

    def initialize(self) -> None:
        """Populate the view: voices, history and the initial status."""
        self.refresh_voices()
        self._view.show_history(self._history.entries)
        self._refresh_status()

    def refresh_voices(self) -> None:
        """Rebuild the catalog; platforms call this again when their voice list changes."""
        self.catalog.refresh()

    # -- text to speech -------------------------------------------------

    def speak(self, text: str | None = None) -> int | None:
        """Speak ``text`` (or the current input) with the current control values."""
        if text is not None:
            self.controls.text = text
        if self.tts is None:
            self._notice(TTS_UNSUPPORTED_MESSAGE)
            return None

        request = UtteranceRequest(
            text=self.controls.text,
            voice=self.catalog.get(self.controls.voice_index),
            rate=self.controls.rate,
            pitch=self.controls.pitch,
            volume=self.controls.volume,
        )
        try:
            return self.tts.speak(request)
        except EmptyInputError:
            return None

    def toggle_pause(self) -> None:
        if self.tts is None:
            return
        if self.tts.is_paused:
            self.tts.resume()
        else:
            self.tts.pause()

    def stop_speech(self) -> None:
        if self.tts is None:
            return
        self.tts.stop()

    def clear_tts(self) -> None:
        self.stop_speech()
        self.controls.text = ""

    # -- speech to text -------------------------------------------------

    def toggle_recording(self) -> None:
        if self.is_recording:
            self.stop_recording()
        else:
            self.start_recording()

    def start_recording(self, language: str | None = None) -> bool:
        if language is not None:
            self.controls.language = language
        try:
            self.stt.start(self.controls.language)
        except UnsupportedError as exc:
            self._notice(str(exc))
            return False
        return self.stt.is_listening

    def stop_recording(self) -> None:
        self.stt.stop()

    def finish_recording(self, text: str) -> HistoryEntry | None:
        """Show a finalized capture; non-empty text is also appended to history."""
        final_text = text.strip()
        self._transcript = final_text
        self._view.show_transcript(final_text, "")
        if not final_text:
            self._notice("No speech detected")
            return None
        entry = self._history.append(final_text)
        self._notice("Speech captured!")
        return entry

    def send_to_tts(self) -> bool:
        text = self._transcript.strip()
        if not text:
            self._notice("No text to send")
            return False
        self.controls.text = text
        self._notice("Sent to Text-to-Speech!")
        return True

    def clear_transcript(self) -> None:
        self._transcript = ""
        self._view.show_transcript("", "")
        self._notice("Cleared")

    # -- history --------------------------------------------------------

    def load_from_history(self, entry_id: int | str) -> HistoryEntry | None:
        entry = self._history.get(entry_id)
        if entry is None:
            return None
        self._transcript = entry.text
        self._view.show_transcript(entry.text, "")
        self._notice("Loaded from history")
        return entry

    def clear_history(self) -> bool:
        if not self._history.clear():
            self._notice("History is already empty")
            return False
        self._notice("History cleared")
        return True

    # -- keyboard -------------------------------------------------------

    def handle_shortcut(self, shortcut: Shortcut) -> None:
        if shortcut is Shortcut.SPEAK:
            if not self.is_speaking:
                self.speak()
        elif shortcut is Shortcut.TOGGLE_RECORDING:
            self.toggle_recording()
        elif shortcut is Shortcut.ABORT:
            if self.is_speaking:
                self.stop_speech()
            if self.is_recording:
                self.stop_recording()

    # -- platform and machine events ------------------------------------

    def handle_tts_event(self, event: TtsEvent) -> None:
        if self.tts is not None:
            self.tts.handle_event(event)

    def handle_stt_event(self, event: SttEvent) -> None:
        self.stt.handle_event(event)

    def emit(self, event_name: str, payload: dict) -> None:
        """Event sink shared by both state machines."""
        if self._telemetry is not None:
            self._telemetry.emit(event_name, payload)

        handler = getattr(self, f"_on_{event_name}", None)
        if handler is None:
            self._logger.debug("session_event_unhandled", extra={"event_name": event_name})
            return
        handler(payload)

    def _on_tts_state(self, payload: dict) -> None:
        state: TtsState = payload["state"]
        self._view.show_tts_controls(payload["controls"])
        label = {TtsState.SPEAKING: "Speaking", TtsState.PAUSED: "Paused"}.get(state, "Idle")
        self._view.show_visualizer(payload["visualizer"], label)
        if state is not TtsState.ERROR:
            self._refresh_status()

    def _on_tts_warning(self, payload: dict) -> None:
        self._notice(payload["message"])

    def _on_tts_finished(self, payload: dict) -> None:
        self._notice("Done speaking!")

    def _on_tts_stopped(self, payload: dict) -> None:
        self._notice("Stopped")

    def _on_tts_error(self, payload: dict) -> None:
        self._show_error(payload["message"])

    def _on_stt_state(self, payload: dict) -> None:
        state: SttState = payload["state"]
        if state is SttState.LISTENING:
            self._view.show_listening(True)
            self._view.show_transcript("", LISTENING_PLACEHOLDER)
        elif state is SttState.IDLE:
            self._view.show_listening(False)
        if state in (SttState.LISTENING, SttState.IDLE):
            self._refresh_status()

    def _on_stt_transcript(self, payload: dict) -> None:
        self._transcript = payload["final"]
        self._view.show_transcript(payload["final"], payload["interim"])

    def _on_stt_captured(self, payload: dict) -> None:
        self.finish_recording(payload["text"])

    def _on_stt_empty(self, payload: dict) -> None:
        self.finish_recording("")

    def _on_stt_error(self, payload: dict) -> None:
        self._show_error(payload["message"])

    def _on_stt_start_failed(self, payload: dict) -> None:
        self._notice(payload["message"])

    def _voices_changed(self, groups: list[VoiceGroup]) -> None:
        if self.catalog.get(self.controls.voice_index) is None:
            self.controls.voice_index = self.catalog.default_index()
        self._view.show_voices(groups, self.controls.voice_index)

    def _notice(self, message: str) -> None:
        self._view.show_notice(message)

    def _show_error(self, message: str) -> None:
        self._notice(message)
        self._error_shown = True
        self._view.show_status("Error", StatusTone.ERROR)

    def _refresh_status(self) -> None:
        if self._error_shown:
            # An error status survives the settle-to-idle that follows it.
            self._error_shown = False
            text, _ = self.status
            if text == "Ready":
                return
        text, tone = self.status
        self._view.show_status(text, tone)
