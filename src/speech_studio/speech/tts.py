"""Text-to-speech session state machine and auto-pause watchdog."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from speech_studio.errors import EmptyInputError
from speech_studio.models import TtsEvent, TtsEventKind, TtsState, UtteranceRequest

from .interfaces import SpeechSynthesisPlatform

EventSink = Callable[[str, dict], None]

INTERRUPTED = "interrupted"
EMPTY_INPUT_MESSAGE = "Please type something first!"


class TtsInput(str, Enum):
    """Named inputs consumed by the TTS transition table."""

    SPEAK = "speak"
    STARTED = "started"
    ENDED = "ended"
    PAUSED = "paused"
    RESUMED = "resumed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"
    RECOVERED = "recovered"
    STOP = "stop"


_S = TtsState
_I = TtsInput

TTS_TRANSITIONS: dict[tuple[TtsState, TtsInput], TtsState] = {
    **{(state, _I.SPEAK): _S.SPEAKING for state in TtsState},
    **{(state, _I.STOP): _S.IDLE for state in TtsState},
    (_S.SPEAKING, _I.STARTED): _S.SPEAKING,
    (_S.SPEAKING, _I.ENDED): _S.IDLE,
    (_S.PAUSED, _I.ENDED): _S.IDLE,
    (_S.SPEAKING, _I.PAUSED): _S.PAUSED,
    (_S.PAUSED, _I.RESUMED): _S.SPEAKING,
    (_S.SPEAKING, _I.FAILED): _S.ERROR,
    (_S.PAUSED, _I.FAILED): _S.ERROR,
    (_S.SPEAKING, _I.INTERRUPTED): _S.IDLE,
    (_S.PAUSED, _I.INTERRUPTED): _S.IDLE,
    (_S.ERROR, _I.RECOVERED): _S.IDLE,
}

_EVENT_INPUTS = {
    TtsEventKind.STARTED: _I.STARTED,
    TtsEventKind.ENDED: _I.ENDED,
    TtsEventKind.PAUSED: _I.PAUSED,
    TtsEventKind.RESUMED: _I.RESUMED,
    TtsEventKind.ERROR: _I.FAILED,
}


@dataclass(slots=True, frozen=True)
class TtsControls:
    """Which playback affordances are usable in a given state."""

    speak_enabled: bool
    pause_enabled: bool
    stop_enabled: bool
    pause_label: str

    @classmethod
    def for_state(cls, state: TtsState) -> "TtsControls":
        active = state in (TtsState.SPEAKING, TtsState.PAUSED)
        return cls(
            speak_enabled=not active,
            pause_enabled=active,
            stop_enabled=active,
            pause_label="Resume" if state is TtsState.PAUSED else "Pause",
        )


class TtsSession:
    """Owns the single active utterance and drives it through the transition table."""

    def __init__(
        self,
        platform: SpeechSynthesisPlatform,
        emit: EventSink,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._emit = emit
        self._logger = logger or logging.getLogger("speech_studio.tts")
        self._state = TtsState.IDLE
        self._request: UtteranceRequest | None = None
        self._utterance_id = 0

    @property
    def state(self) -> TtsState:
        return self._state

    @property
    def request(self) -> UtteranceRequest | None:
        return self._request

    @property
    def is_speaking(self) -> bool:
        return self._state in (TtsState.SPEAKING, TtsState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self._state is TtsState.PAUSED

    def speak(self, request: UtteranceRequest) -> int:
        """Start playback, superseding any active utterance; returns the utterance id."""
        if not request.text:
            self._logger.warning("tts_empty_input")
            self._emit("tts_warning", {"message": EMPTY_INPUT_MESSAGE})
            raise EmptyInputError(EMPTY_INPUT_MESSAGE)

        self._platform.cancel()
        self._utterance_id += 1
        self._request = request
        self._apply(TtsInput.SPEAK)
        self._logger.info(
            "tts_speak_started",
            extra={
                "utterance_id": self._utterance_id,
                "chars": len(request.text),
                "voice": request.voice.identifier if request.voice else None,
                "rate": request.rate,
                "pitch": request.pitch,
                "volume": request.volume,
            },
        )
        try:
            self._platform.speak(self._utterance_id, request)
        except Exception as exc:  # noqa: BLE001 - platform faults end the utterance, not the session.
            self._logger.exception("tts_platform_speak_failed", extra={"utterance_id": self._utterance_id})
            self._fail(f"{type(exc).__name__}: {exc}")
        return self._utterance_id

    def pause(self) -> bool:
        if self._state is not TtsState.SPEAKING:
            return False
        self._platform.pause()
        return True

    def resume(self) -> bool:
        if self._state is not TtsState.PAUSED:
            return False
        self._platform.resume()
        return True

    def stop(self) -> None:
        """Cancel playback unconditionally and return to idle."""
        self._platform.cancel()
        self._request = None
        self._apply(TtsInput.STOP)
        self._emit("tts_stopped", {})

    def handle_event(self, event: TtsEvent) -> None:
        """Consume one platform lifecycle callback."""
        if self._request is None or event.utterance_id != self._utterance_id:
            self._logger.debug(
                "tts_stale_event_ignored",
                extra={"kind": event.kind.value, "utterance_id": event.utterance_id},
            )
            return

        if event.kind is TtsEventKind.ERROR:
            code = event.error or "unknown"
            if code == INTERRUPTED:
                self._logger.debug("tts_interrupted", extra={"utterance_id": event.utterance_id})
                self._request = None
                self._apply(TtsInput.INTERRUPTED)
                return
            self._fail(code)
            return

        if not self._apply(_EVENT_INPUTS[event.kind]):
            return
        if event.kind is TtsEventKind.ENDED:
            self._request = None
            self._logger.info("tts_speak_finished", extra={"utterance_id": event.utterance_id})
            self._emit("tts_finished", {})

    def _fail(self, code: str) -> None:
        self._logger.error("tts_failed", extra={"utterance_id": self._utterance_id, "code": code})
        self._request = None
        if not self._apply(TtsInput.FAILED):
            return
        self._emit("tts_error", {"code": code, "message": f"Speech error: {code}"})
        self._apply(TtsInput.RECOVERED)

    def _apply(self, tts_input: TtsInput) -> bool:
        target = TTS_TRANSITIONS.get((self._state, tts_input))
        if target is None:
            self._logger.debug("tts_input_ignored", extra={"state": self._state.value, "input": tts_input.value})
            return False
        if target is not self._state:
            self._state = target
            self._emit(
                "tts_state",
                {
                    "state": target,
                    "controls": TtsControls.for_state(target),
                    "visualizer": target is TtsState.SPEAKING,
                },
            )
        return True


class TtsWatchdog:
    """Force-resumes playback the platform silently auto-paused; never touches session state."""

    def __init__(
        self,
        session: TtsSession,
        platform: SpeechSynthesisPlatform,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self._platform = platform
        self._logger = logger or logging.getLogger("speech_studio.tts")

    def check(self) -> bool:
        if self._session.state is not TtsState.SPEAKING or not self._platform.paused:
            return False
        self._logger.info("tts_watchdog_resumed")
        self._platform.resume()
        return True
