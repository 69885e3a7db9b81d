"""Continuous speech-to-text session state machine."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from speech_studio.errors import RecognitionAlreadyStartedError, UnsupportedError
from speech_studio.models import (
    RecognitionConfig,
    RecognitionSession,
    SttError,
    SttErrorKind,
    SttEvent,
    SttEventKind,
    SttState,
)

from .interfaces import SpeechRecognitionPlatform

EventSink = Callable[[str, dict], None]

UNSUPPORTED_MESSAGE = "Speech recognition is not supported on this system."

# code -> (kind, message, retriable)
STT_ERROR_TABLE: dict[str, tuple[SttErrorKind, str, bool]] = {
    "network": (SttErrorKind.NETWORK, "Network error. Check your connection.", True),
    "not-allowed": (
        SttErrorKind.PERMISSION_DENIED,
        "Microphone access denied. Allow mic access in your system settings.",
        False,
    ),
    "no-speech": (SttErrorKind.NO_SPEECH, "No speech detected. Try again.", True),
    "audio-capture": (SttErrorKind.AUDIO_CAPTURE, "No microphone found.", False),
    "service-not-allowed": (SttErrorKind.SERVICE_NOT_ALLOWED, "Service not allowed.", False),
}


def classify_error(code: str | None) -> SttError:
    """Map a raw platform error code onto a user-facing classification."""
    raw = code or "unknown"
    if raw in STT_ERROR_TABLE:
        kind, message, retriable = STT_ERROR_TABLE[raw]
        return SttError(kind=kind, code=raw, message=message, retriable=retriable)
    return SttError(kind=SttErrorKind.UNKNOWN, code=raw, message=f"Error: {raw}", retriable=True)


class SttInput(str, Enum):
    START = "start"
    FAILED_TO_START = "failed_to_start"
    FINALIZE = "finalize"
    FINALIZED = "finalized"
    FAILED = "failed"
    RECOVERED = "recovered"


_S = SttState
_I = SttInput

STT_TRANSITIONS: dict[tuple[SttState, SttInput], SttState] = {
    (_S.IDLE, _I.START): _S.LISTENING,
    (_S.LISTENING, _I.FAILED_TO_START): _S.IDLE,
    (_S.LISTENING, _I.FINALIZE): _S.FINALIZING,
    (_S.FINALIZING, _I.FINALIZED): _S.IDLE,
    (_S.LISTENING, _I.FAILED): _S.ERROR,
    (_S.ERROR, _I.RECOVERED): _S.IDLE,
}


class SttSession:
    """Continuous listening driven by the user's intent flag rather than platform state."""

    def __init__(
        self,
        platform: SpeechRecognitionPlatform | None,
        emit: EventSink,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._platform = platform
        self._emit = emit
        self._logger = logger or logging.getLogger("speech_studio.stt")
        self._state = SttState.IDLE
        self._intent_listening = False
        self._session: RecognitionSession | None = None

    @property
    def state(self) -> SttState:
        return self._state

    @property
    def supported(self) -> bool:
        return self._platform is not None

    @property
    def intent_listening(self) -> bool:
        return self._intent_listening

    @property
    def is_listening(self) -> bool:
        return self._state is SttState.LISTENING

    @property
    def session(self) -> RecognitionSession | None:
        return self._session

    def start(self, language: str) -> None:
        """Begin continuous listening in ``language``."""
        if self._platform is None:
            raise UnsupportedError(UNSUPPORTED_MESSAGE)
        if self._state is not SttState.IDLE:
            self._logger.debug("stt_start_ignored", extra={"state": self._state.value})
            return

        config = RecognitionConfig(language=language, continuous=True, interim_results=True)
        self._session = RecognitionSession(config=config)
        self._intent_listening = True
        self._apply(SttInput.START)
        self._logger.info("stt_listening_started", extra={"language": language})

        try:
            self._platform.start(config)
        except Exception as exc:  # noqa: BLE001 - any start fault returns the machine to idle.
            self._logger.warning("stt_start_failed", extra={"error": str(exc)})
            self._intent_listening = False
            self._session = None
            self._apply(SttInput.FAILED_TO_START)
            self._emit("stt_start_failed", {"message": f"Could not start microphone: {exc}"})

    def stop(self) -> None:
        """Drop the listening intent; the platform's ``end`` event then finalizes."""
        self._intent_listening = False
        if self._state is not SttState.LISTENING or self._platform is None:
            return
        self._logger.info("stt_stop_requested")
        self._platform.stop()

    def handle_event(self, event: SttEvent) -> None:
        """Consume one platform recognition callback."""
        if self._state is not SttState.LISTENING or self._session is None:
            self._logger.debug("stt_event_ignored", extra={"kind": event.kind.value, "state": self._state.value})
            return

        if event.kind is SttEventKind.STARTED:
            self._emit("stt_platform_started", {})
        elif event.kind is SttEventKind.RESULT:
            self._session.apply(event.segments)
            self._emit(
                "stt_transcript",
                {"final": self._session.final_text, "interim": self._session.pending_interim},
            )
        elif event.kind is SttEventKind.ENDED:
            if self._intent_listening:
                self._restart()
            else:
                self._finalize()
        elif event.kind is SttEventKind.ERROR:
            self._fail(event.error)

    def _restart(self) -> None:
        assert self._platform is not None and self._session is not None
        self._logger.debug("stt_auto_restart")
        carried = list(self._session.carried_segments)
        self._session.carry_over()
        try:
            self._platform.start(self._session.config)
        except RecognitionAlreadyStartedError:
            # The platform pass is still alive and keeps reporting its own cumulative batch.
            self._session.carried_segments = carried
            self._logger.debug("stt_auto_restart_already_started")
        except Exception as exc:  # noqa: BLE001 - a failed restart finalizes what was heard.
            self._logger.warning("stt_auto_restart_failed", extra={"error": str(exc)})
            self._intent_listening = False
            self._finalize()

    def _finalize(self) -> None:
        assert self._session is not None
        self._apply(SttInput.FINALIZE)
        text = self._session.final_text.strip()
        self._session = None
        self._apply(SttInput.FINALIZED)

        if text:
            self._logger.info("stt_captured", extra={"chars": len(text)})
            self._emit("stt_captured", {"text": text})
        else:
            self._logger.info("stt_empty_capture")
            self._emit("stt_empty", {})

    def _fail(self, code: str | None) -> None:
        error = classify_error(code)
        self._intent_listening = False
        self._session = None
        self._logger.error("stt_failed", extra={"code": error.code, "kind": error.kind.value})
        self._apply(SttInput.FAILED)
        self._emit("stt_error", {"error": error, "message": error.message})
        self._apply(SttInput.RECOVERED)

    def _apply(self, stt_input: SttInput) -> bool:
        target = STT_TRANSITIONS.get((self._state, stt_input))
        if target is None:
            self._logger.debug("stt_input_ignored", extra={"state": self._state.value, "input": stt_input.value})
            return False
        if target is not self._state:
            self._state = target
            self._emit("stt_state", {"state": target})
        return True
