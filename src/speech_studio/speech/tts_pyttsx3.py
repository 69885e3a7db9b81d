"""Text-to-speech platform powered by ``pyttsx3``."""

from __future__ import annotations

import logging
import queue
import re
import threading
from typing import Any, Callable

from speech_studio.models import TtsEvent, TtsEventKind, UtteranceRequest, Voice

from .interfaces import TtsListener

_SENTENCE_BREAK = re.compile(r"(?<=[.!?;:])\s+")

logger = logging.getLogger("speech_studio.tts_pyttsx3")


def split_chunks(text: str) -> list[str]:
    """Split text at sentence boundaries; pauses take effect between chunks."""
    return [chunk for chunk in (part.strip() for part in _SENTENCE_BREAK.split(text)) if chunk]


def language_tag(languages: Any) -> str:
    """Normalize a pyttsx3 voice language list (str or espeak-style bytes) to a tag."""
    for language in languages or ():
        if isinstance(language, bytes):
            language = language.decode("utf-8", errors="ignore")
        cleaned = "".join(ch for ch in str(language) if ch.isprintable()).strip()
        if cleaned:
            return cleaned.replace("_", "-")
    return ""


class Pyttsx3SynthesisPlatform:
    """Drives a pyttsx3 engine owned by one worker thread.

    pyttsx3 has no native pause, so utterances are spoken sentence by sentence and a
    pause holds the worker before the next sentence.
    """

    def __init__(self, *, driver_name: str | None = None) -> None:
        try:
            import pyttsx3
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Speech synthesis backend unavailable. Install extras with: pip install 'speech-studio[voice]'"
            ) from exc
        self._pyttsx3 = pyttsx3
        self._driver_name = driver_name

        self._listener: TtsListener | None = None
        self._lock = threading.Lock()
        self._commands: queue.Queue[Callable[[Any], None] | None] = queue.Queue()
        self._resume_gate = threading.Event()
        self._resume_gate.set()
        self._active_id: int | None = None
        self._playing_id: int | None = None
        self._voices: list[Voice] = []
        self._base_rate = 200
        self._default_voice_id: str | None = None
        self._engine: Any = None

        self._ready = threading.Event()
        self._init_error: Exception | None = None
        self._thread = threading.Thread(target=self._worker, name="pyttsx3-worker", daemon=True)
        self._thread.start()
        self._ready.wait()
        if self._init_error is not None:
            raise RuntimeError(f"Unable to initialise pyttsx3: {self._init_error}") from self._init_error

    @property
    def paused(self) -> bool:
        return not self._resume_gate.is_set()

    def bind(self, listener: TtsListener) -> None:
        self._listener = listener

    def list_voices(self) -> list[Voice]:
        return list(self._voices)

    def speak(self, utterance_id: int, request: UtteranceRequest) -> None:
        with self._lock:
            self._active_id = utterance_id
        self._resume_gate.set()
        self._commands.put(lambda engine: self._play(engine, utterance_id, request))

    def pause(self) -> None:
        with self._lock:
            active = self._active_id
        if active is None or self.paused:
            return
        self._resume_gate.clear()
        self._dispatch(TtsEvent(TtsEventKind.PAUSED, active))

    def resume(self) -> None:
        with self._lock:
            active = self._active_id
        if not self.paused:
            return
        self._resume_gate.set()
        if active is not None:
            self._dispatch(TtsEvent(TtsEventKind.RESUMED, active))

    def cancel(self) -> None:
        with self._lock:
            self._active_id = None
        self._resume_gate.set()

    def shutdown(self) -> None:
        self.cancel()
        self._commands.put(None)
        self._thread.join(timeout=2)

    def _is_active(self, utterance_id: int) -> bool:
        with self._lock:
            return self._active_id == utterance_id

    def _dispatch(self, event: TtsEvent) -> None:
        if self._listener is not None:
            self._listener(event)

    def _worker(self) -> None:
        try:
            engine = self._pyttsx3.init(self._driver_name)
            self._engine = engine
            self._base_rate = int(engine.getProperty("rate") or 200)
            default_id = engine.getProperty("voice")
            self._default_voice_id = default_id
            self._voices = [
                Voice(
                    identifier=voice.id,
                    display_name=voice.name or voice.id,
                    language_tag=language_tag(getattr(voice, "languages", ())),
                    is_default=voice.id == default_id,
                )
                for voice in engine.getProperty("voices") or ()
            ]
            engine.connect("started-word", self._on_word)
        except Exception as exc:  # noqa: BLE001 - driver failures surface through the constructor.
            self._init_error = exc
            self._ready.set()
            return
        self._ready.set()

        while True:
            command = self._commands.get()
            if command is None:
                break
            command(engine)

    def _on_word(self, name: Any, location: int, length: int) -> None:
        if self._playing_id is not None and not self._is_active(self._playing_id):
            self._engine.stop()

    def _play(self, engine: Any, utterance_id: int, request: UtteranceRequest) -> None:
        if not self._is_active(utterance_id):
            self._dispatch(TtsEvent(TtsEventKind.ERROR, utterance_id, error="interrupted"))
            return

        voice_id = request.voice.identifier if request.voice is not None else self._default_voice_id
        if voice_id is not None:
            engine.setProperty("voice", voice_id)
        engine.setProperty("rate", max(1, int(self._base_rate * request.rate)))
        engine.setProperty("volume", request.volume)
        if request.pitch != 1.0:
            logger.debug("pyttsx3_pitch_unsupported", extra={"pitch": request.pitch})

        self._playing_id = utterance_id
        self._dispatch(TtsEvent(TtsEventKind.STARTED, utterance_id))
        try:
            for chunk in split_chunks(request.text):
                self._resume_gate.wait()
                if not self._is_active(utterance_id):
                    self._dispatch(TtsEvent(TtsEventKind.ERROR, utterance_id, error="interrupted"))
                    return
                engine.say(chunk)
                engine.runAndWait()
        except Exception as exc:  # noqa: BLE001 - driver faults become platform error events.
            logger.exception("pyttsx3_playback_failed", extra={"utterance_id": utterance_id})
            self._dispatch(TtsEvent(TtsEventKind.ERROR, utterance_id, error=f"synthesis-failed: {exc}"))
            return
        finally:
            self._playing_id = None

        with self._lock:
            finished = self._active_id == utterance_id
            if finished:
                self._active_id = None
        if finished:
            self._dispatch(TtsEvent(TtsEventKind.ENDED, utterance_id))
        else:
            self._dispatch(TtsEvent(TtsEventKind.ERROR, utterance_id, error="interrupted"))
