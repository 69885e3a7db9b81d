"""Speech-to-text platform powered by ``speech_recognition``."""

from __future__ import annotations

import logging
import threading

from speech_studio.errors import RecognitionAlreadyStartedError
from speech_studio.models import RecognitionConfig, RecognitionSegment, SttEvent, SttEventKind

from .interfaces import SttListener

INTERIM_PLACEHOLDER = "…"

logger = logging.getLogger("speech_studio.stt_speechrecognition")


class MicrophoneRecognitionPlatform:
    """Microphone listener that reports cumulative result batches per pass.

    A pass ends on its own after ``silence_timeout`` seconds without speech, which the
    session answers with an automatic restart while the user still wants to listen.
    """

    def __init__(
        self,
        *,
        phrase_time_limit: float = 10.0,
        silence_timeout: float = 5.0,
        adjust_noise_seconds: float = 0.2,
        sample_rate: int = 16_000,
        chunk_size: int = 1024,
    ) -> None:
        try:
            import speech_recognition as sr
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Speech recognition backend unavailable. Install extras with: pip install 'speech-studio[voice]'"
            ) from exc
        self._sr = sr
        self._recognizer = sr.Recognizer()
        self._phrase_time_limit = phrase_time_limit
        self._silence_timeout = silence_timeout
        self._adjust_noise_seconds = max(0.0, adjust_noise_seconds)
        self._sample_rate = sample_rate
        self._chunk_size = chunk_size

        self._listener: SttListener | None = None
        self._lock = threading.Lock()
        self._running = False
        self._stop_requested = threading.Event()

    def bind(self, listener: SttListener) -> None:
        self._listener = listener

    def start(self, config: RecognitionConfig) -> None:
        with self._lock:
            if self._running:
                raise RecognitionAlreadyStartedError("Recognition has already started")
            self._running = True
        self._stop_requested.clear()
        thread = threading.Thread(
            target=self._listen_pass,
            args=(config,),
            name="speech-recognition-listener",
            daemon=True,
        )
        thread.start()

    def stop(self) -> None:
        self._stop_requested.set()

    def _dispatch(self, event: SttEvent) -> None:
        if self._listener is not None:
            self._listener(event)

    def _batch(self, finals: list[RecognitionSegment], *, pending: bool = False) -> SttEvent:
        segments = tuple(finals)
        if pending:
            segments += (RecognitionSegment(INTERIM_PLACEHOLDER, is_final=False),)
        return SttEvent(SttEventKind.RESULT, segments=segments)

    def _listen_pass(self, config: RecognitionConfig) -> None:
        finals: list[RecognitionSegment] = []
        try:
            try:
                microphone = self._sr.Microphone(sample_rate=self._sample_rate, chunk_size=self._chunk_size)
            except (AttributeError, OSError) as exc:
                logger.warning("microphone_unavailable", extra={"error": str(exc)})
                self._dispatch(SttEvent(SttEventKind.ERROR, error="audio-capture"))
                return

            with microphone as source:
                self._dispatch(SttEvent(SttEventKind.STARTED))
                if self._adjust_noise_seconds > 0:
                    self._recognizer.adjust_for_ambient_noise(source, duration=self._adjust_noise_seconds)

                while not self._stop_requested.is_set():
                    try:
                        audio = self._recognizer.listen(
                            source,
                            timeout=self._silence_timeout,
                            phrase_time_limit=self._phrase_time_limit,
                        )
                    except self._sr.WaitTimeoutError:
                        logger.debug("recognition_pass_silent")
                        break

                    self._dispatch(self._batch(finals, pending=True))
                    try:
                        transcript = self._recognizer.recognize_google(audio, language=config.language)
                    except self._sr.UnknownValueError:
                        transcript = ""
                    except self._sr.RequestError as exc:
                        logger.warning("recognition_request_failed", extra={"error": str(exc)})
                        self._dispatch(SttEvent(SttEventKind.ERROR, error="network"))
                        return

                    if transcript:
                        finals.append(RecognitionSegment(transcript, is_final=True))
                    self._dispatch(self._batch(finals))
        except OSError as exc:
            logger.warning("microphone_stream_failed", extra={"error": str(exc)})
            self._dispatch(SttEvent(SttEventKind.ERROR, error="audio-capture"))
        finally:
            with self._lock:
                self._running = False
            self._dispatch(SttEvent(SttEventKind.ENDED))
