"""Contracts for speech synthesis and recognition platforms."""

from __future__ import annotations

from typing import Callable, Protocol

from speech_studio.models import RecognitionConfig, SttEvent, TtsEvent, UtteranceRequest, Voice

TtsListener = Callable[[TtsEvent], None]
SttListener = Callable[[SttEvent], None]


class SpeechSynthesisPlatform(Protocol):
    """Plays utterances and reports their lifecycle through a bound listener."""

    @property
    def paused(self) -> bool:
        """Whether the platform currently reports itself paused."""

    def bind(self, listener: TtsListener) -> None:
        """Register the callback receiving lifecycle events."""

    def list_voices(self) -> list[Voice]:
        """Return the voices currently known to the platform (possibly empty)."""

    def speak(self, utterance_id: int, request: UtteranceRequest) -> None:
        """Begin playback; events for it carry ``utterance_id``."""

    def pause(self) -> None:
        """Request a pause of the active utterance."""

    def resume(self) -> None:
        """Request the paused utterance to continue."""

    def cancel(self) -> None:
        """Drop the active utterance, if any."""


class SpeechRecognitionPlatform(Protocol):
    """Listens to the microphone and reports cumulative result batches."""

    def bind(self, listener: SttListener) -> None:
        """Register the callback receiving recognition events."""

    def start(self, config: RecognitionConfig) -> None:
        """Begin a platform session; may raise ``RecognitionStartError`` synchronously."""

    def stop(self) -> None:
        """Ask the platform session to end; an ``end`` event follows."""
