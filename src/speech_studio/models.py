from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

RATE_RANGE = (0.1, 10.0)
PITCH_RANGE = (0.0, 2.0)
VOLUME_RANGE = (0.0, 1.0)


def clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, float(value)))


class TtsState(str, Enum):
    """Lifecycle states of a single utterance."""

    IDLE = "idle"
    SPEAKING = "speaking"
    PAUSED = "paused"
    ERROR = "error"


class SttState(str, Enum):
    """Lifecycle states of continuous listening."""

    IDLE = "idle"
    LISTENING = "listening"
    FINALIZING = "finalizing"
    ERROR = "error"


class StatusTone(str, Enum):
    """Visual tone of the shared status indicator."""

    NEUTRAL = ""
    SPEAKING = "speaking"
    LISTENING = "listening"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class Voice:
    identifier: str
    display_name: str
    language_tag: str = ""
    is_default: bool = False

    @property
    def language_prefix(self) -> str:
        primary = self.language_tag.replace("_", "-").split("-")[0].strip()
        return primary.upper() or "UND"

    @property
    def label(self) -> str:
        if self.language_tag:
            return f"{self.display_name} ({self.language_tag})"
        return self.display_name


@dataclass(slots=True, frozen=True)
class VoiceGroup:
    """Voices sharing a language prefix, paired with their selector index."""

    prefix: str
    voices: tuple[tuple[int, Voice], ...]


@dataclass(slots=True)
class UtteranceRequest:
    """Text plus voice parameters for one playback; numbers are clamped into range."""

    text: str
    voice: Voice | None = None
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0

    def __post_init__(self) -> None:
        self.text = self.text.strip()
        self.rate = clamp(self.rate, RATE_RANGE)
        self.pitch = clamp(self.pitch, PITCH_RANGE)
        self.volume = clamp(self.volume, VOLUME_RANGE)


class TtsEventKind(str, Enum):
    STARTED = "start"
    ENDED = "end"
    PAUSED = "pause"
    RESUMED = "resume"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class TtsEvent:
    """Callback fired by a synthesis platform for a specific utterance."""

    kind: TtsEventKind
    utterance_id: int
    error: str | None = None


@dataclass(slots=True, frozen=True)
class RecognitionSegment:
    transcript: str
    is_final: bool


@dataclass(slots=True, frozen=True)
class RecognitionConfig:
    language: str
    continuous: bool = True
    interim_results: bool = True
    max_alternatives: int = 1


class SttEventKind(str, Enum):
    STARTED = "start"
    RESULT = "result"
    ENDED = "end"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SttEvent:
    """Callback fired by a recognition platform; results are cumulative per platform session."""

    kind: SttEventKind
    segments: tuple[RecognitionSegment, ...] = ()
    error: str | None = None


@dataclass(slots=True)
class RecognitionSession:
    """Transcript accumulated during one continuous listening attempt."""

    config: RecognitionConfig
    final_segments: list[str] = field(default_factory=list)
    pending_interim: str = ""
    carried_segments: list[str] = field(default_factory=list)

    def apply(self, segments: Iterable[RecognitionSegment]) -> None:
        """Recompute final and interim text from a complete result batch."""
        finals: list[str] = list(self.carried_segments)
        interim = ""
        for segment in segments:
            if segment.is_final:
                finals.append(segment.transcript)
            else:
                interim += segment.transcript
        self.final_segments = finals
        self.pending_interim = interim

    def carry_over(self) -> None:
        """Keep finals from an ended platform pass; the next pass reports its batch afresh."""
        self.carried_segments = list(self.final_segments)
        self.pending_interim = ""

    @property
    def final_text(self) -> str:
        return "".join(f"{segment} " for segment in self.final_segments)


class SttErrorKind(str, Enum):
    """Classified outcome of a recognition platform error."""

    NETWORK = "network"
    PERMISSION_DENIED = "not-allowed"
    NO_SPEECH = "no-speech"
    AUDIO_CAPTURE = "audio-capture"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class SttError:
    kind: SttErrorKind
    code: str
    message: str
    retriable: bool


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    """Captured transcript; ``time`` is a display string, not a parseable timestamp."""

    id: int
    text: str
    time: str
