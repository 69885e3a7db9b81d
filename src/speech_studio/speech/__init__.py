"""Speech session state machines, voice catalog and transcript history."""

from .catalog import VoiceCatalog, group_voices
from .history import InMemoryHistoryStorage, JsonFileHistoryStorage, TranscriptHistoryStore
from .interfaces import SpeechRecognitionPlatform, SpeechSynthesisPlatform
from .stt import SttSession, classify_error
from .tts import TtsControls, TtsSession, TtsWatchdog

__all__ = [
    "InMemoryHistoryStorage",
    "JsonFileHistoryStorage",
    "SpeechRecognitionPlatform",
    "SpeechSynthesisPlatform",
    "SttSession",
    "TranscriptHistoryStore",
    "TtsControls",
    "TtsSession",
    "TtsWatchdog",
    "VoiceCatalog",
    "classify_error",
    "group_voices",
]
