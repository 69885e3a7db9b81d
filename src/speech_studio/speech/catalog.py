"""Voice enumeration grouped by language."""

from __future__ import annotations

import logging
from typing import Callable

from speech_studio.models import Voice, VoiceGroup

from .interfaces import SpeechSynthesisPlatform

logger = logging.getLogger("speech_studio.catalog")


def group_voices(voices: list[Voice]) -> list[VoiceGroup]:
    """Group voices by language prefix; groups sorted, members kept in platform order."""
    grouped: dict[str, list[tuple[int, Voice]]] = {}
    for index, voice in enumerate(voices):
        grouped.setdefault(voice.language_prefix, []).append((index, voice))
    return [VoiceGroup(prefix=prefix, voices=tuple(grouped[prefix])) for prefix in sorted(grouped)]


class VoiceCatalog:
    """Snapshot of platform voices, rebuilt whenever the platform reports a change."""

    def __init__(
        self,
        platform: SpeechSynthesisPlatform | None,
        on_change: Callable[[list[VoiceGroup]], None] | None = None,
    ) -> None:
        self._platform = platform
        self._on_change = on_change
        self._voices: tuple[Voice, ...] = ()
        self._groups: list[VoiceGroup] = []

    @property
    def voices(self) -> tuple[Voice, ...]:
        return self._voices

    @property
    def groups(self) -> list[VoiceGroup]:
        return list(self._groups)

    def refresh(self) -> None:
        """Re-read platform voices; a missing platform makes this a no-op."""
        if self._platform is None:
            return

        voices = list(self._platform.list_voices())
        groups = group_voices(voices)
        self._voices, self._groups = tuple(voices), groups
        logger.debug("voice_catalog_refreshed", extra={"voices": len(voices), "groups": len(groups)})

        if self._on_change is not None:
            self._on_change(list(groups))

    def get(self, index: int | None) -> Voice | None:
        """Resolve a selector index; stale or out-of-range indexes yield ``None``."""
        if index is None or not 0 <= index < len(self._voices):
            return None
        return self._voices[index]

    def default_voice(self) -> Voice | None:
        return next((voice for voice in self._voices if voice.is_default), None)

    def default_index(self) -> int | None:
        for index, voice in enumerate(self._voices):
            if voice.is_default:
                return index
        return None
