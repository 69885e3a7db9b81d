from __future__ import annotations

import pytest

from speech_studio.models import RecognitionConfig, SttEvent, TtsEvent, UtteranceRequest, Voice


class StubSynthesis:
    def __init__(self, voices: list[Voice] | None = None, fail_speak: bool = False) -> None:
        self.voices = voices or []
        self.fail_speak = fail_speak
        self.paused = False
        self.calls: list[tuple] = []
        self.requests: dict[int, UtteranceRequest] = {}
        self.listener = None

    def bind(self, listener) -> None:
        self.listener = listener

    def list_voices(self) -> list[Voice]:
        return list(self.voices)

    def speak(self, utterance_id: int, request: UtteranceRequest) -> None:
        if self.fail_speak:
            raise RuntimeError("driver gone")
        self.calls.append(("speak", utterance_id, request.text))
        self.requests[utterance_id] = request

    def pause(self) -> None:
        self.calls.append(("pause",))

    def resume(self) -> None:
        self.calls.append(("resume",))
        self.paused = False

    def cancel(self) -> None:
        self.calls.append(("cancel",))

    def fire(self, event: TtsEvent) -> None:
        self.listener(event)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class StubRecognition:
    def __init__(self, start_errors: list[Exception] | None = None) -> None:
        self.start_errors = list(start_errors or [])
        self.starts: list[RecognitionConfig] = []
        self.stops = 0
        self.listener = None

    def bind(self, listener) -> None:
        self.listener = listener

    def start(self, config: RecognitionConfig) -> None:
        self.starts.append(config)
        if self.start_errors:
            raise self.start_errors.pop(0)

    def stop(self) -> None:
        self.stops += 1

    def fire(self, event: SttEvent) -> None:
        self.listener(event)


class EventLog:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def __call__(self, event_name: str, payload: dict) -> None:
        self.events.append((event_name, payload))

    def emit(self, event_name: str, payload: dict) -> None:
        self(event_name, payload)

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, event_name: str) -> list[dict]:
        return [payload for name, payload in self.events if name == event_name]


class StubView:
    def __init__(self) -> None:
        self.statuses: list[tuple[str, object]] = []
        self.notices: list[str] = []
        self.transcripts: list[tuple[str, str]] = []
        self.history_renders: list[list] = []
        self.voice_renders: list[tuple[list, int | None]] = []
        self.unsupported: list[tuple[bool, bool]] = []
        self.controls: list = []
        self.visualizer: list[tuple[bool, str]] = []
        self.listening: list[bool] = []

    def show_status(self, text, tone) -> None:
        self.statuses.append((text, tone))

    def show_notice(self, message) -> None:
        self.notices.append(message)

    def show_unsupported(self, *, tts, stt) -> None:
        self.unsupported.append((tts, stt))

    def show_tts_controls(self, controls) -> None:
        self.controls.append(controls)

    def show_visualizer(self, active, label) -> None:
        self.visualizer.append((active, label))

    def show_listening(self, active) -> None:
        self.listening.append(active)

    def show_transcript(self, final, interim) -> None:
        self.transcripts.append((final, interim))

    def show_voices(self, groups, selected) -> None:
        self.voice_renders.append((groups, selected))

    def show_history(self, entries) -> None:
        self.history_renders.append(entries)


@pytest.fixture
def synthesis() -> StubSynthesis:
    return StubSynthesis()


@pytest.fixture
def recognition() -> StubRecognition:
    return StubRecognition()


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def view() -> StubView:
    return StubView()
