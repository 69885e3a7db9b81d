from __future__ import annotations

from speech_studio.models import (
    RecognitionSegment,
    SttEvent,
    SttEventKind,
    StatusTone,
    SttState,
    TtsEvent,
    TtsEventKind,
    TtsState,
    Voice,
)
from speech_studio.session import (
    LISTENING_PLACEHOLDER,
    TTS_UNSUPPORTED_MESSAGE,
    SessionCoordinator,
    Shortcut,
    SpeechControls,
)
from speech_studio.speech.history import InMemoryHistoryStorage, TranscriptHistoryStore
from speech_studio.speech.stt import UNSUPPORTED_MESSAGE


def _coordinator(view, synthesis=None, recognition=None, history=None, **kwargs) -> SessionCoordinator:
    return SessionCoordinator(
        view=view,
        history=history if history is not None else TranscriptHistoryStore(),
        synthesis=synthesis,
        recognition=recognition,
        **kwargs,
    )


def _final(text: str) -> SttEvent:
    return SttEvent(SttEventKind.RESULT, segments=(RecognitionSegment(text, True),))


def test_finish_recording_with_empty_text_skips_history(view) -> None:
    coordinator = _coordinator(view)

    assert coordinator.finish_recording("") is None

    assert view.notices == ["No speech detected"]
    assert view.transcripts[-1] == ("", "")
    assert len(coordinator.history) == 0


def test_finish_recording_appends_to_history(view) -> None:
    coordinator = _coordinator(view)

    entry = coordinator.finish_recording("hello")

    assert entry is not None and entry.text == "hello"
    assert view.notices == ["Speech captured!"]
    assert view.transcripts[-1] == ("hello", "")
    assert [item.text for item in view.history_renders[-1]] == ["hello"]


def test_listening_flow_from_platform_events(view, recognition) -> None:
    coordinator = _coordinator(view, recognition=recognition)

    assert coordinator.start_recording("es-ES") is True
    assert recognition.starts[0].language == "es-ES"
    assert view.listening == [True]
    assert view.transcripts[0] == ("", LISTENING_PLACEHOLDER)
    assert coordinator.status == ("Listening", StatusTone.LISTENING)

    recognition.fire(SttEvent(SttEventKind.RESULT, segments=(RecognitionSegment("hola", False),)))
    assert view.transcripts[-1] == ("", "hola")
    recognition.fire(_final("hola amigo"))
    recognition.fire(SttEvent(SttEventKind.ENDED))
    assert len(recognition.starts) == 2

    coordinator.toggle_recording()
    assert recognition.stops == 1
    recognition.fire(SttEvent(SttEventKind.ENDED))

    assert coordinator.is_recording is False
    assert coordinator.transcript == "hola amigo"
    assert coordinator.history.entries[0].text == "hola amigo"
    assert view.notices[-1] == "Speech captured!"
    assert view.listening[-1] is False
    assert view.statuses[-1] == ("Ready", StatusTone.NEUTRAL)


def test_speak_uses_controls_and_selected_voice(view, synthesis) -> None:
    voice = Voice("v1", "Alex", "en-US")
    synthesis.voices = [voice]
    controls = SpeechControls(text="read me", voice_index=0, rate=1.4, pitch=0.6, volume=0.3)
    coordinator = _coordinator(view, synthesis=synthesis, controls=controls)
    coordinator.initialize()

    utterance_id = coordinator.speak()

    request = synthesis.requests[utterance_id]
    assert (request.text, request.voice, request.rate, request.pitch, request.volume) == (
        "read me",
        voice,
        1.4,
        0.6,
        0.3,
    )
    assert coordinator.status == ("Speaking", StatusTone.SPEAKING)
    assert view.visualizer[-1] == (True, "Speaking")
    assert view.controls[-1].stop_enabled is True


def test_empty_speak_shows_warning(view, synthesis) -> None:
    coordinator = _coordinator(view, synthesis=synthesis)

    assert coordinator.speak("   ") is None

    assert view.notices == ["Please type something first!"]
    assert synthesis.calls == []


def test_finished_playback_returns_to_ready(view, synthesis) -> None:
    coordinator = _coordinator(view, synthesis=synthesis)
    utterance_id = coordinator.speak("hello")

    synthesis.fire(TtsEvent(TtsEventKind.ENDED, utterance_id))

    assert coordinator.is_speaking is False
    assert view.notices[-1] == "Done speaking!"
    assert view.statuses[-1] == ("Ready", StatusTone.NEUTRAL)


def test_toggle_pause_and_stop(view, synthesis) -> None:
    coordinator = _coordinator(view, synthesis=synthesis)
    utterance_id = coordinator.speak("hello")

    coordinator.toggle_pause()
    synthesis.fire(TtsEvent(TtsEventKind.PAUSED, utterance_id))
    assert coordinator.status == ("Paused", StatusTone.NEUTRAL)
    assert view.visualizer[-1] == (False, "Paused")

    coordinator.toggle_pause()
    assert synthesis.count("resume") == 1

    coordinator.clear_tts()
    assert coordinator.controls.text == ""
    assert view.notices[-1] == "Stopped"
    assert coordinator.tts.state is TtsState.IDLE


def test_speak_shortcut_is_ignored_while_speaking(view, synthesis) -> None:
    coordinator = _coordinator(view, synthesis=synthesis)
    coordinator.speak("first")

    coordinator.controls.text = "second"
    coordinator.handle_shortcut(Shortcut.SPEAK)

    assert synthesis.count("speak") == 1


def test_abort_stops_both_subsystems(view, synthesis, recognition) -> None:
    coordinator = _coordinator(view, synthesis=synthesis, recognition=recognition)
    coordinator.speak("talking")
    coordinator.handle_shortcut(Shortcut.TOGGLE_RECORDING)
    assert coordinator.is_speaking and coordinator.is_recording
    assert coordinator.status == ("Speaking", StatusTone.SPEAKING)

    coordinator.handle_shortcut(Shortcut.ABORT)

    assert coordinator.is_speaking is False
    assert coordinator.stt.intent_listening is False
    assert recognition.stops == 1
    recognition.fire(SttEvent(SttEventKind.ENDED))
    assert coordinator.is_recording is False


def test_no_capabilities_degrades_gracefully(view) -> None:
    coordinator = _coordinator(view)

    assert view.unsupported == [(False, False)]
    assert coordinator.capabilities.any is False
    assert coordinator.speak("hello") is None
    assert coordinator.start_recording() is False
    assert view.notices == [TTS_UNSUPPORTED_MESSAGE, UNSUPPORTED_MESSAGE]


def test_send_to_tts_copies_transcript(view) -> None:
    coordinator = _coordinator(view)

    assert coordinator.send_to_tts() is False
    assert view.notices[-1] == "No text to send"

    coordinator.finish_recording("read this back")
    assert coordinator.send_to_tts() is True
    assert coordinator.controls.text == "read this back"
    assert view.notices[-1] == "Sent to Text-to-Speech!"

    coordinator.clear_transcript()
    assert coordinator.transcript == ""
    assert view.notices[-1] == "Cleared"


def test_load_and_clear_history(view) -> None:
    history = TranscriptHistoryStore()
    entry = history.append("from before")
    coordinator = _coordinator(view, history=history)

    assert coordinator.load_from_history(str(entry.id)) == entry
    assert coordinator.transcript == "from before"
    assert view.notices[-1] == "Loaded from history"
    assert coordinator.load_from_history(999) is None

    assert coordinator.clear_history() is True
    assert view.notices[-1] == "History cleared"
    assert view.history_renders[-1] == []
    assert coordinator.clear_history() is False
    assert view.notices[-1] == "History is already empty"


def test_error_status_survives_settle_to_idle(view, synthesis) -> None:
    coordinator = _coordinator(view, synthesis=synthesis)
    utterance_id = coordinator.speak("hello")

    synthesis.fire(TtsEvent(TtsEventKind.ERROR, utterance_id, error="audio-busy"))

    assert view.notices[-1] == "Speech error: audio-busy"
    assert view.statuses[-1] == ("Error", StatusTone.ERROR)

    coordinator.speak("again")
    assert view.statuses[-1] == ("Speaking", StatusTone.SPEAKING)


def test_recognition_error_is_shown(view, recognition) -> None:
    coordinator = _coordinator(view, recognition=recognition)
    coordinator.start_recording()

    recognition.fire(SttEvent(SttEventKind.ERROR, error="not-allowed"))

    assert view.notices[-1] == "Microphone access denied. Allow mic access in your system settings."
    assert view.statuses[-1] == ("Error", StatusTone.ERROR)
    assert coordinator.stt.state is SttState.IDLE
    assert coordinator.is_recording is False


def test_events_are_forwarded_to_telemetry(view, synthesis, events) -> None:
    coordinator = _coordinator(view, synthesis=synthesis, telemetry=events)

    coordinator.speak("hello")

    assert events.names() == ["tts_state"]
    assert events.payloads("tts_state")[0]["state"] is TtsState.SPEAKING


def test_stale_voice_selection_falls_back_to_default(view, synthesis) -> None:
    synthesis.voices = [Voice("a", "A", "de-DE"), Voice("b", "B", "en-US", is_default=True)]
    coordinator = _coordinator(view, synthesis=synthesis, controls=SpeechControls(voice_index=7))

    coordinator.initialize()

    assert coordinator.controls.voice_index == 1
    groups, selected = view.voice_renders[-1]
    assert [group.prefix for group in groups] == ["DE", "EN"]
    assert selected == 1


def test_platform_events_go_through_dispatch(view, synthesis) -> None:
    queued = []
    coordinator = _coordinator(view, synthesis=synthesis, dispatch=lambda callback, *args: queued.append((callback, args)))
    utterance_id = coordinator.speak("hello")

    synthesis.fire(TtsEvent(TtsEventKind.ENDED, utterance_id))
    assert coordinator.is_speaking is True

    for callback, args in queued:
        callback(*args)
    assert coordinator.is_speaking is False


def test_capture_is_announced_when_history_cannot_be_saved(view) -> None:
    class _FullDisk(InMemoryHistoryStorage):
        def save(self, payload) -> None:
            raise OSError("no space left on device")

    coordinator = _coordinator(view, history=TranscriptHistoryStore(_FullDisk()))

    entry = coordinator.finish_recording("hello")

    assert entry is not None
    assert view.notices == ["Speech captured!"]
    assert coordinator.history.entries == [entry]
