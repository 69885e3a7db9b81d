from __future__ import annotations

import pytest

from speech_studio.errors import EmptyInputError
from speech_studio.models import TtsEvent, TtsEventKind, TtsState, UtteranceRequest
from speech_studio.speech.tts import TtsControls, TtsSession, TtsWatchdog


def _states(events) -> list[TtsState]:
    return [payload["state"] for payload in events.payloads("tts_state")]


def test_empty_text_never_reaches_speaking(synthesis, events) -> None:
    session = TtsSession(synthesis, events)

    with pytest.raises(EmptyInputError):
        session.speak(UtteranceRequest(text="   \n\t"))

    assert session.state is TtsState.IDLE
    assert synthesis.calls == []
    assert events.names() == ["tts_warning"]


def test_speak_applies_parameters_and_enters_speaking(synthesis, events) -> None:
    session = TtsSession(synthesis, events)

    utterance_id = session.speak(UtteranceRequest(text=" hello ", rate=1.5, pitch=0.8, volume=0.4))

    assert session.state is TtsState.SPEAKING
    request = synthesis.requests[utterance_id]
    assert (request.text, request.rate, request.pitch, request.volume) == ("hello", 1.5, 0.8, 0.4)
    state_payload = events.payloads("tts_state")[-1]
    assert state_payload["visualizer"] is True
    assert state_payload["controls"] == TtsControls.for_state(TtsState.SPEAKING)
    assert state_payload["controls"].speak_enabled is False


def test_second_speak_supersedes_first_without_orphaned_state(synthesis, events) -> None:
    session = TtsSession(synthesis, events)
    first = session.speak(UtteranceRequest(text="first"))
    second = session.speak(UtteranceRequest(text="second"))

    session.handle_event(TtsEvent(TtsEventKind.ERROR, first, error="interrupted"))
    session.handle_event(TtsEvent(TtsEventKind.ENDED, first))

    assert second != first
    assert session.state is TtsState.SPEAKING
    assert session.request is not None and session.request.text == "second"
    assert synthesis.count("cancel") == 2

    session.handle_event(TtsEvent(TtsEventKind.ENDED, second))
    assert session.state is TtsState.IDLE
    assert session.request is None
    assert events.names().count("tts_finished") == 1


def test_pause_then_resume_keeps_request_and_double_pause_is_idempotent(synthesis, events) -> None:
    session = TtsSession(synthesis, events)
    utterance_id = session.speak(UtteranceRequest(text="long text", rate=2.0))
    request = session.request

    assert session.pause() is True
    session.handle_event(TtsEvent(TtsEventKind.PAUSED, utterance_id))
    assert session.state is TtsState.PAUSED
    assert session.is_paused

    assert session.pause() is False
    assert synthesis.count("pause") == 1
    assert session.state is TtsState.PAUSED

    assert session.resume() is True
    session.handle_event(TtsEvent(TtsEventKind.RESUMED, utterance_id))
    assert session.state is TtsState.SPEAKING
    assert session.request is request
    assert session.request.rate == 2.0


def test_visualizer_is_inactive_while_paused(synthesis, events) -> None:
    session = TtsSession(synthesis, events)
    utterance_id = session.speak(UtteranceRequest(text="hi"))
    session.handle_event(TtsEvent(TtsEventKind.PAUSED, utterance_id))

    payload = events.payloads("tts_state")[-1]
    assert payload["state"] is TtsState.PAUSED
    assert payload["visualizer"] is False
    assert payload["controls"].pause_label == "Resume"


def test_pause_and_resume_are_noops_when_idle(synthesis, events) -> None:
    session = TtsSession(synthesis, events)

    assert session.pause() is False
    assert session.resume() is False
    assert synthesis.calls == []


def test_interrupted_error_is_swallowed(synthesis, events) -> None:
    session = TtsSession(synthesis, events)
    utterance_id = session.speak(UtteranceRequest(text="hello"))

    session.handle_event(TtsEvent(TtsEventKind.ERROR, utterance_id, error="interrupted"))

    assert session.state is TtsState.IDLE
    assert "tts_error" not in events.names()
    assert TtsState.ERROR not in _states(events)


def test_other_errors_pass_through_error_state(synthesis, events) -> None:
    session = TtsSession(synthesis, events)
    utterance_id = session.speak(UtteranceRequest(text="hello"))

    session.handle_event(TtsEvent(TtsEventKind.ERROR, utterance_id, error="audio-busy"))

    assert session.state is TtsState.IDLE
    assert _states(events)[-2:] == [TtsState.ERROR, TtsState.IDLE]
    assert events.payloads("tts_error") == [{"code": "audio-busy", "message": "Speech error: audio-busy"}]


def test_platform_speak_failure_returns_to_idle(synthesis, events) -> None:
    synthesis.fail_speak = True
    session = TtsSession(synthesis, events)

    session.speak(UtteranceRequest(text="hello"))

    assert session.state is TtsState.IDLE
    assert "RuntimeError: driver gone" in events.payloads("tts_error")[0]["code"]


def test_stop_from_paused_forces_idle(synthesis, events) -> None:
    session = TtsSession(synthesis, events)
    utterance_id = session.speak(UtteranceRequest(text="hello"))
    session.handle_event(TtsEvent(TtsEventKind.PAUSED, utterance_id))

    session.stop()
    session.handle_event(TtsEvent(TtsEventKind.ENDED, utterance_id))

    assert session.state is TtsState.IDLE
    assert "tts_stopped" in events.names()
    assert "tts_finished" not in events.names()


def test_watchdog_resumes_only_spurious_pause(synthesis, events) -> None:
    session = TtsSession(synthesis, events)
    watchdog = TtsWatchdog(session, synthesis)

    synthesis.paused = True
    assert watchdog.check() is False

    utterance_id = session.speak(UtteranceRequest(text="a very long passage"))
    synthesis.paused = True
    assert watchdog.check() is True
    assert synthesis.count("resume") == 1
    assert session.state is TtsState.SPEAKING
    assert session.is_paused is False

    session.handle_event(TtsEvent(TtsEventKind.PAUSED, utterance_id))
    synthesis.paused = True
    assert watchdog.check() is False
    assert session.state is TtsState.PAUSED


def test_utterance_request_clamps_parameters() -> None:
    request = UtteranceRequest(text="  hi  ", rate=25, pitch=-1, volume=3)

    assert request.text == "hi"
    assert (request.rate, request.pitch, request.volume) == (10.0, 0.0, 1.0)
