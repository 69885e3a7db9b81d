"""CLI startup entrypoint for Speech Studio."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

import typer
from rich import print

from speech_studio.config import settings
from speech_studio.console import RichConsoleView, format_pitch, format_rate, format_volume, history_table, voices_table
from speech_studio.runtime import SpeechRuntime
from speech_studio.session import SessionCoordinator, SpeechControls
from speech_studio.speech.catalog import group_voices
from speech_studio.speech.history import JsonFileHistoryStorage, TranscriptHistoryStore
from speech_studio.telemetry.logging import LoggingTelemetry, configure_logging

app = typer.Typer(help="Speech Studio: text-to-speech playback and continuous speech-to-text capture")
history_app = typer.Typer(help="Inspect or clear the recent transcript history")
app.add_typer(history_app, name="history")

logger = logging.getLogger("speech_studio.main")


@app.callback()
def _configure() -> None:
    configure_logging(settings.log_level)


def _build_history() -> TranscriptHistoryStore:
    return TranscriptHistoryStore(
        JsonFileHistoryStorage(settings.history_path),
        limit=settings.history_limit,
        time_format=settings.history_time_format,
    )


def _build_synthesis():
    from speech_studio.speech.tts_pyttsx3 import Pyttsx3SynthesisPlatform

    return Pyttsx3SynthesisPlatform()


def _build_recognition():
    from speech_studio.speech.stt_speechrecognition import MicrophoneRecognitionPlatform

    return MicrophoneRecognitionPlatform(
        phrase_time_limit=settings.stt_phrase_time_limit,
        silence_timeout=settings.stt_silence_timeout,
        adjust_noise_seconds=settings.stt_adjust_noise_seconds,
    )


def _require(builder, enabled: bool, name: str) -> Any:
    """Build a backend or exit with an actionable error."""
    if not enabled:
        print({"error": f"{name} is disabled (see SPEECH_STUDIO_* settings)"})
        raise typer.Exit(code=1)
    try:
        return builder()
    except RuntimeError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    except ImportError:
        print({"error": "Install voice extras: pip install 'speech-studio[voice]'"})
        raise typer.Exit(code=1)


def _probe(builder, enabled: bool, name: str) -> Any:
    """Build a backend when available; absence degrades the session instead of failing it."""
    if not enabled:
        return None
    try:
        return builder()
    except (RuntimeError, ImportError) as exc:
        logger.warning("capability_unavailable", extra={"capability": name, "error": str(exc)})
        return None


def _shutdown(synthesis) -> None:
    if synthesis is not None and hasattr(synthesis, "shutdown"):
        synthesis.shutdown()


def _controls(**overrides: Any) -> SpeechControls:
    values = {
        "rate": settings.default_rate,
        "pitch": settings.default_pitch,
        "volume": settings.default_volume,
        "language": settings.default_language,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})
    return SpeechControls(**values)


async def _start(runtime: SpeechRuntime, coordinator: SessionCoordinator) -> None:
    await runtime.start()
    if coordinator.watchdog is not None:
        runtime.schedule_every(settings.watchdog_interval_seconds, coordinator.watchdog.check, name="tts-watchdog")
    coordinator.initialize()


@app.command()
def info() -> None:
    """Show runtime configuration."""
    print(
        {
            "app_name": settings.app_name,
            "history_path": str(settings.history_path),
            "history_limit": settings.history_limit,
            "default_language": settings.default_language,
            "rate": format_rate(settings.default_rate),
            "pitch": format_pitch(settings.default_pitch),
            "volume": format_volume(settings.default_volume),
            "tts_enabled": settings.tts_enabled,
            "stt_enabled": settings.stt_enabled,
        }
    )


@app.command()
def voices() -> None:
    """List synthesis voices grouped by language."""
    synthesis = _require(_build_synthesis, settings.tts_enabled, "Text-to-speech")
    try:
        groups = group_voices(synthesis.list_voices())
    finally:
        _shutdown(synthesis)
    if not groups:
        print({"voices": [], "hint": "No voices found"})
        return
    default = next((index for group in groups for index, voice in group.voices if voice.is_default), None)
    RichConsoleView().console.print(voices_table(groups, default))


@app.command()
def speak(
    text: str = typer.Argument(..., help="Text to speak"),
    voice: int = typer.Option(None, help="Voice number from the `voices` command"),
    rate: float = typer.Option(None, help="Speech rate, 0.1-10"),
    pitch: float = typer.Option(None, help="Pitch, 0-2"),
    volume: float = typer.Option(None, help="Volume, 0-1"),
) -> None:
    """Speak text and wait for playback to finish."""
    synthesis = _require(_build_synthesis, settings.tts_enabled, "Text-to-speech")
    runtime = SpeechRuntime()
    coordinator = SessionCoordinator(
        view=RichConsoleView(),
        history=_build_history(),
        synthesis=synthesis,
        controls=_controls(text=text, voice_index=voice, rate=rate, pitch=pitch, volume=volume),
        dispatch=runtime.post,
        telemetry=LoggingTelemetry(),
    )

    async def _run() -> bool:
        await _start(runtime, coordinator)
        try:
            if coordinator.speak() is None:
                return False
            await runtime.wait_until(lambda: not coordinator.is_speaking)
            await runtime.drain(timeout=5)
            return True
        finally:
            await runtime.stop()

    try:
        spoken = asyncio.run(_run())
    except KeyboardInterrupt:
        spoken = True
    finally:
        _shutdown(synthesis)
    if not spoken:
        raise typer.Exit(code=1)


@app.command()
def listen(
    lang: str = typer.Option(None, "--lang", help="Recognition language tag, e.g. en-US"),
    send_to_tts: bool = typer.Option(False, help="Speak the captured transcript back"),
) -> None:
    """Listen continuously until Enter is pressed, then store the transcript."""
    recognition = _require(_build_recognition, settings.stt_enabled, "Speech recognition")
    synthesis = _probe(_build_synthesis, settings.tts_enabled, "tts") if send_to_tts else None
    runtime = SpeechRuntime()
    coordinator = SessionCoordinator(
        view=RichConsoleView(stop_hint="press Enter to stop"),
        history=_build_history(),
        synthesis=synthesis,
        recognition=recognition,
        controls=_controls(language=lang),
        dispatch=runtime.post,
        telemetry=LoggingTelemetry(),
    )

    async def _run() -> bool:
        await _start(runtime, coordinator)
        try:
            if not coordinator.start_recording():
                return False
            threading.Thread(
                target=lambda: (input(), runtime.post(coordinator.stop_recording)),
                name="listen-enter",
                daemon=True,
            ).start()
            await runtime.wait_until(lambda: not coordinator.is_recording)
            await runtime.drain(timeout=5)

            if send_to_tts and coordinator.send_to_tts() and coordinator.speak() is not None:
                await runtime.wait_until(lambda: not coordinator.is_speaking)
            return True
        finally:
            await runtime.stop()

    try:
        captured = asyncio.run(_run())
    except KeyboardInterrupt:
        captured = True
    finally:
        _shutdown(synthesis)
    if not captured:
        raise typer.Exit(code=1)
    print({"transcript": coordinator.transcript})


@app.command()
def studio() -> None:
    """Interactive session; type /help for commands."""
    from speech_studio.studio import STUDIO_HELP, StudioShell

    synthesis = _probe(_build_synthesis, settings.tts_enabled, "tts")
    recognition = _probe(_build_recognition, settings.stt_enabled, "stt")
    view = RichConsoleView(stop_hint="type /mic to stop")
    runtime = SpeechRuntime()
    coordinator = SessionCoordinator(
        view=view,
        history=_build_history(),
        synthesis=synthesis,
        recognition=recognition,
        controls=_controls(),
        dispatch=runtime.post,
        telemetry=LoggingTelemetry(),
    )
    if not coordinator.capabilities.any:
        raise typer.Exit(code=1)
    shell = StudioShell(coordinator, output=view.write)
    quit_requested = threading.Event()

    def _handle(line: str) -> None:
        if not shell.handle_line(line):
            quit_requested.set()

    def _read_lines() -> None:
        while not quit_requested.is_set():
            try:
                line = input()
            except EOFError:
                line = "/quit"
            runtime.post(_handle, line)

    async def _run() -> None:
        await _start(runtime, coordinator)
        view.console.print(STUDIO_HELP, markup=False)
        threading.Thread(target=_read_lines, name="studio-input", daemon=True).start()
        try:
            await runtime.wait_until(quit_requested.is_set)
            await runtime.wait_until(lambda: not coordinator.is_recording, timeout=settings.stt_silence_timeout + 5)
            await runtime.drain(timeout=5)
        finally:
            await runtime.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass
    finally:
        _shutdown(synthesis)


@history_app.command("list")
def history_list() -> None:
    """Show stored transcripts, newest first."""
    entries = _build_history().entries
    if not entries:
        print({"history": [], "hint": "No history yet"})
        return
    RichConsoleView().console.print(history_table(entries))


@history_app.command("show")
def history_show(entry_id: int = typer.Argument(..., help="History entry id")) -> None:
    """Print one stored transcript."""
    entry = _build_history().get(entry_id)
    if entry is None:
        print({"error": f"No history entry with id {entry_id}"})
        raise typer.Exit(code=1)
    print({"id": entry.id, "time": entry.time, "text": entry.text})


@history_app.command("clear")
def history_clear() -> None:
    """Remove every stored transcript."""
    if _build_history().clear():
        print({"history": "cleared"})
    else:
        print({"history": "already empty"})


if __name__ == "__main__":
    app()
