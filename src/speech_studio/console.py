"""Rich console rendering for speech sessions."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from speech_studio.models import HistoryEntry, StatusTone, VoiceGroup
from speech_studio.speech.tts import TtsControls

_TONE_STYLES = {
    StatusTone.NEUTRAL: "bold",
    StatusTone.SPEAKING: "bold green",
    StatusTone.LISTENING: "bold cyan",
    StatusTone.ERROR: "bold red",
}


def format_rate(rate: float) -> str:
    return f"{rate:.1f}×"


def format_pitch(pitch: float) -> str:
    return f"{pitch:.1f}"


def format_volume(volume: float) -> str:
    return f"{round(volume * 100)}%"


def voices_table(groups: list[VoiceGroup], selected: int | None = None) -> Table:
    table = Table(title="Voices", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Language")
    table.add_column("Voice")
    for group in groups:
        for index, voice in group.voices:
            marker = " *" if index == selected else ""
            table.add_row(str(index), group.prefix, Text(f"{voice.label}{marker}"))
    return table


def history_table(entries: list[HistoryEntry]) -> Table:
    table = Table(title="History")
    table.add_column("ID", justify="right")
    table.add_column("Time")
    table.add_column("Text")
    for entry in entries:
        table.add_row(str(entry.id), entry.time, Text(entry.text))
    return table


class RichConsoleView:
    """Prints session updates to a rich console; transcripts are written once final."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        verbose: bool = False,
        stop_hint: str | None = None,
    ) -> None:
        self.console = console or Console()
        self._verbose = verbose
        self._stop_hint = stop_hint
        self._last_status: str | None = None

    def show_status(self, text: str, tone: StatusTone) -> None:
        if text == self._last_status:
            return
        self._last_status = text
        self.console.print(Text(f"● {text}", style=_TONE_STYLES.get(tone, "bold")))

    def write(self, text: str) -> None:
        """Plain output line; transcript and voice text is never read as markup."""
        self.console.print(text, markup=False, highlight=False)

    def show_notice(self, message: str) -> None:
        self.console.print(message, style="yellow", markup=False)

    def show_unsupported(self, *, tts: bool, stt: bool) -> None:
        self.console.print("[bold red]Speech synthesis and recognition are not supported on this system.[/bold red]")

    def show_tts_controls(self, controls: TtsControls) -> None:
        if self._verbose:
            self.console.print(
                f"[dim]speak={'on' if controls.speak_enabled else 'off'} "
                f"{controls.pause_label.lower()}={'on' if controls.pause_enabled else 'off'} "
                f"stop={'on' if controls.stop_enabled else 'off'}[/dim]"
            )

    def show_visualizer(self, active: bool, label: str) -> None:
        if self._verbose:
            self.console.print(f"[dim]visualizer: {label}[/dim]")

    def show_listening(self, active: bool) -> None:
        if active:
            hint = f"Listening... {self._stop_hint}" if self._stop_hint else "Listening..."
        else:
            hint = "Stopped listening"
        self.console.print(hint, style="dim", markup=False)

    def show_transcript(self, final: str, interim: str) -> None:
        line = Text(final)
        if interim:
            line.append(interim, style="dim italic")
        if line.plain.strip():
            self.console.print(line)

    def show_voices(self, groups: list[VoiceGroup], selected: int | None) -> None:
        if not groups:
            if self._verbose:
                self.console.print("[dim]No voices found[/dim]")
            return
        if self._verbose:
            self.console.print(voices_table(groups, selected))

    def show_history(self, entries: list[HistoryEntry]) -> None:
        if self._verbose:
            if entries:
                self.console.print(history_table(entries))
            else:
                self.console.print("[dim]No history yet[/dim]")
