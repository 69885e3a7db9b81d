"""Runtime configuration for Speech Studio."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="SPEECH_STUDIO_", env_file=".env", extra="ignore")

    app_name: str = "speech-studio"
    log_level: str = "INFO"
    tts_enabled: bool = True
    stt_enabled: bool = True

    history_path: Path = Field(
        default=Path.home() / ".speech_studio" / "history.json",
        description="JSON snapshot holding the recent transcript history.",
    )
    history_limit: int = Field(default=20, ge=1)
    history_time_format: str = Field(default="%H:%M", description="strftime pattern for the stored display time.")

    watchdog_interval_seconds: float = Field(default=5.0, gt=0)
    default_language: str = "en-US"
    default_rate: float = 1.0
    default_pitch: float = 1.0
    default_volume: float = 1.0

    stt_phrase_time_limit: float = 10.0
    stt_silence_timeout: float = Field(
        default=5.0,
        description="Seconds of silence after which the microphone backend ends a recognition pass.",
    )
    stt_adjust_noise_seconds: float = 0.2


settings = Settings()
