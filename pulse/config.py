"""PULSE global configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000
    env: str = "development"

    # Offline render
    sample_rate: int = 44100
    channels: int = 2
    tail_seconds: float = 2.0  # Lets reverb/delay tails ring out
    min_bars: int = 4

    # Paths
    output_dir: Path = Path("./renders")

    model_config = {"env_prefix": "PULSE_"}


settings = Settings()
