"""Kiosk display client configuration."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class DisplaySettings(BaseSettings):
    api_url: str = "http://localhost:3000/api"
    push_url: Optional[str] = None  # derived from api_url when unset
    poll_interval_seconds: float = 5.0
    tick_interval_seconds: float = 1.0
    request_timeout_seconds: float = 5.0
    state_file: Path = Path.home() / "chaosops" / "display-state.json"

    model_config = {"env_prefix": "CHAOSOPS_DISPLAY_"}


display_settings = DisplaySettings()
