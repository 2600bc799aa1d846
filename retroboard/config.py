"""
Configuration - Settings read from environment variables.

Environment Variables:
    RETRO_DATA_DIR: Directory for the active snapshot and the archive (default: ./data)
    RETRO_DEFAULT_TIMER: Default countdown in seconds (default: 300)
    RETRO_HOST: Bind address for `retroboard serve` (default: 0.0.0.0)
    RETRO_PORT: Port for `retroboard serve` (default: 3000)
    ALLOWED_ORIGINS: Comma-separated CORS origins (default: *)
    RETRO_LOG_LEVEL: Logging level name (default: INFO)
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    data_dir: str = "./data"
    default_timer_duration: int = 300
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            data_dir=os.getenv("RETRO_DATA_DIR", "./data"),
            default_timer_duration=int(os.getenv("RETRO_DEFAULT_TIMER", "300")),
            host=os.getenv("RETRO_HOST", "0.0.0.0"),
            port=int(os.getenv("RETRO_PORT", "3000")),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
            log_level=os.getenv("RETRO_LOG_LEVEL", "INFO").upper(),
        )


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

    # Reduce noise from the server's access log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
