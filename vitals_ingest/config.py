"""
Runtime settings for the import engine.

Values come from environment variables, optionally loaded from a `.env`
file in the working directory:

    VITALS_DATA_DIR              store directory (default ~/.vitals)
    VITALS_LOCAL_MODE            "true" keeps the store in memory only
    VITALS_PROGRESS_EVERY        worker progress cadence in records (default 1000)
    VITALS_MAX_SKIP_REASONS      skip reasons kept per import (default 50)
    VITALS_WORKER_POLL_INTERVAL  seconds between worker liveness checks (default 0.1)
    VITALS_WORKER_START_METHOD   multiprocessing start method (fork, spawn, forkserver)
    VITALS_LOG_LEVEL             log level for the CLI (default WARNING)
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    """Import engine settings."""

    data_dir: Path = Field(default_factory=lambda: Path.home() / ".vitals")
    local_mode: bool = False
    progress_every: int = Field(1000, gt=0)
    max_skip_reasons: int = Field(50, ge=0)
    worker_poll_interval: float = Field(0.1, gt=0)
    worker_start_method: str | None = None
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Settings":
        """
        Build settings from the environment.

        Args:
            env_file: Optional dotenv file to load first (defaults to ./.env)

        Returns:
            Settings instance
        """
        env_path = env_file or Path.cwd() / ".env"
        if env_path.exists():
            from dotenv import load_dotenv

            load_dotenv(env_path, override=False)

        values: dict = {
            "local_mode": _env_flag("VITALS_LOCAL_MODE"),
            "log_level": os.getenv("VITALS_LOG_LEVEL", "WARNING").upper(),
        }
        if os.getenv("VITALS_DATA_DIR"):
            values["data_dir"] = Path(os.environ["VITALS_DATA_DIR"]).expanduser()
        if os.getenv("VITALS_PROGRESS_EVERY"):
            values["progress_every"] = int(os.environ["VITALS_PROGRESS_EVERY"])
        if os.getenv("VITALS_MAX_SKIP_REASONS"):
            values["max_skip_reasons"] = int(os.environ["VITALS_MAX_SKIP_REASONS"])
        if os.getenv("VITALS_WORKER_POLL_INTERVAL"):
            values["worker_poll_interval"] = float(os.environ["VITALS_WORKER_POLL_INTERVAL"])
        if os.getenv("VITALS_WORKER_START_METHOD"):
            values["worker_start_method"] = os.environ["VITALS_WORKER_START_METHOD"]

        return cls(**values)
