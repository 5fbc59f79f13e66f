"""Configuration management - timesync daemon settings"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv
load_dotenv()


@dataclass
class Settings:
    """Daemon configuration"""

    # Storage
    data_dir: Path = field(default_factory=lambda: Path.home() / ".timesync")
    store_backend: str = "json"

    # Listeners ("package.module:ClassName" or "package.module.ClassName")
    listeners: List[str] = field(default_factory=list)

    # Scheduling
    past_due_policy: str = "skip"
    inexact_window_ms: int = 0

    # Network monitor
    network_probe_host: str = "1.1.1.1"
    network_probe_port: int = 53
    network_probe_timeout: float = 3.0
    network_poll_interval: float = 30.0

    # Power monitor
    power_poll_interval: float = 60.0

    # Device identity
    device_id: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables"""
        log_file = os.getenv("TIMESYNC_LOG_FILE")

        return cls(
            data_dir=Path(os.getenv(
                "TIMESYNC_DATA_DIR", str(Path.home() / ".timesync")
            )).expanduser(),
            store_backend=os.getenv("TIMESYNC_STORE", "json").lower(),

            listeners=[
                n.strip() for n in os.getenv("TIMESYNC_LISTENERS", "").split(",") if n.strip()
            ],

            past_due_policy=os.getenv("TIMESYNC_PAST_DUE_POLICY", "skip").lower(),
            inexact_window_ms=int(os.getenv("TIMESYNC_INEXACT_WINDOW_MS", "0")),

            network_probe_host=os.getenv("TIMESYNC_NETWORK_PROBE_HOST", "1.1.1.1"),
            network_probe_port=int(os.getenv("TIMESYNC_NETWORK_PROBE_PORT", "53")),
            network_probe_timeout=float(os.getenv("TIMESYNC_NETWORK_PROBE_TIMEOUT", "3.0")),
            network_poll_interval=float(os.getenv("TIMESYNC_NETWORK_POLL_INTERVAL", "30.0")),

            power_poll_interval=float(os.getenv("TIMESYNC_POWER_POLL_INTERVAL", "60.0")),

            device_id=os.getenv("TIMESYNC_DEVICE_ID") or None,

            log_level=os.getenv("TIMESYNC_LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
        )

    @property
    def json_store_path(self) -> Path:
        return self.data_dir / "prefs.json"

    @property
    def sqlite_store_path(self) -> Path:
        return self.data_dir / "prefs.db"


# Global settings instance
settings = Settings.from_env()
