"""
Runtime settings read from the environment
"""
import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_UPSTREAM_URL = "http://vccvcvvcvccvv.x10.mx/path.json"


def _split_origins(raw: str) -> List[str]:
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 4000
    upstream_url: str = DEFAULT_UPSTREAM_URL
    upstream_timeout: float = 10.0
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from PORT, SERVER_HOST and LIVECOUNT_* variables"""
        return cls(
            host=os.environ.get("SERVER_HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", 4000)),
            upstream_url=os.environ.get("LIVECOUNT_UPSTREAM_URL", DEFAULT_UPSTREAM_URL),
            upstream_timeout=float(os.environ.get("LIVECOUNT_UPSTREAM_TIMEOUT", 10)),
            cors_origins=_split_origins(os.environ.get("LIVECOUNT_CORS_ORIGINS", "*")),
            log_level=os.environ.get("LIVECOUNT_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def allow_any_origin(self) -> bool:
        return "*" in self.cors_origins

    @property
    def socketio_origins(self):
        """Value for python-socketio's cors_allowed_origins"""
        return "*" if self.allow_any_origin else list(self.cors_origins)
