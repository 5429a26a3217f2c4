import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    input_dir: Path = Path("./data/input")
    output_dir: Path = Path("./data/output")
    out_permissions: int = 0o644
    watch_delay_sec: float = 5.0
    host: str = "0.0.0.0"
    port: int = 8080
    max_upload_mb: int = 100
    retention_hours: float = 3.0
    cleanup_interval_sec: float = 3600.0
    shutdown_timeout_sec: float = 5.0
    stream_poll_sec: float = 0.5
    log_level: str = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def retention_sec(self) -> float:
        return self.retention_hours * 3600

    def with_overrides(self, **changes: object) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _env_int(name: str, default: int, base: int = 10) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip(), base)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def parse_permissions(value: str) -> int:
    """Parse an octal permission string such as ``0644`` or ``0o640``."""
    text = value.strip().lower()
    if text.startswith("0o"):
        text = text[2:]
    return int(text, 8)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    defaults = Settings()
    try:
        perms = parse_permissions(os.getenv("OUT_PERMISSIONS", "0644"))
    except ValueError:
        perms = defaults.out_permissions

    return Settings(
        input_dir=Path(os.getenv("INPUT_DIR", str(defaults.input_dir))).resolve(),
        output_dir=Path(os.getenv("OUTPUT_DIR", str(defaults.output_dir))).resolve(),
        out_permissions=perms,
        watch_delay_sec=_env_float("WATCH_DELAY_SEC", defaults.watch_delay_sec),
        host=os.getenv("HOST", defaults.host),
        port=_env_int("PORT", defaults.port),
        max_upload_mb=_env_int("MAX_UPLOAD_MB", defaults.max_upload_mb),
        retention_hours=_env_float("RETENTION_HOURS", defaults.retention_hours),
        cleanup_interval_sec=_env_float("CLEANUP_INTERVAL_SEC", defaults.cleanup_interval_sec),
        shutdown_timeout_sec=_env_float("SHUTDOWN_TIMEOUT_SEC", defaults.shutdown_timeout_sec),
        stream_poll_sec=_env_float("STREAM_POLL_SEC", defaults.stream_poll_sec),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
    )
