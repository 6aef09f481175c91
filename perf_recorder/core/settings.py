"""Typed configuration for perf recording sessions."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .config_manager import get_config_manager
from .paths import CONFIG_PATH, DEFAULT_REPORT_DIR

INSTRUMENTS_BINARY = "instruments"
DEFAULT_PROFILE_NAME = "Activity Monitor"
DEFAULT_TIMEOUT_MS = 5 * 60 * 1000
STOP_TIMEOUT_MS = 3 * 60 * 1000
STARTUP_TIMEOUT_MS = 15 * 1000
STARTUP_POLL_INTERVAL_MS = 500


@dataclass(slots=True, frozen=True)
class RecorderSettings:
    """Tunables shared by every recording session of one process."""

    # External tool
    binary: str = INSTRUMENTS_BINARY
    default_profile_name: str = DEFAULT_PROFILE_NAME

    # Deadlines
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    startup_timeout_ms: int = STARTUP_TIMEOUT_MS
    stop_timeout_ms: int = STOP_TIMEOUT_MS
    poll_interval_ms: int = STARTUP_POLL_INTERVAL_MS

    # Output
    report_dir: Path = field(default_factory=lambda: DEFAULT_REPORT_DIR)

    @classmethod
    def from_config(cls, config: Dict[str, str], args: Any = None) -> "RecorderSettings":
        """Build settings from a parsed config file with optional CLI overrides."""
        cm = get_config_manager()
        defaults = cls()

        settings = cls(
            binary=cm.get_str(config, "binary", defaults.binary) or defaults.binary,
            default_profile_name=cm.get_str(config, "default_profile_name", defaults.default_profile_name)
            or defaults.default_profile_name,
            default_timeout_ms=_positive(cm.get_int(config, "default_timeout_ms", defaults.default_timeout_ms),
                                         defaults.default_timeout_ms),
            startup_timeout_ms=_positive(cm.get_int(config, "startup_timeout_ms", defaults.startup_timeout_ms),
                                         defaults.startup_timeout_ms),
            stop_timeout_ms=_positive(cm.get_int(config, "stop_timeout_ms", defaults.stop_timeout_ms),
                                      defaults.stop_timeout_ms),
            poll_interval_ms=_positive(cm.get_int(config, "poll_interval_ms", defaults.poll_interval_ms),
                                       defaults.poll_interval_ms),
            report_dir=Path(cm.get_str(config, "report_dir", "") or defaults.report_dir).expanduser(),
        )

        if args is not None:
            settings = settings._apply_args_override(args)

        return settings

    def _apply_args_override(self, args: Any) -> "RecorderSettings":
        arg_mappings = {
            "binary": "binary",
            "report_dir": "report_dir",
            "startup_timeout_ms": "startup_timeout_ms",
            "stop_timeout_ms": "stop_timeout_ms",
        }

        overrides = {}
        for arg_name, settings_key in arg_mappings.items():
            val = getattr(args, arg_name, None)
            if val is not None:
                overrides[settings_key] = val

        return replace(self, **overrides) if overrides else self

    @property
    def startup_timeout(self) -> float:
        return self.startup_timeout_ms / 1000

    @property
    def stop_timeout(self) -> float:
        return self.stop_timeout_ms / 1000

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _positive(value: int, fallback: int) -> int:
    return value if value > 0 else fallback


async def load_settings(config_path: Optional[Path] = None, args: Any = None) -> RecorderSettings:
    config = await get_config_manager().read_config_async(Path(config_path or CONFIG_PATH))
    return RecorderSettings.from_config(config, args)


__all__ = [
    "RecorderSettings",
    "load_settings",
    "INSTRUMENTS_BINARY",
    "DEFAULT_PROFILE_NAME",
    "DEFAULT_TIMEOUT_MS",
    "STOP_TIMEOUT_MS",
    "STARTUP_TIMEOUT_MS",
    "STARTUP_POLL_INTERVAL_MS",
]
