"""Reader for the ``key = value`` recorder configuration file."""

import asyncio
from pathlib import Path
from typing import Dict, Iterable

import aiofiles

from perf_recorder.core.logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")

_QUOTES = ('"', "'")


def parse_config_lines(lines: Iterable[str]) -> Dict[str, str]:
    """Parse ``key = value`` lines.

    ``#`` starts a comment anywhere on a line, matching quotes around a value
    are dropped and lines without ``=`` are ignored. Later keys win.
    """
    config: Dict[str, str] = {}
    for raw_line in lines:
        key, sep, value = raw_line.split('#', 1)[0].partition('=')
        key = key.strip()
        if not sep or not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
            value = value[1:-1]
        config[key] = value
    return config


class ConfigManager:
    """Loads recorder settings files without blocking the event loop."""

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        if not await asyncio.to_thread(config_path.is_file):
            logger.debug("No config file at %s, using defaults", config_path)
            return {}

        try:
            async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                content = await f.read()
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

        config = parse_config_lines(content.splitlines())
        logger.debug("Loaded %d setting(s) from %s", len(config), config_path)
        return config

    def get_int(self, config: Dict[str, str], key: str, default: int = 0) -> int:
        raw = config.get(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Invalid int value for %s: %s, using default %d", key, raw, default)
            return default

    def get_str(self, config: Dict[str, str], key: str, default: str = "") -> str:
        return config.get(key, default)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager


__all__ = ["ConfigManager", "get_config_manager", "parse_config_lines"]
