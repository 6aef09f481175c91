"""Async filesystem helpers for raw reports and their archives.

Every blocking call is pushed through ``asyncio.to_thread`` so that a large
report never stalls the event loop that supervises the profiling process.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Optional, Union
from zipfile import ZIP_DEFLATED, ZipFile

from .logging_utils import get_module_logger

logger = get_module_logger("FileUtils")

PathLike = Union[str, Path, None]


async def exists(path: PathLike) -> bool:
    if not path:
        return False
    return await asyncio.to_thread(os.path.exists, path)


def _remove_sync(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


async def rimraf(path: PathLike) -> None:
    """Delete a file or directory tree; absent paths are ignored."""
    if not path:
        return
    target = Path(path)
    if not await asyncio.to_thread(os.path.lexists, target):
        return
    try:
        await asyncio.to_thread(_remove_sync, target)
    except FileNotFoundError:
        return
    logger.debug("Removed %s", target)


async def which(binary: str) -> Optional[str]:
    """Resolve ``binary`` on PATH (or validate an explicit executable path)."""
    return await asyncio.to_thread(shutil.which, binary)


def _archive_sync(dst_path: Path, src_path: Path) -> None:
    tmp_path = dst_path.with_name(f".{dst_path.name}.part")
    try:
        with ZipFile(tmp_path, 'w', ZIP_DEFLATED) as zipf:
            if src_path.is_dir():
                for file_path in sorted(src_path.rglob("*")):
                    arcname = file_path.relative_to(src_path)
                    zipf.write(file_path, arcname)
            else:
                zipf.write(src_path, src_path.name)
        os.replace(tmp_path, dst_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


async def to_archive(dst_path: PathLike, src_path: PathLike) -> Path:
    """Compress ``src_path`` into a ZIP archive at ``dst_path``.

    Directory sources are stored relative to the directory itself, a single
    file is stored under its own name.
    """
    dst = Path(dst_path)
    src = Path(src_path)
    logger.debug("Archiving %s into %s", src, dst)
    await asyncio.to_thread(_archive_sync, dst, src)
    size = await asyncio.to_thread(lambda: dst.stat().st_size)
    logger.debug("Archive %s ready (%d bytes)", dst, size)
    return dst


__all__ = ["exists", "rimraf", "which", "to_archive"]
