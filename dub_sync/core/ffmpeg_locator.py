"""
Locate the ffmpeg and ffprobe executables.

Lookup order: explicit path, settings (DUB_SYNC_FFMPEG_PATH / DUB_SYNC_FFPROBE_PATH),
a ``tools`` directory next to the current working directory, the system PATH,
and finally a few common install locations.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from .config import get_settings
from .exceptions import FFmpegNotFoundError

logger = logging.getLogger(__name__)

COMMON_LOCATIONS = [
    "/home/linuxbrew/.linuxbrew/bin",
    "/usr/local/bin",
    "/usr/bin",
    "/opt/homebrew/bin",
]


def _executable_name(tool: str) -> str:
    return f"{tool}.exe" if os.name == "nt" else tool


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def _find_tool(tool: str, explicit: Optional[str], configured: Optional[str]) -> str:
    searched: List[str] = []
    for candidate in (explicit, configured):
        if not candidate:
            continue
        searched.append(candidate)
        if _is_executable(candidate):
            return candidate
        # Allow bare names resolved through PATH
        resolved = shutil.which(candidate)
        if resolved:
            return resolved
        logger.warning(f"Configured {tool} path is not executable: {candidate}")

    exe = _executable_name(tool)

    tools_dir = Path.cwd() / "tools" / exe
    searched.append(str(tools_dir))
    if _is_executable(str(tools_dir)):
        return str(tools_dir)

    searched.append("PATH")
    resolved = shutil.which(exe)
    if resolved:
        return resolved

    for directory in COMMON_LOCATIONS:
        path = os.path.join(directory, exe)
        searched.append(path)
        if _is_executable(path):
            return path

    raise FFmpegNotFoundError(tool=tool, searched=searched)


def find_ffmpeg(explicit: Optional[str] = None) -> str:
    """Return the path of the ffmpeg executable or raise FFmpegNotFoundError."""
    path = _find_tool("ffmpeg", explicit, get_settings().FFMPEG_PATH)
    logger.debug(f"Using ffmpeg: {path}")
    return path


def find_ffprobe(explicit: Optional[str] = None) -> str:
    """Return the path of the ffprobe executable or raise FFmpegNotFoundError."""
    path = _find_tool("ffprobe", explicit, get_settings().FFPROBE_PATH)
    logger.debug(f"Using ffprobe: {path}")
    return path
