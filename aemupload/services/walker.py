"""
Local directory walking.

Lists a directory tree with an explicit stack, skipping temporary entries
and enforcing a budget on the number of paths visited.
"""
import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Set, Tuple, Union

from ..errors import ErrorCode, UploadError

logger = logging.getLogger(__name__)

TEMP_NAMES = {
    "thumbs.db",
    "ehthumbs.db",
    "desktop.ini",
    "$recycle.bin",
    "system volume information",
}
TEMP_SUFFIXES = (".tmp", ".temp", ".swp", ".swo", ".crdownload", ".part")


@dataclass(frozen=True)
class WalkedFile:
    path: Path
    size: int


@dataclass
class WalkResult:
    """Outcome of walking one root directory."""
    directories: List[Path] = field(default_factory=list)
    files: List[WalkedFile] = field(default_factory=list)
    errors: List[UploadError] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)


def is_temp_entry(name: str) -> bool:
    """True for OS and editor artifacts that should never be uploaded."""
    lowered = name.lower()
    if lowered.startswith((".", "~")) or lowered.endswith("~"):
        return True
    if lowered in TEMP_NAMES:
        return True
    return lowered.endswith(TEMP_SUFFIXES)


def _scan(directory: Path) -> Tuple[List[Tuple[str, bool, bool, int]], List[Tuple[str, OSError]]]:
    """List (name, is_dir, is_file, size) for each entry of ``directory``."""
    entries = []
    failures = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file()
                size = entry.stat().st_size if is_file else 0
            except OSError as e:
                failures.append((entry.name, e))
                continue
            entries.append((entry.name, is_dir, is_file, size))
    return entries, failures


async def walk_directory(
    root: Union[str, Path],
    max_paths: int = 5000,
    deep: bool = True,
) -> WalkResult:
    """
    Walk ``root`` and return its files and directories.

    In shallow mode only the immediate files of ``root`` are returned.
    Directories without any file beneath them are pruned. Raises TOO_LARGE
    once more than ``max_paths`` entries have been seen.
    """
    root = Path(root)
    result = WalkResult()
    stack: List[Path] = [root]
    directories: List[Path] = []
    seen = 0

    while stack:
        current = stack.pop()
        try:
            entries, failures = await asyncio.to_thread(_scan, current)
        except OSError as e:
            if current == root:
                raise UploadError(
                    f"unable to read directory {root}: {e}", ErrorCode.NOT_FOUND
                ) from e
            logger.warning(f"Unable to read directory {current}: {e}")
            result.errors.append(UploadError.from_error(e, f"unable to read directory {current}"))
            continue

        for name, error in failures:
            logger.warning(f"Unable to stat {current / name}: {error}")
            result.errors.append(UploadError.from_error(error, f"unable to stat {current / name}"))

        for name, is_dir, is_file, size in sorted(entries):
            if is_temp_entry(name):
                logger.debug(f"Skipping temporary entry {current / name}")
                continue

            if is_dir:
                if not deep:
                    continue
                child = current / name
                directories.append(child)
                stack.append(child)
            elif is_file:
                result.files.append(WalkedFile(current / name, size))
            else:
                continue

            seen += 1
            if seen > max_paths:
                raise UploadError(
                    f"walking {root} exceeded the maximum of {max_paths} paths",
                    ErrorCode.TOO_LARGE,
                )

    result.directories = _prune_empty(directories, result.files)
    logger.debug(
        f"Walked {root}: {len(result.directories)} directories, "
        f"{len(result.files)} files, {len(result.errors)} errors"
    )
    return result


def _prune_empty(directories: List[Path], files: List[WalkedFile]) -> List[Path]:
    """Keep only directories with at least one file beneath them."""
    occupied: Set[Path] = set()
    for walked in files:
        parent = walked.path.parent
        while parent not in occupied:
            occupied.add(parent)
            if parent.parent == parent:
                break
            parent = parent.parent
    return [d for d in directories if d in occupied]
