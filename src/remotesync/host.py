"""
Host collaborator interfaces.

The game loader owns the process; remotesync only needs three things
from it: an environment property lookup (game directory, progress
sink), a way to obtain directories, and somewhere to report progress.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger("remotesync.host")

GAME_DIR = "gamedir"
PROGRESS_MESSAGE = "progressmessage"

ProgressSink = Callable[[str], None]
DirectoryFactory = Callable[[Path], Path]


def create_directories(path: Path) -> Path:
    """Default directory factory: ``mkdir -p`` and return the path."""
    path.mkdir(parents=True, exist_ok=True)
    return path


class HostEnvironment:
    """What the host process exposes to remotesync.

    Args:
        properties: Environment properties, e.g. ``gamedir`` (Path) and
            ``progressmessage`` (callable taking a string).
        directory_factory: Creates (or otherwise provides) directories.
    """

    def __init__(
        self,
        properties: Optional[Mapping[str, Any]] = None,
        directory_factory: DirectoryFactory = create_directories,
    ):
        self._properties = dict(properties or {})
        self._directory_factory = directory_factory

    def get_property(self, key: str, default: Any = None) -> Any:
        return self._properties.get(key, default)

    @property
    def game_dir(self) -> Path:
        return Path(self.get_property(GAME_DIR, Path(".")))

    def progress(self, message: str) -> None:
        """Fire-and-forget progress notification; sink errors are logged."""
        sink: Optional[ProgressSink] = self.get_property(PROGRESS_MESSAGE)
        if sink is None:
            return
        try:
            sink(message)
        except Exception as exc:
            logger.debug("Progress sink rejected %r: %s", message, exc)

    def directory(self, relative: str) -> Path:
        """Directory ``relative`` to the game directory, created on demand."""
        return self._directory_factory(self.game_dir / relative)
