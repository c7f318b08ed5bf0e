"""
Scoped file access.

Files outside the application's own scratch space may only be read while a
grant is held. A grant is acquired before the read and released afterwards
on every exit path. The broker that hands out grants is pluggable so a
sandboxed host can supply its own.
"""

import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Protocol

logger = logging.getLogger(__name__)


class AccessBroker(Protocol):
    """Hands out and revokes read grants for paths."""

    def acquire(self, path: Path) -> bool:
        """Request access to path. Returns False when access is denied."""
        ...

    def release(self, path: Path) -> None:
        """Give back a grant obtained from acquire."""
        ...


class OpenAccessBroker:
    """Broker for unsandboxed hosts: every request is granted."""

    def acquire(self, path: Path) -> bool:
        return True

    def release(self, path: Path) -> None:
        return None


def is_scratch_path(path: Path, scratch_dir: Optional[Path] = None) -> bool:
    """Check whether path lives in temporary storage (no grant needed)."""
    root = (scratch_dir or Path(tempfile.gettempdir())).resolve()
    try:
        path.resolve().relative_to(root)
    except ValueError:
        return False
    return True


@contextmanager
def scoped_access(
    path: Path,
    broker: Optional[AccessBroker] = None,
    scratch_dir: Optional[Path] = None,
) -> Iterator[bool]:
    """
    Bracket a single read of ``path`` with acquire/release.

    Yields whether access was granted. Scratch-space paths are always
    granted without consulting the broker.

    Example:
        >>> with scoped_access(path, broker) as granted:
        ...     if granted:
        ...         data = path.read_bytes()
    """
    if broker is None or is_scratch_path(path, scratch_dir):
        yield True
        return

    granted = broker.acquire(path)
    if not granted:
        logger.warning(f"Access denied for {path}")
    try:
        yield granted
    finally:
        if granted:
            broker.release(path)
