from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Collection, Iterator, Optional

from apiscout.errors import ScanError
from apiscout.parsing.frontends import supported_extensions
from apiscout.repo.ignore import DEFAULT_IGNORES, should_ignore_dir

logger = logging.getLogger(__name__)


class SourceTreeWalker:
    """Recursive source-file enumeration in directory-listing order.

    Entries are visited in the order the filesystem lists them, so the
    order is only stable on a filesystem with a stable listing order.

    A directory that cannot be listed, or that closes a symlink loop, raises
    ``ScanError`` unless ``skip_unreadable`` is set, in which case the subtree
    is skipped and a message is appended to ``warnings``.
    """

    def __init__(
        self,
        extensions: Optional[Collection[str]] = None,
        ignore_dirs: Collection[str] = DEFAULT_IGNORES,
        skip_unreadable: bool = False,
    ) -> None:
        self.extensions = frozenset(extensions) if extensions is not None else supported_extensions()
        self.ignore_dirs = frozenset(ignore_dirs)
        self.skip_unreadable = skip_unreadable
        self.warnings: list[str] = []

    def walk(self, root: Path) -> Iterator[Path]:
        if not root.is_dir():
            raise ScanError("scan root is not a directory", root)
        yield from self._walk_dir(root, ())

    def _walk_dir(self, directory: Path, chain: tuple[str, ...]) -> Iterator[Path]:
        real = os.path.realpath(directory)
        if real in chain:
            self._fail("symlink loop", directory)
            return
        try:
            entries = _list_dir(directory)
        except OSError as exc:
            self._fail(f"cannot read directory ({exc.strerror or exc})", directory)
            return

        chain = chain + (real,)
        for entry in entries:
            path = Path(entry.path)
            try:
                is_dir = entry.is_dir()
                is_file = not is_dir and entry.is_file()
            except OSError:
                continue
            if is_dir:
                if should_ignore_dir(path, self.ignore_dirs):
                    continue
                yield from self._walk_dir(path, chain)
            elif is_file and path.suffix in self.extensions:
                yield path

    def _fail(self, message: str, path: Path) -> None:
        if not self.skip_unreadable:
            raise ScanError(message, path)
        logger.warning("skipping %s: %s", path, message)
        self.warnings.append(f"{message}: {path}")


def _list_dir(directory: Path) -> list[os.DirEntry]:
    # Separate helper to make unit testing easier (can be mocked)
    with os.scandir(directory) as it:
        return list(it)


def scan_source_files(
    repo_path: Path,
    max_files: int | None = None,
    ignore_dirs: Collection[str] = DEFAULT_IGNORES,
) -> list[str]:
    """Absolute paths of every JS/TS source file under repo_path."""
    out: list[str] = []
    for path in SourceTreeWalker(ignore_dirs=ignore_dirs).walk(repo_path):
        out.append(str(path.resolve()))
        if max_files is not None and len(out) >= max_files:
            break
    return out


def _file_contains_any(path: str, needles: list[str], max_bytes: int = 200_000) -> bool:
    try:
        with open(path, "rb") as f:
            data = f.read(max_bytes)
        text = data.decode("utf-8", errors="ignore")
        return any(n in text for n in needles)
    except OSError:
        return False
