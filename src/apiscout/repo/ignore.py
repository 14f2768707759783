from __future__ import annotations

from pathlib import Path
from typing import Collection

DEFAULT_IGNORES = frozenset(
    {
        ".git",
        "node_modules",
        "bower_components",
        "dist",
        "build",
        "coverage",
        ".next",
        ".nuxt",
        ".turbo",
        ".cache",
        ".venv",
        "__pycache__",
    }
)


def should_ignore_dir(dir_path: Path, ignores: Collection[str] = DEFAULT_IGNORES) -> bool:
    return dir_path.name in ignores
