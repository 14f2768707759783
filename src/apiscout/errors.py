from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class ApiScoutError(Exception):
    """Base class for every error the CLI reports to the user."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None) -> None:
        self.message = message
        self.path = str(path) if path is not None else None
        super().__init__(f"{message}: {self.path}" if self.path else message)


class ConfigError(ApiScoutError):
    pass


class ScanError(ApiScoutError):
    """A directory under the scan root could not be walked (fatal)."""


class ParseError(ApiScoutError):
    """One source file could not be read or parsed. The scan skips it."""


class AcquireError(ApiScoutError):
    pass


class WriteError(ApiScoutError):
    pass


class SyncError(ApiScoutError):
    pass
