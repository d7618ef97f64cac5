"""Module references given on the command line."""

import stat
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from tfcosign.errors import InvalidArgumentError
from tfcosign.storage.urls import is_remote_reference


class ReferenceKind(StrEnum):
    REMOTE = "remote"
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ModuleReference:
    """A module archive, remote object or module directory named by the user."""

    raw: str
    kind: ReferenceKind

    @property
    def path(self) -> Path:
        return Path(self.raw)

    def __str__(self) -> str:
        return self.raw


def classify_reference(raw: str) -> ModuleReference:
    """Classify a reference as a remote object, a local file or a directory.

    Raises:
        InvalidArgumentError: If a local path cannot be stat'ed.
    """
    if is_remote_reference(raw):
        return ModuleReference(raw=raw, kind=ReferenceKind.REMOTE)

    try:
        st = Path(raw).stat()
    except OSError as e:
        raise InvalidArgumentError(raw, e.strerror or str(e)) from e

    if stat.S_ISDIR(st.st_mode):
        return ModuleReference(raw=raw, kind=ReferenceKind.DIRECTORY)
    return ModuleReference(raw=raw, kind=ReferenceKind.FILE)
