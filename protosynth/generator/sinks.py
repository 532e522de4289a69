"""Output sinks receiving generated files."""

import logging
from pathlib import Path
from typing import Protocol

from .errors import EmissionError

logger = logging.getLogger(__name__)


class OutputSink(Protocol):
    """Destination of generated files, addressed by `/`-separated relative paths."""

    def exists(self, path: str) -> bool: ...

    def read(self, path: str) -> str: ...

    def has_written(self, path: str) -> bool:
        """Whether `path` was written through this sink already."""
        ...

    def write(self, path: str, text: str, overwrite: bool = False) -> None: ...


class MemorySink:
    """Keeps generated files in a dict."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files: dict[str, str] = dict(files or {})
        self._written: set[str] = set()

    def exists(self, path: str) -> bool:
        return path in self.files

    def read(self, path: str) -> str:
        return self.files[path]

    def has_written(self, path: str) -> bool:
        return path in self._written

    def write(self, path: str, text: str, overwrite: bool = False) -> None:
        if path in self._written and not overwrite:
            raise EmissionError(f"File {path} was already generated")
        self._written.add(path)
        self.files[path] = text


class DirectorySink:
    """Writes generated files below a root directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._written: set[str] = set()

    def _path(self, path: str) -> Path:
        return self.root.joinpath(*path.split("/"))

    def exists(self, path: str) -> bool:
        return self._path(path).is_file()

    def read(self, path: str) -> str:
        return self._path(path).read_text(encoding="utf-8")

    def has_written(self, path: str) -> bool:
        return path in self._written

    def write(self, path: str, text: str, overwrite: bool = False) -> None:
        if path in self._written and not overwrite:
            raise EmissionError(f"File {path} was already generated")
        target = self._path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        self._written.add(path)
        logger.debug("Wrote %s", target)
