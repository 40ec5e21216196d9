"""File-system template store: one ``<name>.html`` file per report."""

from __future__ import annotations

import re
from pathlib import Path

from reportgen.core.errors import TemplateNotFoundError
from reportgen.framework.logging import get_logger

logger = get_logger(__name__)

_UNSAFE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def safe_file_name(name: str) -> str:
    """Replace characters that are invalid in file names with ``_``."""
    return _UNSAFE.sub("_", name.strip())


class FileTemplateStore:
    """Templates stored as ``<folder>/<safe name>.html`` (UTF-8)."""

    suffix = ".html"

    def __init__(self, folder: str | Path):
        self.folder = Path(folder)

    def path_for(self, name: str) -> Path:
        return self.folder / f"{safe_file_name(name)}{self.suffix}"

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def get(self, name: str) -> str:
        path = self.path_for(name)
        if not path.is_file():
            raise TemplateNotFoundError(name)
        return path.read_text(encoding="utf-8")

    def save(self, name: str, content: str) -> Path:
        self.folder.mkdir(parents=True, exist_ok=True)
        path = self.path_for(name)
        path.write_text(content, encoding="utf-8")
        logger.info("templates.saved", template=name, path=str(path))
        return path

    def list_templates(self) -> list[str]:
        if not self.folder.is_dir():
            return []
        return sorted(p.stem for p in self.folder.glob(f"*{self.suffix}"))
