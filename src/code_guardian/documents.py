"""
Text documents the fix agent reads from and edits.

The editor host supplies its own implementation; FileDocument backs the CLI
with a plain file on disk.
"""

import asyncio
from pathlib import Path
from typing import Optional, Protocol

from code_guardian.models.fix import Position, Range

LANGUAGE_IDS = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".java": "java",
    ".go": "go",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".c": "c",
    ".cpp": "cpp",
    ".rs": "rust",
}


class TextDocument(Protocol):
    path: str
    language_id: str

    @property
    def line_count(self) -> int: ...

    def line_text(self, line: int) -> str: ...

    def get_text(self, range: Range) -> str: ...

    async def apply_edit(self, range: Range, text: str) -> bool:
        """Replace the range. False if the host refused the edit."""
        ...

    async def save(self) -> None: ...


def language_for(path: str) -> str:
    return LANGUAGE_IDS.get(Path(path).suffix.lower(), "plaintext")


class InMemoryDocument:
    """Line-addressable text with range edits; the basis for FileDocument."""

    def __init__(self, text: str, path: str = "untitled", language_id: Optional[str] = None):
        self.path = path
        self.language_id = language_id or language_for(path)
        self.version = 0
        self._lines = text.split("\n")

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line_text(self, line: int) -> str:
        return self._lines[line]

    def _offset(self, position: Position) -> int:
        line = min(max(position.line, 0), len(self._lines) - 1)
        character = min(max(position.character, 0), len(self._lines[line]))
        return sum(len(text) + 1 for text in self._lines[:line]) + character

    def get_text(self, range: Range) -> str:
        return self.text[self._offset(range.start):self._offset(range.end)]

    def _valid(self, range: Range) -> bool:
        return 0 <= range.start.line <= range.end.line < len(self._lines)

    async def apply_edit(self, range: Range, text: str) -> bool:
        if not self._valid(range):
            return False
        source = self.text
        updated = source[:self._offset(range.start)] + text + source[self._offset(range.end):]
        self._lines = updated.split("\n")
        self.version += 1
        return True

    async def save(self) -> None:
        pass


class FileDocument(InMemoryDocument):
    """A file on disk. Edits are refused if the file changed since it was read.

    Lines are addressed without their terminators; the file's own line ending
    is restored on save.
    """

    def __init__(self, path: Path, language_id: Optional[str] = None):
        self._file = Path(path)
        self._loaded = self._read_raw()
        self.eol = "\r\n" if "\r\n" in self._loaded else "\n"
        super().__init__(self._loaded.replace("\r\n", "\n"), str(self._file), language_id)

    def _read_raw(self) -> str:
        with open(self._file, encoding="utf-8", newline="") as fh:
            return fh.read()

    def _write_raw(self, raw: str) -> None:
        with open(self._file, "w", encoding="utf-8", newline="") as fh:
            fh.write(raw)

    async def apply_edit(self, range: Range, text: str) -> bool:
        current = await asyncio.to_thread(self._read_raw)
        if current != self._loaded:
            return False
        return await super().apply_edit(range, text.replace("\r\n", "\n"))

    async def save(self) -> None:
        raw = self.text if self.eol == "\n" else self.text.replace("\n", self.eol)
        await asyncio.to_thread(self._write_raw, raw)
        self._loaded = raw
