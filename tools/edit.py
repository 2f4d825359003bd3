"""
edit.py: the ``str_replace_editor`` tool
========================================

Commands
--------
view • create • str_replace • insert

``str_replace`` goes through the patch engine: exact match first, then
whitespace-normalized, contiguous-run and fuzzy line matching. Edits to the
same file are serialized; writes are atomic (temp file + ``portalocker``).
Paths stay under the project root.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .base import BaseTool, ToolError, ToolResult
from .file_editor import FileEditor
from .patching import messages

_LOG = logging.getLogger(__name__)


class Command(Enum):
    VIEW = "view"
    CREATE = "create"
    STR_REPLACE = "str_replace"
    INSERT = "insert"

    @classmethod
    def list(cls) -> List[str]:
        return [c.value for c in cls]


INPUT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {"type": "string", "enum": Command.list()},
        "path": {"type": "string", "description": "File or directory, relative to the project root"},
        "file_text": {"type": "string", "description": "Full content of the file (create)"},
        "view_range": {
            "type": "array",
            "items": {"type": "integer"},
            "minItems": 2,
            "maxItems": 2,
            "description": "[start, end] lines to show, 1-based; end -1 means EOF (view)",
        },
        "old_str": {"type": "string", "description": "Text to replace (str_replace)"},
        "new_str": {
            "type": "string",
            "description": "Replacement text (str_replace) or text to insert (insert)",
        },
        "start_line": {
            "type": "integer",
            "description": "Approximate line where old_str starts; picks one of several identical lines (str_replace)",
        },
        "insert_line": {
            "type": "integer",
            "description": "Insert new_str after this line; 0 inserts at the top (insert)",
        },
    },
    "required": ["command", "path"],
}


def _require(command: Command, **params: Any) -> None:
    missing = [f"`{name}`" for name, value in params.items() if value is None]
    if missing:
        noun = "Parameter" if len(missing) == 1 else "Parameters"
        verb = "is" if len(missing) == 1 else "are"
        raise ToolError(f"{noun} {' and '.join(missing)} {verb} required for command: {command.value}")


class EditTool(BaseTool):
    """View, create and edit files inside the project root."""

    api_type = "text_editor_20250124"

    def __init__(
        self,
        project_root: Optional[str | Path] = None,
        editor: Optional[FileEditor] = None,
    ):
        super().__init__(input_schema=INPUT_SCHEMA)
        self.editor = editor or FileEditor(project_root=project_root)
        self._handlers: Dict[Command, Callable[..., Awaitable[str]]] = {
            Command.VIEW: self._view,
            Command.CREATE: self._create,
            Command.STR_REPLACE: self._str_replace,
            Command.INSERT: self._insert,
        }

    @property
    def name(self) -> str:
        return "str_replace_editor"

    @property
    def description(self) -> str:
        return (
            "View, create and edit files inside the project. `str_replace` tolerates "
            "indentation and whitespace differences, echoed line numbers and small typos "
            "in `old_str`; pass `start_line` to pick one of several identical lines."
        )

    async def __call__(self, *, command: str, path: str, **arguments: Any) -> ToolResult:
        try:
            cmd = self._parse_command(command)
            message = await self._handlers[cmd](path, **arguments)
        except (ToolError, OSError) as exc:
            _LOG.error(f"{self.name} {command} {path}: {exc}", exc_info=True)
            return ToolResult.failure(
                str(exc),
                output=f"EditTool error running {command} on {path}: {exc}",
                tool_name=self.name,
                command=command,
            )

        return ToolResult(
            output=message,
            error=message if messages.is_failure(message) else None,
            tool_name=self.name,
            command=cmd.value,
        )

    @staticmethod
    def _parse_command(command: str) -> Command:
        try:
            return Command(command)
        except ValueError:
            raise ToolError(f"Invalid command '{command}'. Valid commands: {', '.join(Command.list())}")

    # Handlers take the model's arguments and ignore the ones they do not use.

    async def _view(self, path: str, view_range: Optional[List[int]] = None, **_: Any) -> str:
        return await self.editor.view(path, view_range)

    async def _create(self, path: str, file_text: Optional[str] = None, **_: Any) -> str:
        _require(Command.CREATE, file_text=file_text)
        return await self.editor.create(path, file_text)

    async def _str_replace(
        self,
        path: str,
        old_str: Optional[str] = None,
        new_str: Optional[str] = None,
        start_line: Optional[int] = None,
        **_: Any,
    ) -> str:
        _require(Command.STR_REPLACE, old_str=old_str)
        return await self.editor.str_replace(path, old_str, new_str, start_line)

    async def _insert(
        self,
        path: str,
        insert_line: Optional[int] = None,
        new_str: Optional[str] = None,
        **_: Any,
    ) -> str:
        _require(Command.INSERT, insert_line=insert_line, new_str=new_str)
        return await self.editor.insert(path, insert_line, new_str)
