from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import AsyncContextManager, List, Optional, Sequence

from config import get_constant
from utils.file_logger import log_file_operation
from utils.file_ops import (
    SNIPPET_LINES,
    file_lock,
    make_output,
    read_file,
    shorten_path,
    truncate_for_token_estimate,
    validate_path,
    write_file,
)

from .patching import EditRequest, PatchEngine, messages

logger = logging.getLogger(__name__)


class FileEditor:
    """view / create / str_replace / insert on files under a project root.

    Every operation returns a plain string. Bad ranges, no-op edits and
    failed matches are reported in that string; only path problems
    (``ToolError``) and filesystem errors (``OSError``) are raised.
    """

    def __init__(
        self,
        project_root: Optional[str | Path] = None,
        engine: Optional[PatchEngine] = None,
        lock_all_writes: Optional[bool] = None,
        max_view_tokens: Optional[int] = None,
    ):
        root = project_root if project_root is not None else get_constant("REPO_DIR")
        self.project_root = Path(root).resolve()
        self.engine = engine or PatchEngine()
        self.lock_all_writes = (
            bool(get_constant("LOCK_ALL_WRITES", False)) if lock_all_writes is None else lock_all_writes
        )
        self.max_view_tokens = max_view_tokens or get_constant("MAX_VIEW_TOKENS", 2_000)

    # ------------------------------------------------------------------
    # view
    # ------------------------------------------------------------------

    async def view(self, path: str | Path, view_range: Optional[Sequence[Optional[int]]] = None) -> str:
        resolved = validate_path("view", path, self.project_root)
        if view_range is not None and (len(view_range) != 2 or any(v is None for v in view_range)):
            view_range = None

        if resolved.is_dir():
            return self._view_directory(resolved, view_range)

        file_content = await asyncio.to_thread(read_file, resolved)
        file_lines = file_content.split("\n")
        n_lines_file = len(file_lines)

        if view_range is not None:
            start, end = view_range
            if start < 1 or start > n_lines_file:
                return messages.invalid_view_start(view_range, start, n_lines_file)
            if end != -1:
                end = min(end, n_lines_file)
                if end < start:
                    return messages.invalid_view_end(view_range, start, end)
            selected = file_lines[start - 1:] if end == -1 else file_lines[start - 1:end]
            output = make_output("\n".join(selected), str(path), start)
            # Keep the start of the requested range
            return truncate_for_token_estimate(output, self.max_view_tokens)

        output = make_output(file_content, str(path))
        truncated = truncate_for_token_estimate(output, self.max_view_tokens)
        if truncated != output:
            truncated += (
                f"\n\n... {n_lines_file} total lines in file. Use view_range to see specific sections."
            )
        return truncated

    def _view_directory(self, directory: Path, view_range: Optional[Sequence[int]]) -> str:
        entries: List[str] = []
        for pattern in ("*", "*/*"):
            for item in directory.glob(pattern):
                relative = item.relative_to(directory)
                if any(part.startswith(".") for part in relative.parts):
                    continue
                entries.append(shorten_path(item, self.project_root))
        entries.sort()
        total = len(entries)

        if view_range is not None:
            start, end = view_range
            entries = entries[max(0, start - 1):None if end == -1 else end]

        display = shorten_path(directory, self.project_root)
        output = (
            f"Here's the files and directories up to 2 levels deep in {display}, "
            f"excluding hidden items ({total} entries):\n" + "\n".join(entries) + "\n"
        )
        return truncate_for_token_estimate(output, self.max_view_tokens)

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    async def create(self, path: str | Path, file_text: str) -> str:
        resolved = validate_path("create", path, self.project_root)
        async with self._write_lock(resolved):
            await asyncio.to_thread(write_file, resolved, file_text)
            log_file_operation(resolved, "create", content=file_text)
        return messages.created(str(path))

    # ------------------------------------------------------------------
    # str_replace
    # ------------------------------------------------------------------

    async def str_replace(
        self,
        path: str | Path,
        old_str: str,
        new_str: Optional[str],
        start_line: Optional[int] = None,
    ) -> str:
        resolved = validate_path("string_replace", path, self.project_root)
        new_str = new_str or ""
        if old_str == new_str:
            return messages.same_string()
        if not old_str:
            return messages.empty_old_str()

        # Concurrent edits to the same file queue here
        async with file_lock(resolved):
            file_content = await asyncio.to_thread(read_file, resolved)
            request = EditRequest(
                path=str(path),
                old_text=old_str,
                new_text=new_str,
                start_line_hint=start_line,
            )
            outcome = self.engine.apply(request, file_content)
            if outcome.changed:
                await asyncio.to_thread(write_file, resolved, outcome.content)
                log_file_operation(
                    resolved,
                    "str_replace",
                    content=outcome.content,
                    metadata={"tier": outcome.result.tier if outcome.result else None},
                )
            else:
                logger.info(f"str_replace left {resolved} unchanged")
        return outcome.message

    # ------------------------------------------------------------------
    # insert
    # ------------------------------------------------------------------

    async def insert(self, path: str | Path, insert_line: int, new_str: str) -> str:
        resolved = validate_path("insert", path, self.project_root)
        async with self._write_lock(resolved):
            file_content = await asyncio.to_thread(read_file, resolved)
            file_lines = file_content.split("\n")
            n_lines_file = len(file_lines)
            if insert_line < 0 or insert_line > n_lines_file:
                return messages.invalid_insert_line(insert_line, n_lines_file)

            new_str_lines = new_str.split("\n")
            new_file_lines = file_lines[:insert_line] + new_str_lines + file_lines[insert_line:]
            new_file_content = "\n".join(new_file_lines)
            await asyncio.to_thread(write_file, resolved, new_file_content)
            log_file_operation(resolved, "insert", content=new_file_content)

        snippet_lines = (
            file_lines[max(0, insert_line - SNIPPET_LINES):insert_line]
            + new_str_lines
            + file_lines[insert_line:insert_line + SNIPPET_LINES]
        )
        return messages.inserted(
            str(path), snippet_lines, max(1, insert_line - SNIPPET_LINES + 1)
        )

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _write_lock(self, path: Path) -> AsyncContextManager:
        if self.lock_all_writes:
            return file_lock(path)
        return contextlib.nullcontext()
