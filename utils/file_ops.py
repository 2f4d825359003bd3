"""File primitives shared by the editing tools.

Reading, atomic writing, path validation, per-path edit locks and the
``cat -n`` style snippet formatting all live here so that the patch engine
itself stays free of I/O.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional, TypeVar

import portalocker  # type: ignore

from config import get_constant
from tools.base import ToolError

logger = logging.getLogger(__name__)

SNIPPET_LINES = 4  # context lines around edits
CHARS_PER_TOKEN = 4

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Reading / writing
# ---------------------------------------------------------------------------


def read_file(path: Path) -> str:
    max_bytes = get_constant("MAX_FILE_BYTES")
    data = Path(path).read_bytes()
    if max_bytes and len(data) > max_bytes:
        raise ToolError(f"File too large to load: {path} ({len(data)} bytes)")
    return data.decode("utf-8", errors="surrogateescape")


def write_file(path: Path, content: str) -> None:
    """Atomically replace ``path`` with ``content``.

    The bytes go to a sibling ``.tmp`` file under a portalocker lock and are
    then moved over the target.
    """
    path = Path(path)
    data = content.encode("utf-8", errors="surrogateescape")
    max_bytes = get_constant("MAX_FILE_BYTES")
    if max_bytes and len(data) > max_bytes:
        raise ToolError(f"Refusing to write {len(data)} bytes to {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    # Write bytes to avoid platform newline translation
    try:
        with portalocker.Lock(str(tmp), "wb", timeout=get_constant("LOCK_TIMEOUT")) as fp:
            fp.write(data)
    except portalocker.exceptions.LockException as exc:
        raise ToolError(f"Timed out waiting for write lock on {path}") from exc
    shutil.move(str(tmp), str(path))
    logger.info(f"Wrote {len(data)} bytes to {path}")


# ---------------------------------------------------------------------------
# Path validation
# ---------------------------------------------------------------------------


def resolve_path(path: str | Path, root: Optional[Path] = None) -> Path:
    root = Path(root if root is not None else get_constant("REPO_DIR")).resolve()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = root / p
    p = p.resolve()
    if p != root and root not in p.parents:
        raise ToolError(f"Access denied: {path} is outside the project root {root}")
    return p


def validate_path(command: str, path: str | Path, root: Optional[Path] = None) -> Path:
    """Resolve ``path`` for ``command`` or raise ``ToolError``."""
    resolved = resolve_path(path, root)
    if not resolved.exists():
        if command == "create":
            return resolved
        raise ToolError(f"The path {path} does not exist. Please provide a valid path.")
    if resolved.is_dir() and command != "view":
        raise ToolError(
            f"The path {path} is a directory and only the `view` command can be used on directories"
        )
    return resolved


def shorten_path(path: Path, root: Path) -> str:
    """Display ``path`` relative to ``root`` or the home directory when possible."""
    if path == root:
        return "."
    if root in path.parents:
        return str(path.relative_to(root))
    home = Path.home()
    if path == home:
        return "~"
    if home in path.parents:
        return "~/" + str(path.relative_to(home))
    return str(path)


# ---------------------------------------------------------------------------
# Per-path edit locks
# ---------------------------------------------------------------------------

_locks: Dict[Path, asyncio.Lock] = {}
_waiters: Dict[Path, int] = {}


@asynccontextmanager
async def file_lock(path: str | Path) -> AsyncIterator[None]:
    """Hold the edit lock for ``path``.

    Edits to the same resolved path run one at a time in arrival order;
    different paths do not block each other.
    """
    key = Path(path).resolve()
    lock = _locks.setdefault(key, asyncio.Lock())
    _waiters[key] = _waiters.get(key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _waiters[key] -= 1
        if _waiters[key] == 0:
            del _waiters[key]
            _locks.pop(key, None)


async def with_file_lock(path: str | Path, fn: Callable[[], Awaitable[T]]) -> T:
    async with file_lock(path):
        return await fn()


# ---------------------------------------------------------------------------
# Output formatting
# ---------------------------------------------------------------------------


def make_output(
    file_content: str,
    file_descriptor: str,
    init_line: int = 1,
    expand_tabs: bool = True,
) -> str:
    """Format ``file_content`` like ``cat -n`` starting at ``init_line``."""
    if expand_tabs:
        file_content = file_content.replace("\t", "    ")
    numbered = "\n".join(
        f"{i + init_line:6}\t{line}" for i, line in enumerate(file_content.split("\n"))
    )
    return f"Here's the result of running `cat -n` on {file_descriptor}:\n{numbered}\n"


def truncate_for_token_estimate(text: str, max_tokens: int, from_start: bool = False) -> str:
    """Cut ``text`` down to roughly ``max_tokens`` tokens.

    By default the head is kept; ``from_start=True`` keeps the tail instead.
    """
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(text) <= max_chars:
        return text
    omitted = len(text) - max_chars
    if from_start:
        return f"[... {omitted} characters truncated ...]\n" + text[-max_chars:]
    return text[:max_chars] + f"\n[... {omitted} characters truncated ...]"
