import datetime
import hashlib
import json
import logging
import mimetypes
from pathlib import Path
from typing import Optional

from config import get_constant

logger = logging.getLogger(__name__)


def _load_log(log_file: Path) -> dict:
    if not log_file.exists():
        return {"files": {}}
    try:
        with open(log_file, "r", encoding="utf-8") as f:
            log_data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Resetting unreadable file log {log_file}: {e}")
        return {"files": {}}
    if not isinstance(log_data, dict) or "files" not in log_data:
        return {"files": {}}
    return log_data


def log_file_operation(
    file_path: Path,
    operation: str,
    content: Optional[str] = None,
    metadata: Optional[dict] = None,
):
    """
    Record a file operation (create, insert, str_replace) in the JSON audit log.

    Args:
        file_path: Path to the file
        operation: Type of operation
        content: Content written, used for the size/hash fields; read from disk when omitted
        metadata: Optional extra fields merged into the file's metadata (e.g. the matching tier)

    Failures are logged and swallowed: the audit log must never break an edit.
    """
    metadata = metadata or {}
    file_path = Path(file_path)
    file_path_str = str(file_path)
    log_file = Path(get_constant("LOG_FILE"))

    timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    extension = file_path.suffix.lower() if file_path.suffix else ""

    try:
        log_data = _load_log(log_file)
        entry = log_data["files"].setdefault(
            file_path_str,
            {
                "operations": [],
                "metadata": {},
                "extension": extension,
                "mime_type": mimetypes.guess_type(file_path_str)[0],
            },
        )
        entry["operations"].append({"timestamp": timestamp, "operation": operation})
        entry["metadata"].update(metadata)

        if content is None and file_path.is_file():
            content = file_path.read_text(encoding="utf-8", errors="surrogateescape")
        if content is not None:
            encoded = content.encode("utf-8", errors="surrogateescape")
            entry["size"] = len(encoded)
            entry["line_count"] = len(content.split("\n"))
            entry["sha256"] = hashlib.sha256(encoded).hexdigest()

        entry["last_updated"] = timestamp

        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2)
    except OSError as e:
        logger.error(f"Error writing to log file {log_file}: {e}", exc_info=True)


def file_history(file_path: Path) -> list:
    """Return the logged operations for ``file_path`` (oldest first)."""
    log_data = _load_log(Path(get_constant("LOG_FILE")))
    entry = log_data["files"].get(str(Path(file_path)), {})
    return list(entry.get("operations", []))
