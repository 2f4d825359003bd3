import json
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    return Path(value).expanduser() if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logging.warning(f"Ignoring non-integer value for {name}: {value!r}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# --- Path Constants ---
TOP_LEVEL_DIR = Path.cwd()

# Project root: relative paths resolve against it and edits may not leave it
REPO_DIR = _env_path("FUZZEDIT_REPO_DIR", TOP_LEVEL_DIR)

LOGS_DIR = _env_path("FUZZEDIT_LOGS_DIR", TOP_LEVEL_DIR / "logs")
CACHE_DIR = _env_path("FUZZEDIT_CACHE_DIR", TOP_LEVEL_DIR / "cache")

# Log Files
LOG_FILE = LOGS_DIR / "file_log.json"  # For file operations audit
LOG_FILE_APP = LOGS_DIR / "app.log"
TOOL_LOG_FILE = LOGS_DIR / "tool.log"

# --- Logging Constants ---
LOG_LEVEL_CONSOLE = os.getenv("FUZZEDIT_LOG_LEVEL", "WARNING")
LOG_LEVEL_FILE = "DEBUG"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5

# --- Limits ---
MAX_FILE_BYTES = _env_int("FUZZEDIT_MAX_FILE_BYTES", 512 * 1024)
LOCK_TIMEOUT = _env_int("FUZZEDIT_LOCK_TIMEOUT", 5)
MAX_VIEW_TOKENS = _env_int("FUZZEDIT_MAX_VIEW_TOKENS", 2_000)

# --- Feature Flags ---
# Serialize create/insert through the same per-path lock as str_replace
LOCK_ALL_WRITES = _env_bool("FUZZEDIT_LOCK_ALL_WRITES", False)

CONSTANTS: Dict[str, Any] = {
    "TOP_LEVEL_DIR": TOP_LEVEL_DIR,
    "REPO_DIR": REPO_DIR,
    "LOGS_DIR": LOGS_DIR,
    "CACHE_DIR": CACHE_DIR,
    "LOG_FILE": LOG_FILE,
    "LOG_FILE_APP": LOG_FILE_APP,
    "TOOL_LOG_FILE": TOOL_LOG_FILE,
    "LOG_LEVEL_CONSOLE": LOG_LEVEL_CONSOLE,
    "LOG_LEVEL_FILE": LOG_LEVEL_FILE,
    "LOG_MAX_BYTES": LOG_MAX_BYTES,
    "LOG_BACKUP_COUNT": LOG_BACKUP_COUNT,
    "MAX_FILE_BYTES": MAX_FILE_BYTES,
    "LOCK_TIMEOUT": LOCK_TIMEOUT,
    "MAX_VIEW_TOKENS": MAX_VIEW_TOKENS,
    "LOCK_ALL_WRITES": LOCK_ALL_WRITES,
}

# Names set through set_constant(); only these are persisted
_OVERRIDDEN: set = set()


def _constants_file() -> Path:
    return Path(CONSTANTS["CACHE_DIR"]) / "constants.json"


def _is_path_name(name: str) -> bool:
    upper = name.upper()
    return ("PATH" in upper or "DIR" in upper or "FILE" in upper) and not any(
        x in upper for x in ["LEVEL", "BYTES", "COUNT", "LOCK"]
    )


def _load_overrides():
    """Merge constants persisted by a previous set_constant() call."""
    constants_file = _constants_file()
    if not constants_file.exists():
        return
    try:
        with open(constants_file, "r", encoding="utf-8") as f:
            persisted = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.warning(f"Could not read persisted constants from {constants_file}: {e}")
        return
    for name, value in persisted.items():
        if isinstance(value, str) and _is_path_name(name):
            value = Path(value)
        CONSTANTS[name] = value
        _OVERRIDDEN.add(name)


# --- Constants Management ---

def write_constants_to_file():
    """Writes the overridden constants to the JSON cache file."""
    exportable = {
        name: str(CONSTANTS[name]) if isinstance(CONSTANTS[name], Path) else CONSTANTS[name]
        for name in sorted(_OVERRIDDEN)
    }
    constants_file = _constants_file()
    constants_file.parent.mkdir(parents=True, exist_ok=True)
    with open(constants_file, "w", encoding="utf-8") as f:
        json.dump(exportable, f, indent=4)


def get_constants() -> Dict[str, Any]:
    return dict(CONSTANTS)


def get_constant(name: str, default: Any = None) -> Any:
    value = CONSTANTS.get(name, default)

    # Convert path strings to Path objects if applicable
    if value is not None and isinstance(value, str) and _is_path_name(name):
        return Path(value)
    return value


def set_constant(name: str, value: Any):
    CONSTANTS[name] = value
    _OVERRIDDEN.add(name)

    # Update global variable if it exists
    if name in globals():
        globals()[name] = value

    write_constants_to_file()
    logging.info(f"Constant '{name}' set to '{value}' and persisted.")
    return True


# --- Logging Setup ---

_LOGGING_CONFIGURED = False


def setup_logging(console_level: str | None = None):
    """Set up logging for the application. Later calls are no-ops."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return
    _LOGGING_CONFIGURED = True

    from icecream import ic
    from loguru import logger as loguru_logger
    from rich.logging import RichHandler

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s"
    )

    # File Handler
    log_file_path = Path(get_constant("LOG_FILE_APP"))
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path,
        maxBytes=get_constant("LOG_MAX_BYTES"),
        backupCount=get_constant("LOG_BACKUP_COUNT"),
        encoding="utf-8",
    )
    file_level = getattr(logging, str(get_constant("LOG_LEVEL_FILE")).upper(), logging.DEBUG)
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Console Handler
    level_name = (console_level or get_constant("LOG_LEVEL_CONSOLE")).upper()
    console_handler = RichHandler(show_path=False, rich_tracebacks=True)
    console_handler.setLevel(getattr(logging, level_name, logging.WARNING))
    logger.addHandler(console_handler)

    # Suppress verbose logs
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("portalocker").setLevel(logging.WARNING)

    # icecream traces go to the debug log instead of stderr
    ic.configureOutput(
        includeContext=True, outputFunction=logging.getLogger("icecream").debug
    )

    # Tool dispatch log (loguru)
    loguru_logger.remove()
    loguru_logger.add(sys.stderr, level=level_name)
    loguru_logger.add(
        str(get_constant("TOOL_LOG_FILE")),
        rotation="500 KB",
        level="DEBUG",
        filter=lambda record: record["extra"].get("name") == "tool",
        format="{time:YYYY-MM-DD HH:mm} | {level: <8} | {module}.{function}:{line} - {message}",
    )

    logging.info("Logging setup complete.")


_load_overrides()
