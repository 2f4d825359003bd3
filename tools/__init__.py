from .base import BaseTool, ToolError, ToolResult
from .collection import ToolCollection

# EditTool and FileEditor are imported from their modules (tools.edit,
# tools.file_editor) since they depend on utils, which depends on tools.base.

__all__ = [
    "BaseTool",
    "ToolError",
    "ToolResult",
    "ToolCollection",
]
