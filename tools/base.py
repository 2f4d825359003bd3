"""Types shared by every tool: the call result, the tool error and the tool base class."""

from abc import ABCMeta, abstractmethod
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from icecream import ic


@dataclass(kw_only=True, frozen=True)
class ToolResult:
    """
    Outcome of one tool call.

    Attributes:
        output: Text handed back to the model
        error: Set when the call failed, including edits the editor declined
        system: Optional note for the host rather than the model
        tool_name: Name of the tool that ran
        command: Command the tool ran
    """

    output: Optional[str] = None
    error: Optional[str] = None
    system: Optional[str] = None
    tool_name: Optional[str] = None
    command: Optional[str] = None

    @classmethod
    def failure(
        cls,
        error: str,
        *,
        output: Optional[str] = None,
        tool_name: Optional[str] = None,
        command: Optional[str] = None,
    ) -> "ToolResult":
        return cls(output=output, error=error, tool_name=tool_name, command=command)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def __bool__(self):
        return any(getattr(self, f.name) for f in fields(self))

    def with_defaults(self, *, tool_name: str, command: str) -> "ToolResult":
        """Fill in ``tool_name`` and ``command`` when the tool left them empty."""
        if self.tool_name is not None and self.command is not None:
            return self
        return replace(self, tool_name=self.tool_name or tool_name, command=self.command or command)


class ToolError(Exception):
    """A tool call was rejected: bad path, oversized file, lock timeout, bad arguments."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self):
        return self.message


class BaseTool(metaclass=ABCMeta):
    """A callable tool described to the model by a JSON-schema function definition."""

    api_type: str = "custom"

    def __init__(self, input_schema: Optional[Dict[str, Any]] = None):
        self.input_schema = input_schema or {"type": "object", "properties": {}, "required": []}

    @property
    @abstractmethod
    def name(self) -> str:
        """Name the model calls the tool by."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Description shown to the model."""

    @abstractmethod
    async def __call__(self, **kwargs) -> ToolResult:
        """Run the tool with the model's arguments."""

    def to_params(self) -> Dict[str, Any]:
        """OpenAI-style function-calling definition."""
        params = {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }
        ic(self.name, sorted(self.input_schema.get("properties", {})))
        return params
