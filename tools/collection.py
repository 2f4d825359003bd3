"""Name-based dispatch of tool calls."""

import json
from typing import Any, Dict, Iterator, List

from icecream import ic
from loguru import logger

from .base import BaseTool, ToolResult


class ToolCollection:
    """The tools exposed to the model, looked up by name."""

    def __init__(self, *tools: BaseTool):
        self.t_log = logger.bind(name="tool")
        self.tools: Dict[str, BaseTool] = {tool.name: tool for tool in tools}

    def __contains__(self, name: str) -> bool:
        return name in self.tools

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self.tools.values())

    def to_params(self) -> List[Dict[str, Any]]:
        """Function definitions for every tool, in registration order."""
        params = [tool.to_params() for tool in self]
        ic(len(params))
        return params

    async def run(self, name: str, tool_input: Dict[str, Any]) -> ToolResult:
        """
        Call tool ``name`` with the model's arguments.

        Never raises: an unknown name, an exception from the tool, or a
        missing result all come back as a failed ``ToolResult``.
        """
        command = str(tool_input.get("command", "unknown"))
        tool = self.tools.get(name)
        if tool is None:
            known = ", ".join(self.tools) or "none"
            return ToolResult.failure(
                f"Tool '{name}' not found. Available tools: {known}",
                tool_name=name,
                command=command,
            )

        self.t_log.debug(f"{name} <- {json.dumps(tool_input, default=str)}")
        try:
            result = await tool(**tool_input)
        except Exception as e:
            self.t_log.exception(f"{name} raised while running {command}")
            return ToolResult.failure(f"Error executing tool '{name}': {e}", tool_name=name, command=command)

        if result is None:
            return ToolResult.failure("Tool execution returned None", tool_name=name, command=command)

        result = result.with_defaults(tool_name=name, command=command)
        self.t_log.debug(f"{name} -> {'failed' if result.failed else 'ok'}")
        return result
