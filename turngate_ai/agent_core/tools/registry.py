from __future__ import annotations

"""Tool registry.

The registry maps a tool name to its ``ToolDefinition``. The engine uses it to

- render the tool schema sent to the provider on every iteration,
- reject tool calls naming unknown tools,
- decide which calls are gated behind human approval.
"""

import importlib
import logging
from typing import Any, Dict, Iterable, Optional

from .base import ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    In-memory mapping of tool names to definitions.

    Notes:
        - ``register`` refuses to overwrite an existing name.
        - ``lookup`` returns None for unknown names; ``get`` raises ``KeyError``.
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool definition.

        Args:
            tool: The definition to add.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def lookup(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def get(self, name: str) -> ToolDefinition:
        return self._tools[name]

    def has(self, name: str) -> bool:
        return name in self._tools

    def needs_confirmation(self, name: str) -> bool:
        """Whether calls to ``name`` must wait for a human decision. Unknown tools are not gated."""
        tool = self._tools.get(name)
        return bool(tool and tool.needs_confirmation)

    def display_name(self, name: str) -> str:
        tool = self._tools.get(name)
        return tool.display_name if tool else name

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        """Return the provider-facing function schemas of all registered tools."""
        return [t.function_schema() for t in self._tools.values()]


def load_tool_modules(registry: ToolRegistry, modules: Iterable[str]) -> None:
    """
    Import tool modules and let each register its tools.

    Args:
        registry: The registry to populate.
        modules: Dotted module paths. Each module must define ``register_tools(registry)``.

    Raises:
        ValueError: If a module has no ``register_tools`` function.
    """
    for dotted in modules:
        module = importlib.import_module(dotted)
        register = getattr(module, "register_tools", None)
        if register is None:
            raise ValueError(f"Tool module {dotted} does not define register_tools(registry)")
        register(registry)
        logger.info("Loaded tools from %s", dotted)
