"""Tool definitions, registry, validation and execution.

The engine only ever talks to tools through these contracts: the
``ToolRegistry`` for lookup and gating flags, a ``ParameterValidator`` before
gated calls are shown to a human, and a ``ToolExecutor`` to run calls.
"""

from .base import ToolContext, ToolDefinition, ToolHandler, ValidationResult, coerce_result
from .executor import RegistryToolExecutor, ToolExecutor
from .registry import ToolRegistry, load_tool_modules
from .validation import ParameterValidator, SchemaParameterValidator

__all__ = [
    "ToolContext",
    "ToolDefinition",
    "ToolHandler",
    "ValidationResult",
    "coerce_result",
    "ToolRegistry",
    "load_tool_modules",
    "ParameterValidator",
    "SchemaParameterValidator",
    "ToolExecutor",
    "RegistryToolExecutor",
]
