from __future__ import annotations

"""Pre-execution parameter validation.

Validation runs before any gated tool call is shown to a human. A failure is
not an error of the turn: the engine feeds the validation errors back to the
model as a failed tool result so it can correct itself on the next iteration.
"""

import json
import logging
from typing import Protocol

from pydantic import ValidationError

from .base import ValidationResult
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class ParameterValidator(Protocol):
    async def validate(self, name: str, arguments: str) -> ValidationResult:
        """
        Validate the raw JSON arguments of a tool call.

        Args:
            name: The tool name.
            arguments: The raw JSON arguments text.

        Returns:
            The validation outcome with errors and warnings.
        """
        ...


def _format_pydantic_errors(exc: ValidationError) -> list[str]:
    out: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        out.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return out


class SchemaParameterValidator:
    """Validate arguments against each tool's pydantic parameters model.

    Steps:

    1. Parse the arguments as a JSON object.
    2. Validate against ``ToolDefinition.parameters``.
    3. Run the tool's optional ``check`` hook on the parsed model for rules a
       schema cannot express.

    Tools unknown to the registry pass; the engine rejects them separately.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def validate(self, name: str, arguments: str) -> ValidationResult:
        tool = self._registry.lookup(name)
        if tool is None:
            logger.warning("Skipping validation for unknown tool %s", name)
            return ValidationResult.ok()

        try:
            raw = json.loads(arguments or "{}")
        except json.JSONDecodeError as exc:
            return ValidationResult.failed(f"Failed to parse arguments: {exc.msg}")
        if not isinstance(raw, dict):
            return ValidationResult.failed("Arguments must be a JSON object")

        try:
            params = tool.parameters.model_validate(raw)
        except ValidationError as exc:
            return ValidationResult(valid=False, errors=_format_pydantic_errors(exc))

        if tool.check is None:
            return ValidationResult.ok()
        return tool.check(params)
