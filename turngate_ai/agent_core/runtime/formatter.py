"""Human-readable summaries of tool results."""

from typing import Any, Optional

from ..tools.base import ToolDefinition


def format_tool_result(tool: Optional[ToolDefinition], data: Any) -> Optional[str]:
    """Summarize a successful tool result for the ``tool_call_end`` event.

    The tool's own ``summarize`` hook wins. Otherwise a ``message`` string in the
    data is used verbatim, then ``count``/``total`` style fields, then nothing.
    """
    if data is None:
        return None
    if tool is not None and tool.summarize is not None:
        summary = tool.summarize(data)
        if summary:
            return summary
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return None

    message = data.get("message")
    if isinstance(message, str) and message:
        return message
    for key in ("count", "total", "created_count", "updated", "deleted"):
        value = data.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return f"{value} item(s)"
    return None
