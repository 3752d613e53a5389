"""Agent core: the approval-gated execution engine and its collaborator contracts.

Subpackages
-----------

- ``schemas``: pydantic domain models and streamed event types.
- ``repos``: persistence Protocols and the async SQLAlchemy implementation.
- ``tools``: tool definitions, registry, parameter validation and execution.
- ``credits``: the credit gate consulted before approved batches run.
- ``providers``: model provider adapters.
- ``runtime``: the LangGraph execution loop, approval resolution, ordering
  repair and stream accumulation.
"""

from .errors import AgentEngineError
from .runtime import AgentEngine, EngineConfig, EngineDeps

__all__ = ["AgentEngine", "AgentEngineError", "EngineConfig", "EngineDeps"]
