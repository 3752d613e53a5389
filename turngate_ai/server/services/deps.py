"""
Orchestrator Dependency.

Provides the process-wide OrchestratorService to API endpoints.
"""

from typing import Annotated

from fastapi import Depends

from turngate_ai.server.services.orchestrator import (
    OrchestratorService,
    get_orchestrator,
)

OrchestratorDep = Annotated[OrchestratorService, Depends(get_orchestrator)]
