"""Service layer for the shared execution engine."""

from agent_gateway.server.services.engine_service import (
    EngineCoordinator,
    ExecutionEngine,
    engine_factory,
)

__all__ = [
    "EngineCoordinator",
    "ExecutionEngine",
    "engine_factory",
]
