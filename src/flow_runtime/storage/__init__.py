"""Storage and repository interfaces"""

from .repository import (
    FlowRepository,
    ExecutionRepository,
    InMemoryFlowRepository,
    InMemoryExecutionRepository
)
from .sqlalchemy_repository import (
    DatabaseManager,
    SQLAlchemyFlowRepository,
    SQLAlchemyExecutionRepository
)

__all__ = [
    "FlowRepository",
    "ExecutionRepository",
    "InMemoryFlowRepository",
    "InMemoryExecutionRepository",
    "DatabaseManager",
    "SQLAlchemyFlowRepository",
    "SQLAlchemyExecutionRepository"
]
