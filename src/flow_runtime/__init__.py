"""
Flow Runtime - 可视化自动化流程运行时
"""

__version__ = "0.1.0"

from .core.engine import FlowEngine
from .core.scheduler import ExecutionScheduler, CancellationToken
from .core.parser import FlowParser, export_flow
from .core.validator import validate_flow
from .models.flow import Flow, FlowNode, FlowEdge, FlowGraph
from .models.execution import Execution, ExecutionStep

__all__ = [
    "FlowEngine",
    "ExecutionScheduler",
    "CancellationToken",
    "FlowParser",
    "export_flow",
    "validate_flow",
    "Flow",
    "FlowNode",
    "FlowEdge",
    "FlowGraph",
    "Execution",
    "ExecutionStep"
]
