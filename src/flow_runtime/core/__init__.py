"""Core flow runtime components"""

from .validator import validate_flow, has_cycle
from .condition import ConditionEvaluator, evaluate_condition, compare_values
from .interpolation import interpolate_config, interpolate_template
from .scheduler import ExecutionScheduler, CancellationToken, topological_order
from .engine import FlowEngine
from .parser import FlowParser, export_flow
from .trigger_scheduler import TriggerScheduler

__all__ = [
    "validate_flow",
    "has_cycle",
    "ConditionEvaluator",
    "evaluate_condition",
    "compare_values",
    "interpolate_config",
    "interpolate_template",
    "ExecutionScheduler",
    "CancellationToken",
    "topological_order",
    "FlowEngine",
    "FlowParser",
    "export_flow",
    "TriggerScheduler"
]
