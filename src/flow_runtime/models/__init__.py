"""Flow graph, condition and execution models"""

from .flow import (
    Flow, FlowNode, FlowEdge, FlowGraph, NodeType, FlowStatus, TriggerType,
    ValidationError, ValidationResult, TriggerConfig, ActionConfig,
    ConditionConfig, UnknownNodeConfig, parse_config_json, parse_node_config
)
from .condition import (
    CompareOperator, LiteralRef, ContextRef, NodeRef, CompareCondition,
    AndCondition, OrCondition, parse_condition, dump_condition
)
from .execution import (
    Execution, ExecutionStep, ExecutionContext, ExecutionStatus, StepStatus
)

__all__ = [
    "Flow",
    "FlowNode",
    "FlowEdge",
    "FlowGraph",
    "NodeType",
    "FlowStatus",
    "TriggerType",
    "ValidationError",
    "ValidationResult",
    "TriggerConfig",
    "ActionConfig",
    "ConditionConfig",
    "UnknownNodeConfig",
    "parse_config_json",
    "parse_node_config",
    "CompareOperator",
    "LiteralRef",
    "ContextRef",
    "NodeRef",
    "CompareCondition",
    "AndCondition",
    "OrCondition",
    "parse_condition",
    "dump_condition",
    "Execution",
    "ExecutionStep",
    "ExecutionContext",
    "ExecutionStatus",
    "StepStatus"
]
