"""
流程验证器

对流程图做结构与语义校验，所有错误累积返回，从不抛出异常。
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..models.flow import (
    FlowNode, FlowEdge, NodeType, ValidationError, ValidationResult,
    ActionConfig, ConditionConfig, parse_node_config
)


logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    """缺失、空串、False 或 0 视为未配置"""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


def _is_blank_text(value: Any) -> bool:
    return _is_blank(value) or (isinstance(value, str) and not value.strip())


def validate_flow(nodes: Iterable[FlowNode], edges: Iterable[FlowEdge]) -> ValidationResult:
    """验证流程图，返回全部错误"""
    nodes = list(nodes)
    edges = list(edges)
    errors: List[ValidationError] = []

    if not nodes:
        errors.append(ValidationError("Flow has no nodes"))
        return ValidationResult(valid=False, errors=errors)

    node_ids = {node.id for node in nodes}
    triggers = [node for node in nodes if node.type == NodeType.TRIGGER.value]
    non_triggers = [node for node in nodes if node.type != NodeType.TRIGGER.value]

    # 触发节点数量
    if not triggers:
        errors.append(ValidationError("Flow must have a trigger node"))
    else:
        for extra in triggers[1:]:
            errors.append(ValidationError(
                f'Multiple trigger nodes found, only one is allowed ("{extra.display_name}")',
                node_id=extra.id
            ))

    # 触发节点必须有出边
    sources = {edge.source_node_id for edge in edges}
    for trigger in triggers:
        if trigger.id not in sources:
            errors.append(ValidationError(
                "Trigger node has no outgoing connections", node_id=trigger.id
            ))

    if not non_triggers:
        errors.append(ValidationError("Flow must have at least one action or condition node"))

    # 孤立节点
    targets = {edge.target_node_id for edge in edges}
    for node in non_triggers:
        if node.id not in targets:
            errors.append(ValidationError(
                f'Node "{node.display_name}" is not connected to the flow', node_id=node.id
            ))

    for edge in edges:
        for endpoint in (edge.source_node_id, edge.target_node_id):
            if endpoint not in node_ids:
                errors.append(ValidationError(
                    f'Edge "{edge.id}" references unknown node "{endpoint}"'
                ))

    if has_cycle([node.id for node in nodes], edges):
        errors.append(ValidationError("Flow contains a cycle"))

    # 节点配置
    for node in nodes:
        config = parse_node_config(node)
        if isinstance(config, ActionConfig):
            messages = _validate_action(node, config)
        elif isinstance(config, ConditionConfig):
            messages = validate_condition_config(config.condition)
        else:
            messages = []
        errors.extend(ValidationError(message, node_id=node.id) for message in messages)

    if errors:
        logger.debug(f"Flow validation produced {len(errors)} error(s)")
    return ValidationResult(valid=not errors, errors=errors)


def has_cycle(node_ids: Iterable[str], edges: Iterable[FlowEdge]) -> bool:
    """迭代式深度优先搜索，遇到回边（含自环）即判定有环"""
    adjacency: Dict[str, List[str]] = {}
    for node_id in node_ids:
        adjacency.setdefault(node_id, [])
    for edge in edges:
        adjacency.setdefault(edge.source_node_id, []).append(edge.target_node_id)
        adjacency.setdefault(edge.target_node_id, [])

    visited = set()
    on_stack = set()

    for root in adjacency:
        if root in visited:
            continue
        visited.add(root)
        on_stack.add(root)
        stack = [(root, iter(adjacency[root]))]
        while stack:
            node_id, neighbours = stack[-1]
            advanced = False
            for neighbour in neighbours:
                if neighbour in on_stack:
                    return True
                if neighbour not in visited:
                    visited.add(neighbour)
                    on_stack.add(neighbour)
                    stack.append((neighbour, iter(adjacency[neighbour])))
                    advanced = True
                    break
            if not advanced:
                on_stack.discard(node_id)
                stack.pop()

    return False


def _validate_action(node: FlowNode, config: ActionConfig) -> List[str]:
    if not config.action_type:
        return [f'Action node "{node.label or "Untitled"}" has no action type configured']

    return validate_action_params(config.action_type, config.params)


def validate_action_params(action_type: str, params: Optional[Dict[str, Any]]) -> List[str]:
    """按动作类型检查必填参数；未知动作类型不做检查"""
    if params is None:
        return [f'Action "{action_type}" has no configuration']

    errors = []
    if action_type == "shell.exec":
        if _is_blank_text(params.get("command")):
            errors.append("Shell action requires a command")
    elif action_type == "http.request":
        if _is_blank_text(params.get("url")):
            errors.append("HTTP action requires a URL")
        if _is_blank(params.get("method")):
            errors.append("HTTP action requires a method")
    elif action_type == "file.read":
        if _is_blank_text(params.get("path")):
            errors.append("File read action requires a path")

    return errors


def validate_condition_config(condition: Any) -> List[str]:
    """递归检查条件树结构，子条件的错误原样上抛"""
    if _is_blank(condition):
        return ["Condition node has no condition configured"]

    kind = condition.get("type") if isinstance(condition, dict) else None
    errors = []

    if kind == "compare":
        if _is_blank(condition.get("left")):
            errors.append("Condition is missing left value")
        if _is_blank(condition.get("operator")):
            errors.append("Condition is missing operator")
        if _is_blank(condition.get("right")):
            errors.append("Condition is missing right value")
    elif kind in ("and", "or"):
        conditions = condition.get("conditions")
        if not isinstance(conditions, list) or not conditions:
            errors.append(f"Compound {kind.upper()} condition has no sub-conditions")
        else:
            for sub in conditions:
                errors.extend(validate_condition_config(sub))
    else:
        errors.append("Condition has invalid type")

    return errors
