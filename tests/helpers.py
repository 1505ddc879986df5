"""
测试用的流程图构造函数
"""
import json
from typing import Any, Dict, List, Optional

from flow_runtime.models.flow import Flow, FlowNode, FlowEdge, FlowGraph


def trigger_node(node_id: str = "trigger", label: str = "Start", **config) -> FlowNode:
    return FlowNode(id=node_id, type="trigger", label=label, config=json.dumps(config or {"triggerType": "manual"}))


def action_node(
    node_id: str,
    action_type: Optional[str],
    params: Optional[Dict[str, Any]],
    label: str = ""
) -> FlowNode:
    config: Dict[str, Any] = {}
    if action_type is not None:
        config["actionType"] = action_type
    if params is not None:
        config["config"] = params
    return FlowNode(id=node_id, type="action", label=label, config=json.dumps(config))


def shell_node(node_id: str, command: str, label: str = "") -> FlowNode:
    return action_node(node_id, "shell.exec", {"command": command}, label=label)


def condition_node(node_id: str, condition: Any, label: str = "") -> FlowNode:
    return FlowNode(id=node_id, type="condition", label=label, config=json.dumps({"condition": condition}))


def compare(left: Any, operator: str, right: Any) -> Dict[str, Any]:
    """字面量比较"""
    return {
        "type": "compare",
        "left": {"type": "literal", "value": left},
        "operator": operator,
        "right": {"type": "literal", "value": right},
    }


def edge(source: str, target: str, label: Optional[str] = None, source_handle: Optional[str] = None) -> FlowEdge:
    return FlowEdge(
        id=f"{source}->{target}",
        source_node_id=source,
        target_node_id=target,
        label=label,
        source_handle=source_handle
    )


def make_graph(nodes: List[FlowNode], edges: List[FlowEdge], flow_id: str = "flow-1", **flow_fields) -> FlowGraph:
    flow = Flow(id=flow_id, name=flow_fields.pop("name", "Test flow"), **flow_fields)
    return FlowGraph(flow=flow, nodes=nodes, edges=edges)


def linear_graph(*nodes: FlowNode, flow_id: str = "flow-1") -> FlowGraph:
    """按给定顺序串联各节点"""
    edges = [edge(a.id, b.id) for a, b in zip(nodes, nodes[1:])]
    return make_graph(list(nodes), edges, flow_id=flow_id)
