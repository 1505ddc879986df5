"""
流程文档解析器（导入/导出）

支持两种文档格式：
    version 1 导出格式：边通过 sourceIndex/targetIndex 引用节点数组下标，导入时生成新ID
    ID 格式：nodes[].id 与 edges[].source/target 直接引用节点ID
"""
import yaml
import json
from typing import Dict, Any, List, Optional, Union
from pathlib import Path
from uuid import uuid4

from ..models.flow import Flow, FlowNode, FlowEdge, FlowGraph, FlowStatus
from ..exceptions import FlowParseError


EXPORT_VERSION = 1


def _config_text(config: Any) -> Optional[str]:
    """节点配置可以是对象或 JSON 文本，统一存为文本"""
    if config is None:
        return None
    if isinstance(config, str):
        return config
    return json.dumps(config, ensure_ascii=False)


class FlowParser:
    """流程文档解析器"""

    def __init__(self):
        self.parsers = {
            'yaml': self._parse_yaml,
            'yml': self._parse_yaml,
            'json': self._parse_json
        }

    def parse(self, source: Union[str, Path, Dict[str, Any]], workspace_id: str = "") -> FlowGraph:
        """
        解析流程文档

        Args:
            source: 文件路径、YAML/JSON 字符串或字典
            workspace_id: 导入到的工作区

        Returns:
            FlowGraph: 解析后的流程图
        """
        if isinstance(source, dict):
            return self.parse_dict(source, workspace_id)

        if isinstance(source, Path):
            return self.parse_file(source, workspace_id)

        if isinstance(source, str):
            if "\n" not in source and len(source) < 4096:
                path = Path(source)
                if path.is_file():
                    return self.parse_file(path, workspace_id)
            return self.parse_string(source, workspace_id)

        raise FlowParseError(f"Unsupported source type: {type(source)}")

    def parse_file(self, file_path: Union[str, Path], workspace_id: str = "") -> FlowGraph:
        """解析流程文件"""
        file_path = Path(file_path)
        suffix = file_path.suffix.lower().lstrip('.')
        if suffix not in self.parsers:
            raise FlowParseError(f"Unsupported file format: {suffix}")

        try:
            content = file_path.read_text(encoding='utf-8')
        except OSError as e:
            raise FlowParseError(f"Cannot read {file_path}: {e}")

        return self.parse_dict(self.parsers[suffix](content), workspace_id)

    def parse_string(self, content: str, workspace_id: str = "") -> FlowGraph:
        """解析 YAML 或 JSON 字符串（JSON 是 YAML 的子集）"""
        return self.parse_dict(self._parse_yaml(content), workspace_id)

    def _parse_yaml(self, content: str) -> Dict[str, Any]:
        """解析YAML格式"""
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise FlowParseError(f"Failed to parse YAML: {e}")

    def _parse_json(self, content: str) -> Dict[str, Any]:
        """解析JSON格式"""
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise FlowParseError(f"Failed to parse JSON: {e}")

    def parse_dict(self, data: Any, workspace_id: str = "") -> FlowGraph:
        """解析字典格式的流程文档"""
        if not isinstance(data, dict):
            raise FlowParseError("Flow document must be an object")

        nodes_data = data.get('nodes')
        edges_data = data.get('edges', [])
        if not isinstance(nodes_data, list) or not isinstance(edges_data, list):
            raise FlowParseError("Flow document requires 'nodes' and 'edges' lists")

        flow = self._parse_flow(data, workspace_id)

        if data.get('version') is not None:
            if data.get('version') != EXPORT_VERSION:
                raise FlowParseError(f"Unsupported flow document version: {data.get('version')}")
            nodes = [self._parse_node(n, flow.id, str(uuid4())) for n in nodes_data]
            edges = [self._parse_indexed_edge(e, flow.id, nodes) for e in edges_data]
        else:
            nodes = [self._parse_node(n, flow.id, None) for n in nodes_data]
            edges = [self._parse_edge(e, flow.id) for e in edges_data]

        return FlowGraph(flow=flow, nodes=nodes, edges=edges)

    def _parse_flow(self, data: Dict[str, Any], workspace_id: str) -> Flow:
        flow_data = data.get('flow') or {}
        if not isinstance(flow_data, dict):
            raise FlowParseError("'flow' must be an object")

        status = flow_data.get('status') or FlowStatus.DRAFT.value
        if status not in {s.value for s in FlowStatus}:
            raise FlowParseError(f"Invalid flow status: {status}")

        return Flow(
            id=str(flow_data.get('id') or uuid4()),
            workspace_id=str(flow_data.get('workspaceId') or workspace_id),
            name=flow_data.get('name') or data.get('name') or "Untitled flow",
            description=flow_data.get('description'),
            status=status,
            trigger_config=_config_text(flow_data.get('triggerConfig'))
        )

    def _parse_node(self, node_data: Any, flow_id: str, node_id: Optional[str]) -> FlowNode:
        """解析节点"""
        if not isinstance(node_data, dict):
            raise FlowParseError("Each node must be an object")
        if not node_data.get('type'):
            raise FlowParseError("Node is missing 'type'")

        if node_id is None:
            node_id = node_data.get('id')
            if not node_id:
                raise FlowParseError("Node is missing 'id'")

        try:
            x = float(node_data.get('x') or 0)
            y = float(node_data.get('y') or 0)
        except (TypeError, ValueError):
            raise FlowParseError(f"Node {node_id} has an invalid position")

        return FlowNode(
            id=str(node_id),
            flow_id=flow_id,
            type=str(node_data['type']),
            label=node_data.get('label') or "",
            x=x,
            y=y,
            config=_config_text(node_data.get('config'))
        )

    def _parse_indexed_edge(self, edge_data: Any, flow_id: str, nodes: List[FlowNode]) -> FlowEdge:
        """解析按下标引用节点的边"""
        if not isinstance(edge_data, dict):
            raise FlowParseError("Each edge must be an object")

        endpoints = []
        for key in ('sourceIndex', 'targetIndex'):
            index = edge_data.get(key)
            if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(nodes):
                raise FlowParseError(f"Edge {key} out of range: {index}")
            endpoints.append(nodes[index].id)

        return FlowEdge(
            source_node_id=endpoints[0],
            target_node_id=endpoints[1],
            flow_id=flow_id,
            source_handle=edge_data.get('sourceHandle'),
            target_handle=edge_data.get('targetHandle'),
            label=edge_data.get('label')
        )

    def _parse_edge(self, edge_data: Any, flow_id: str) -> FlowEdge:
        """解析按ID引用节点的边"""
        if not isinstance(edge_data, dict):
            raise FlowParseError("Each edge must be an object")

        source = edge_data.get('source')
        target = edge_data.get('target')
        if not source or not target:
            raise FlowParseError("Edge requires 'source' and 'target'")

        return FlowEdge(
            id=str(edge_data.get('id') or uuid4()),
            source_node_id=str(source),
            target_node_id=str(target),
            flow_id=flow_id,
            source_handle=edge_data.get('sourceHandle'),
            target_handle=edge_data.get('targetHandle'),
            label=edge_data.get('label')
        )


def export_flow(graph: FlowGraph) -> str:
    """导出为 version 1 文档（JSON 文本）"""
    index = {node.id: position for position, node in enumerate(graph.nodes)}
    flow = graph.flow

    data = {
        "version": EXPORT_VERSION,
        "flow": {
            "name": flow.name,
            "description": flow.description,
            "status": flow.status,
            "triggerConfig": flow.trigger_config,
        },
        "nodes": [
            {
                "type": node.type,
                "label": node.label,
                "x": node.x,
                "y": node.y,
                "config": node.config,
            }
            for node in graph.nodes
        ],
        "edges": [
            {
                "sourceIndex": index.get(edge.source_node_id, 0),
                "targetIndex": index.get(edge.target_node_id, 0),
                "sourceHandle": edge.source_handle,
                "targetHandle": edge.target_handle,
                "label": edge.label,
            }
            for edge in graph.edges
        ],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)
