"""
流程图模型定义
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Any, Optional, Union
from uuid import uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeType(Enum):
    """节点类型（可扩展，未知类型按字符串保留）"""
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"


class FlowStatus(Enum):
    """流程生命周期状态"""
    DRAFT = "draft"
    ACTIVE = "active"
    DISABLED = "disabled"


class TriggerType(Enum):
    """触发方式"""
    MANUAL = "manual"
    SCHEDULE = "schedule"


@dataclass
class Flow:
    """流程定义"""
    id: str = field(default_factory=lambda: str(uuid4()))
    workspace_id: str = ""
    name: str = ""
    description: Optional[str] = ""
    status: str = FlowStatus.DRAFT.value
    trigger_config: Optional[str] = "{}"
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class FlowNode:
    """流程节点，config 为 JSON 文本，结构取决于 type"""
    id: str
    flow_id: str = ""
    type: str = NodeType.ACTION.value
    label: str = ""
    x: float = 0.0
    y: float = 0.0
    config: Optional[str] = "{}"
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        """优先使用标签，否则使用类型名"""
        return self.label or self.type


@dataclass(frozen=True)
class FlowEdge:
    """流程边"""
    source_node_id: str
    target_node_id: str
    id: str = field(default_factory=lambda: str(uuid4()))
    flow_id: str = ""
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    label: Optional[str] = ""
    created_at: datetime = field(default_factory=utcnow)

    @property
    def branch(self) -> Optional[str]:
        """条件分支标识：优先取 label，其次取 source handle"""
        return self.label or self.source_handle or None


@dataclass
class ValidationError:
    """验证错误"""
    message: str
    node_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"message": self.message}
        if self.node_id is not None:
            data["nodeId"] = self.node_id
        return data


@dataclass
class ValidationResult:
    """验证结果"""
    valid: bool
    errors: List[ValidationError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [error.to_dict() for error in self.errors]
        }


@dataclass(frozen=True)
class FlowGraph:
    """一次运行所依赖的不可变流程快照"""
    flow: Flow
    nodes: tuple = ()
    edges: tuple = ()

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        """根据ID获取节点"""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def trigger_nodes(self) -> List[FlowNode]:
        return [node for node in self.nodes if node.type == NodeType.TRIGGER.value]

    def outgoing_edges(self, node_id: str) -> List[FlowEdge]:
        """获取节点的出边（保持边的原始顺序）"""
        return [edge for edge in self.edges if edge.source_node_id == node_id]

    def incoming_edges(self, node_id: str) -> List[FlowEdge]:
        """获取节点的入边"""
        return [edge for edge in self.edges if edge.target_node_id == node_id]


# 节点配置：按节点类型解析为封闭的变体类型

@dataclass
class TriggerConfig:
    """触发节点配置"""
    trigger_type: str = TriggerType.MANUAL.value
    schedule: Optional[Dict[str, Any]] = None


@dataclass
class ActionConfig:
    """动作节点配置；params 为 None 表示缺少整个配置对象"""
    action_type: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


@dataclass
class ConditionConfig:
    """条件节点配置（原始条件树，未经校验）"""
    condition: Any = None


@dataclass
class UnknownNodeConfig:
    """未知节点类型的原始配置"""
    raw: Dict[str, Any] = field(default_factory=dict)


NodeConfig = Union[TriggerConfig, ActionConfig, ConditionConfig, UnknownNodeConfig]


def parse_config_json(config: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
    """解析节点配置 JSON；空值、非法 JSON 或非对象一律视为空对象"""
    if not config:
        return {}
    if isinstance(config, dict):
        return config
    try:
        data = json.loads(config)
    except (TypeError, ValueError, RecursionError):
        return {}
    return data if isinstance(data, dict) else {}


def parse_node_config(node: FlowNode) -> NodeConfig:
    """将节点配置解析为对应的变体类型"""
    raw = parse_config_json(node.config)

    if node.type == NodeType.TRIGGER.value:
        schedule = raw.get("schedule")
        return TriggerConfig(
            trigger_type=raw.get("triggerType") or TriggerType.MANUAL.value,
            schedule=schedule if isinstance(schedule, dict) else None
        )

    if node.type == NodeType.ACTION.value:
        action_type = raw.get("actionType")
        params = raw.get("config")
        return ActionConfig(
            action_type=action_type if isinstance(action_type, str) and action_type else None,
            params=params if isinstance(params, dict) else None
        )

    if node.type == NodeType.CONDITION.value:
        return ConditionConfig(condition=raw.get("condition"))

    return UnknownNodeConfig(raw=raw)
