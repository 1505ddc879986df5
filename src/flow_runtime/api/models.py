"""
API 请求和响应模型
"""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from enum import Enum

from ..models.flow import Flow, FlowGraph, FlowNode, FlowEdge, ValidationResult
from ..models.execution import Execution, ExecutionStep


class ApiModel(BaseModel):
    """JSON 字段使用 camelCase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FlowStatusEnum(str, Enum):
    """流程状态枚举（API）"""
    DRAFT = "draft"
    ACTIVE = "active"
    DISABLED = "disabled"


class TriggerTypeEnum(str, Enum):
    """触发方式枚举（API）"""
    MANUAL = "manual"
    SCHEDULE = "schedule"


# 流程相关模型

class NodeDefinition(ApiModel):
    """节点定义"""
    id: str = Field(..., description="节点ID（流程内唯一）")
    type: str = Field(..., description="节点类型：trigger / action / condition")
    label: str = Field("", description="显示名称")
    x: float = Field(0.0, description="画布横坐标")
    y: float = Field(0.0, description="画布纵坐标")
    config: Union[Dict[str, Any], str, None] = Field(None, description="节点配置（对象或 JSON 文本）")


class EdgeDefinition(ApiModel):
    """边定义"""
    id: Optional[str] = Field(None, description="边ID，缺省自动生成")
    source: str = Field(..., description="源节点ID")
    target: str = Field(..., description="目标节点ID")
    source_handle: Optional[str] = Field(None, description="源连接点（条件分支 true/false）")
    target_handle: Optional[str] = Field(None, description="目标连接点")
    label: Optional[str] = Field(None, description="边标签（条件分支 true/false）")


class FlowCreateRequest(ApiModel):
    """创建流程请求"""
    name: str = Field(..., description="流程名称")
    description: Optional[str] = Field(None, description="描述")
    workspace_id: str = Field("", description="工作区ID")
    status: FlowStatusEnum = Field(FlowStatusEnum.DRAFT, description="生命周期状态")
    trigger_config: Union[Dict[str, Any], str, None] = Field(None, description="触发配置")
    nodes: List[NodeDefinition] = Field(default_factory=list, description="节点列表")
    edges: List[EdgeDefinition] = Field(default_factory=list, description="边列表")

    def to_document(self) -> Dict[str, Any]:
        """转为按 ID 引用的流程文档"""
        return {
            "flow": {
                "name": self.name,
                "description": self.description,
                "workspaceId": self.workspace_id,
                "status": self.status.value,
                "triggerConfig": self.trigger_config,
            },
            "nodes": [node.model_dump() for node in self.nodes],
            "edges": [edge.model_dump(by_alias=True) for edge in self.edges],
        }


class FlowResponse(ApiModel):
    """流程响应"""
    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    status: str
    trigger_config: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_flow(cls, flow: Flow) -> "FlowResponse":
        return cls(
            id=flow.id,
            workspace_id=flow.workspace_id,
            name=flow.name,
            description=flow.description,
            status=flow.status,
            trigger_config=flow.trigger_config,
            created_at=flow.created_at,
            updated_at=flow.updated_at
        )


class NodeResponse(ApiModel):
    """节点响应"""
    id: str
    type: str
    label: str
    x: float
    y: float
    config: Optional[str] = None

    @classmethod
    def from_node(cls, node: FlowNode) -> "NodeResponse":
        return cls(id=node.id, type=node.type, label=node.label, x=node.x, y=node.y, config=node.config)


class EdgeResponse(ApiModel):
    """边响应"""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def from_edge(cls, edge: FlowEdge) -> "EdgeResponse":
        return cls(
            id=edge.id,
            source=edge.source_node_id,
            target=edge.target_node_id,
            source_handle=edge.source_handle,
            target_handle=edge.target_handle,
            label=edge.label
        )


class FlowDetailResponse(FlowResponse):
    """流程详情响应（含节点和边）"""
    nodes: List[NodeResponse] = Field(default_factory=list)
    edges: List[EdgeResponse] = Field(default_factory=list)

    @classmethod
    def from_graph(cls, graph: FlowGraph) -> "FlowDetailResponse":
        base = FlowResponse.from_flow(graph.flow)
        return cls(
            **base.model_dump(),
            nodes=[NodeResponse.from_node(node) for node in graph.nodes],
            edges=[EdgeResponse.from_edge(edge) for edge in graph.edges]
        )


class ValidationErrorItem(ApiModel):
    """验证错误项"""
    message: str
    node_id: Optional[str] = None


class ValidationResponse(ApiModel):
    """验证结果响应"""
    valid: bool
    errors: List[ValidationErrorItem] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationResponse":
        return cls(
            valid=result.valid,
            errors=[ValidationErrorItem(message=e.message, node_id=e.node_id) for e in result.errors]
        )


# 执行相关模型

class RunRequest(ApiModel):
    """运行流程请求"""
    trigger_type: TriggerTypeEnum = Field(TriggerTypeEnum.MANUAL, description="触发方式")
    payload: Optional[Any] = Field(None, description="触发数据，可通过 {{trigger.payload.x}} 引用")
    wait: bool = Field(False, description="是否等待执行结束后再返回")


class RunResponse(ApiModel):
    """运行流程响应"""
    execution_id: str


class StepResponse(ApiModel):
    """执行步骤响应"""
    id: str
    execution_id: str
    node_id: str
    status: str
    input: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    @classmethod
    def from_step(cls, step: ExecutionStep) -> "StepResponse":
        return cls(
            id=step.id,
            execution_id=step.execution_id,
            node_id=step.node_id,
            status=step.status.value,
            input=step.input,
            output=step.output,
            error=step.error,
            started_at=step.started_at,
            completed_at=step.completed_at,
            duration_ms=step.duration_ms
        )


class ExecutionResponse(ApiModel):
    """执行实例响应"""
    id: str
    flow_id: str
    status: str
    trigger_type: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_execution(cls, execution: Execution) -> "ExecutionResponse":
        return cls(
            id=execution.id,
            flow_id=execution.flow_id,
            status=execution.status.value,
            trigger_type=execution.trigger_type,
            started_at=execution.started_at,
            completed_at=execution.completed_at,
            error=execution.error,
            created_at=execution.created_at
        )


class ExecutionDetailResponse(ExecutionResponse):
    """执行详情响应（含步骤）"""
    steps: List[StepResponse] = Field(default_factory=list)


class CancelResponse(ApiModel):
    """取消执行响应"""
    execution_id: str
    cancelled: bool


class ErrorResponse(ApiModel):
    """错误响应"""
    error: str
    message: str
    details: Optional[Any] = None
