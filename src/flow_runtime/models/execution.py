"""
流程执行模型
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional
from uuid import uuid4

from .flow import utcnow


class ExecutionStatus(Enum):
    """流程执行状态"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepStatus(Enum):
    """步骤执行状态"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


TERMINAL_EXECUTION_STATUSES = (
    ExecutionStatus.SUCCESS,
    ExecutionStatus.FAILED,
    ExecutionStatus.CANCELLED,
)

TERMINAL_STEP_STATUSES = (
    StepStatus.SUCCESS,
    StepStatus.ERROR,
    StepStatus.SKIPPED,
)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _duration_ms(start: Optional[datetime], end: datetime) -> Optional[int]:
    if not start:
        return None
    return int((end - start).total_seconds() * 1000)


def to_json_text(value: Any) -> Optional[str]:
    """序列化步骤输入输出；无法直接序列化的值退化为字符串"""
    if value is None:
        return None
    return json.dumps(value, default=str, ensure_ascii=False)


@dataclass
class Execution:
    """流程执行实例"""
    id: str = field(default_factory=lambda: str(uuid4()))
    flow_id: str = ""
    status: ExecutionStatus = ExecutionStatus.PENDING
    trigger_type: str = "manual"
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def start(self):
        """开始执行"""
        self.status = ExecutionStatus.RUNNING
        self.started_at = utcnow()

    def complete(self):
        """执行成功"""
        self._finish(ExecutionStatus.SUCCESS)

    def fail(self, error_message: str):
        """执行失败"""
        self._finish(ExecutionStatus.FAILED, error_message)

    def cancel(self, reason: str = "Execution cancelled by user"):
        """取消执行"""
        self._finish(ExecutionStatus.CANCELLED, reason)

    def _finish(self, status: ExecutionStatus, error: Optional[str] = None):
        if self.is_terminal_state():
            raise ValueError(
                f"Execution {self.id} is already {self.status.value}, cannot move to {status.value}"
            )
        self.status = status
        self.error = error
        self.completed_at = utcnow()

    def is_terminal_state(self) -> bool:
        """是否为终止状态"""
        return self.status in TERMINAL_EXECUTION_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "flowId": self.flow_id,
            "status": self.status.value,
            "triggerType": self.trigger_type,
            "startedAt": _isoformat(self.started_at),
            "completedAt": _isoformat(self.completed_at),
            "error": self.error,
            "createdAt": _isoformat(self.created_at),
        }


@dataclass
class ExecutionStep:
    """单个节点在一次执行中的记录"""
    id: str = field(default_factory=lambda: str(uuid4()))
    execution_id: str = ""
    node_id: str = ""
    status: StepStatus = StepStatus.PENDING
    input: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None

    def start(self, input_data: Any = None):
        """开始执行"""
        self._check_mutable()
        self.status = StepStatus.RUNNING
        self.started_at = utcnow()
        if input_data is not None:
            self.input = to_json_text(input_data)

    def succeed(self, output: Any):
        """执行成功"""
        self._finish(StepStatus.SUCCESS)
        self.output = to_json_text(output)

    def fail(self, error_message: str, output: Any = None):
        """执行失败"""
        self._finish(StepStatus.ERROR)
        self.error = error_message
        self.output = to_json_text(output)

    def skip(self):
        """跳过（未选中的条件分支）"""
        self._finish(StepStatus.SKIPPED)

    def _finish(self, status: StepStatus):
        self._check_mutable()
        self.status = status
        self.completed_at = utcnow()
        self.duration_ms = _duration_ms(self.started_at, self.completed_at)

    def _check_mutable(self):
        if self.status in TERMINAL_STEP_STATUSES:
            raise ValueError(f"Step {self.id} is already {self.status.value}")

    @property
    def output_data(self) -> Any:
        return json.loads(self.output) if self.output else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "executionId": self.execution_id,
            "nodeId": self.node_id,
            "status": self.status.value,
            "input": self.input,
            "output": self.output,
            "error": self.error,
            "startedAt": _isoformat(self.started_at),
            "completedAt": _isoformat(self.completed_at),
            "durationMs": self.duration_ms,
        }


@dataclass
class ExecutionContext:
    """运行上下文：触发数据与前序节点输出，供条件表达式与模板插值使用"""
    execution_id: str
    flow_id: str = ""
    trigger: Dict[str, Any] = field(default_factory=dict)
    nodes: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)

    def set_node_output(self, node_id: str, output: Any):
        """记录节点输出"""
        self.nodes[node_id] = {"output": output}

    def get_node_output(self, node_id: str) -> Any:
        """获取节点输出"""
        entry = self.nodes.get(node_id)
        return entry.get("output") if entry else None

    def as_mapping(self) -> Dict[str, Any]:
        """点路径解析使用的根对象"""
        data = dict(self.variables)
        data["trigger"] = self.trigger
        data["nodes"] = self.nodes
        return data
