"""
流程运行时异常定义
"""
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models.flow import ValidationError


class FlowRuntimeError(Exception):
    """流程运行时基础异常"""
    pass


class FlowParseError(FlowRuntimeError):
    """流程文档解析异常"""
    pass


class FlowValidationError(FlowRuntimeError):
    """流程验证异常（仅在运行入口处抛出）"""
    def __init__(self, errors: List["ValidationError"], message: str = None):
        self.errors = list(errors)
        if message is None:
            message = "; ".join(error.message for error in self.errors) or "Flow validation failed"
        super().__init__(message)


class FlowNotFoundError(FlowRuntimeError):
    """流程不存在"""
    def __init__(self, flow_id: str):
        self.flow_id = flow_id
        super().__init__(f"Flow not found: {flow_id}")


class ExecutionNotFoundError(FlowRuntimeError):
    """执行实例不存在"""
    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution not found: {execution_id}")


class FlowExecutionError(FlowRuntimeError):
    """流程执行异常"""
    pass


class NodeExecutionError(FlowExecutionError):
    """节点执行异常"""
    def __init__(self, node_id: str, message: str, label: Optional[str] = None):
        self.node_id = node_id
        self.label = label
        self.reason = message
        super().__init__(f'Node "{label or node_id}" failed: {message}')


def error_message(error: BaseException, fallback: str = None) -> str:
    """把异常规整为面向用户的字符串"""
    message = str(error)
    if message:
        return message
    return fallback or type(error).__name__
