"""
动作执行器接口与注册表
"""
from typing import Dict, Any, Optional, List
from dataclasses import dataclass
from abc import ABC, abstractmethod
import logging
import time

from ..exceptions import error_message


logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """动作执行结果"""
    success: bool
    output: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "output": self.output}


class ActionExecutor(ABC):
    """动作执行器接口

    实现不应向外抛出异常，失败通过 ActionResult.success=False 返回。
    """

    action_type: str = ""

    @abstractmethod
    async def execute(self, params: Dict[str, Any]) -> ActionResult:
        """执行动作"""
        pass


class ActionRegistry:
    """动作类型到执行器的映射"""

    def __init__(self):
        self.executors: Dict[str, ActionExecutor] = {}

    def register(self, executor: ActionExecutor, action_type: Optional[str] = None):
        """注册执行器"""
        key = action_type or executor.action_type
        if not key:
            raise ValueError(f"Executor {type(executor).__name__} has no action type")
        self.executors[key] = executor
        logger.debug(f"Registered action executor: {key}")

    def unregister(self, action_type: str):
        """注销执行器"""
        self.executors.pop(action_type, None)

    def get(self, action_type: str) -> Optional[ActionExecutor]:
        return self.executors.get(action_type)

    def list_actions(self) -> List[str]:
        """已注册的动作类型"""
        return list(self.executors.keys())

    async def execute(self, action_type: str, params: Dict[str, Any]) -> ActionResult:
        """执行动作，未知类型或执行器异常都转为失败结果"""
        executor = self.executors.get(action_type)
        if executor is None:
            return ActionResult(success=False, output={"error": f"Unknown action type: {action_type}"})

        start_time = time.monotonic()
        try:
            result = await executor.execute(params)
        except Exception as e:
            logger.error(f"Action {action_type} raised unexpectedly: {e}", exc_info=True)
            return ActionResult(success=False, output={"error": error_message(e)})

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Action {action_type} finished in {duration_ms:.2f}ms (success={result.success})"
        )
        return result
