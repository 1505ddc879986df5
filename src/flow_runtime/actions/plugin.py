"""
plugin.action 动作：委托给外部注入的插件管理器
"""
import inspect
import logging
from typing import Dict, Any, Optional, Protocol, runtime_checkable

from .base import ActionExecutor, ActionResult
from ..exceptions import error_message


logger = logging.getLogger(__name__)


@runtime_checkable
class PluginManager(Protocol):
    """插件管理器能力（同步或异步实现均可）"""

    def call_action(self, plugin_id: str, action_id: str, params: Any) -> Any:
        ...


class PluginActionExecutor(ActionExecutor):
    """plugin.action 执行器"""

    action_type = "plugin.action"

    def __init__(self, plugin_manager: Optional[PluginManager] = None):
        self.plugin_manager = plugin_manager

    async def execute(self, params: Dict[str, Any]) -> ActionResult:
        if self.plugin_manager is None:
            return ActionResult(success=False, output={"error": "Plugin manager not initialized"})

        plugin_id = params.get("pluginId")
        action_id = params.get("actionId")
        if not plugin_id or not action_id:
            return ActionResult(success=False, output={"error": "Missing pluginId or actionId"})

        try:
            result = self.plugin_manager.call_action(plugin_id, action_id, params.get("params"))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.warning(f"Plugin action {plugin_id}/{action_id} failed: {e}")
            return ActionResult(success=False, output={"error": error_message(e)})

        return ActionResult(success=True, output=result)
