"""
plugin.action 执行器测试
"""
import pytest

from flow_runtime.actions.plugin import PluginActionExecutor, PluginManager


class RecordingPluginManager:
    """记录调用的插件管理器"""

    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def call_action(self, plugin_id, action_id, params):
        self.calls.append((plugin_id, action_id, params))
        if self.error:
            raise self.error
        return self.result


class AsyncPluginManager:
    async def call_action(self, plugin_id, action_id, params):
        return {"plugin": plugin_id, "action": action_id, "params": params}


def test_protocol_is_satisfied():
    assert isinstance(RecordingPluginManager(), PluginManager)


@pytest.mark.asyncio
async def test_delegates_params_verbatim():
    manager = RecordingPluginManager(result={"ok": True})
    executor = PluginActionExecutor(manager)

    result = await executor.execute({"pluginId": "slack", "actionId": "send", "params": {"text": "hi"}})

    assert result.success
    assert result.output == {"ok": True}
    assert manager.calls == [("slack", "send", {"text": "hi"})]


@pytest.mark.asyncio
async def test_async_manager():
    executor = PluginActionExecutor(AsyncPluginManager())

    result = await executor.execute({"pluginId": "p", "actionId": "a", "params": [1, 2]})

    assert result.success
    assert result.output == {"plugin": "p", "action": "a", "params": [1, 2]}


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [
    {"actionId": "send"},
    {"pluginId": "slack"},
    {"pluginId": "", "actionId": "send"},
])
async def test_missing_ids_never_call_manager(params):
    manager = RecordingPluginManager()
    executor = PluginActionExecutor(manager)

    result = await executor.execute(params)

    assert not result.success
    assert result.output == {"error": "Missing pluginId or actionId"}
    assert manager.calls == []


@pytest.mark.asyncio
async def test_no_manager():
    result = await PluginActionExecutor().execute({"pluginId": "p", "actionId": "a"})

    assert not result.success
    assert result.output == {"error": "Plugin manager not initialized"}


@pytest.mark.asyncio
async def test_manager_error_is_captured():
    executor = PluginActionExecutor(RecordingPluginManager(error=RuntimeError("plugin crashed")))

    result = await executor.execute({"pluginId": "p", "actionId": "a"})

    assert not result.success
    assert result.output == {"error": "plugin crashed"}
