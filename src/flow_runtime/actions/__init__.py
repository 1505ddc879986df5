"""Action executors"""

from typing import Optional

from .base import ActionResult, ActionExecutor, ActionRegistry
from .shell import ShellExecutor
from .http import HttpExecutor
from .file import FileReadExecutor
from .plugin import PluginActionExecutor, PluginManager
from ..config import Settings


def build_default_registry(
    settings: Optional[Settings] = None,
    plugin_manager: Optional[PluginManager] = None
) -> ActionRegistry:
    """注册内置动作执行器"""
    import tempfile

    settings = settings or Settings()
    registry = ActionRegistry()
    registry.register(ShellExecutor(default_timeout_ms=settings.shell_timeout_ms))
    registry.register(HttpExecutor(default_timeout_ms=settings.http_timeout_ms))
    registry.register(FileReadExecutor(allowed_dirs=[settings.user_data_dir, tempfile.gettempdir()]))
    registry.register(PluginActionExecutor(plugin_manager))
    return registry


__all__ = [
    "ActionResult",
    "ActionExecutor",
    "ActionRegistry",
    "ShellExecutor",
    "HttpExecutor",
    "FileReadExecutor",
    "PluginActionExecutor",
    "PluginManager",
    "build_default_registry"
]
