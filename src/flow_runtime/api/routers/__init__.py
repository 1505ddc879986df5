"""
API 路由器
"""

from . import flows, executions

__all__ = ["flows", "executions"]
