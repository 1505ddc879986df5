"""
FastAPI 依赖注入
"""
from fastapi import HTTPException, status
from typing import Dict, Any
import logging

from ..core import FlowEngine
from ..storage.repository import FlowRepository, ExecutionRepository


logger = logging.getLogger(__name__)


# 全局实例（由应用生命周期填充）
app_state: Dict[str, Any] = {}


def get_app_state() -> Dict[str, Any]:
    """获取应用状态"""
    return app_state


def _require(key: str, name: str) -> Any:
    component = get_app_state().get(key)

    if component is None:
        logger.warning(f"{name} requested before initialization")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "service_unavailable",
                "message": f"{name} not initialized"
            }
        )

    return component


def get_flow_engine() -> FlowEngine:
    """获取流程执行引擎实例"""
    return _require("engine", "Flow engine")


def get_flow_repository() -> FlowRepository:
    """获取流程仓库实例"""
    return _require("flow_repo", "Flow repository")


def get_execution_repository() -> ExecutionRepository:
    """获取执行仓库实例"""
    return _require("execution_repo", "Execution repository")
