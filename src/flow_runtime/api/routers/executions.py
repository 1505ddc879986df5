"""
流程执行 API 路由
"""
from fastapi import APIRouter, Depends
import logging

from ..models import ExecutionDetailResponse, StepResponse, CancelResponse
from ..dependencies import get_flow_engine, get_execution_repository
from ...core import FlowEngine
from ...exceptions import ExecutionNotFoundError
from ...storage.repository import ExecutionRepository


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{execution_id}", response_model=ExecutionDetailResponse)
async def get_execution(
    execution_id: str,
    execution_repo: ExecutionRepository = Depends(get_execution_repository)
) -> ExecutionDetailResponse:
    """获取执行详情（含步骤）"""
    execution = await execution_repo.get(execution_id)
    if execution is None:
        raise ExecutionNotFoundError(execution_id)

    steps = await execution_repo.list_steps(execution_id)
    detail = ExecutionDetailResponse.from_execution(execution)
    detail.steps = [StepResponse.from_step(step) for step in steps]
    return detail


@router.post("/{execution_id}/cancel", response_model=CancelResponse)
async def cancel_execution(
    execution_id: str,
    engine: FlowEngine = Depends(get_flow_engine),
    execution_repo: ExecutionRepository = Depends(get_execution_repository)
) -> CancelResponse:
    """请求取消执行；已结束的执行返回 cancelled=false"""
    if await execution_repo.get(execution_id) is None:
        raise ExecutionNotFoundError(execution_id)

    cancelled = engine.cancel(execution_id)
    if not cancelled:
        logger.info(f"Execution {execution_id} is not running, nothing to cancel")
    return CancelResponse(execution_id=execution_id, cancelled=cancelled)
