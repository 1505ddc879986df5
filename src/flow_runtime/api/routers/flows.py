"""
流程管理 API 路由
"""
from fastapi import APIRouter, Depends, Query, Body, Response, status
from typing import List, Optional, Dict, Any
import logging

from ..models import (
    FlowCreateRequest, FlowResponse, FlowDetailResponse, FlowStatusEnum,
    ValidationResponse, RunRequest, RunResponse, ExecutionResponse
)
from ..dependencies import get_flow_engine, get_flow_repository, get_execution_repository
from ...core import FlowEngine, FlowParser, export_flow
from ...exceptions import FlowNotFoundError
from ...models.execution import ExecutionStatus
from ...models.flow import FlowGraph
from ...storage.repository import FlowRepository, ExecutionRepository


logger = logging.getLogger(__name__)
router = APIRouter()


async def _load_graph(flow_id: str, flow_repo: FlowRepository) -> FlowGraph:
    graph = await flow_repo.get_graph(flow_id)
    if graph is None:
        raise FlowNotFoundError(flow_id)
    return graph


async def _save(graph: FlowGraph, flow_repo: FlowRepository) -> FlowDetailResponse:
    flow_id = await flow_repo.save_graph(graph)
    saved = await _load_graph(flow_id, flow_repo)
    logger.info(f"Saved flow {flow_id} ({len(saved.nodes)} nodes, {len(saved.edges)} edges)")
    return FlowDetailResponse.from_graph(saved)


@router.post("/", response_model=FlowDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_flow(
    request: FlowCreateRequest,
    flow_repo: FlowRepository = Depends(get_flow_repository)
) -> FlowDetailResponse:
    """创建新的流程"""
    graph = FlowParser().parse_dict(request.to_document())
    return await _save(graph, flow_repo)


@router.post("/import", response_model=FlowDetailResponse, status_code=status.HTTP_201_CREATED)
async def import_flow(
    document: Dict[str, Any] = Body(..., description="导出格式或按ID引用的流程文档"),
    workspace_id: str = Query("", alias="workspaceId", description="导入到的工作区"),
    flow_repo: FlowRepository = Depends(get_flow_repository)
) -> FlowDetailResponse:
    """导入流程文档"""
    graph = FlowParser().parse_dict(document, workspace_id)
    return await _save(graph, flow_repo)


@router.get("/", response_model=List[FlowResponse])
async def list_flows(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    workspace_id: Optional[str] = Query(None, alias="workspaceId", description="按工作区过滤"),
    flow_status: Optional[FlowStatusEnum] = Query(None, alias="status", description="按状态过滤"),
    flow_repo: FlowRepository = Depends(get_flow_repository)
) -> List[FlowResponse]:
    """列出流程"""
    filters = {}
    if workspace_id:
        filters["workspace_id"] = workspace_id
    if flow_status:
        filters["status"] = flow_status.value

    flows = await flow_repo.list(offset=offset, limit=limit, filters=filters)
    return [FlowResponse.from_flow(flow) for flow in flows]


@router.get("/{flow_id}", response_model=FlowDetailResponse)
async def get_flow(
    flow_id: str,
    flow_repo: FlowRepository = Depends(get_flow_repository)
) -> FlowDetailResponse:
    """获取流程详情"""
    graph = await _load_graph(flow_id, flow_repo)
    return FlowDetailResponse.from_graph(graph)


@router.delete("/{flow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flow(
    flow_id: str,
    flow_repo: FlowRepository = Depends(get_flow_repository)
) -> Response:
    """删除流程及其执行记录"""
    if not await flow_repo.delete(flow_id):
        raise FlowNotFoundError(flow_id)
    logger.info(f"Deleted flow {flow_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{flow_id}/validate", response_model=ValidationResponse)
async def validate_flow(
    flow_id: str,
    engine: FlowEngine = Depends(get_flow_engine)
) -> ValidationResponse:
    """验证流程"""
    result = await engine.validate(flow_id)
    return ValidationResponse.from_result(result)


@router.post("/{flow_id}/run", response_model=RunResponse, status_code=status.HTTP_202_ACCEPTED)
async def run_flow(
    flow_id: str,
    request: Optional[RunRequest] = None,
    engine: FlowEngine = Depends(get_flow_engine)
) -> RunResponse:
    """运行流程；验证失败时返回 422 及错误列表"""
    request = request or RunRequest()
    execution_id = await engine.run(
        flow_id,
        trigger_type=request.trigger_type.value,
        payload=request.payload,
        wait=request.wait
    )
    return RunResponse(execution_id=execution_id)


@router.get("/{flow_id}/export")
async def export_flow_document(
    flow_id: str,
    flow_repo: FlowRepository = Depends(get_flow_repository)
) -> Response:
    """导出流程文档（version 1）"""
    graph = await _load_graph(flow_id, flow_repo)
    return Response(content=export_flow(graph), media_type="application/json")


@router.get("/{flow_id}/executions", response_model=List[ExecutionResponse])
async def list_flow_executions(
    flow_id: str,
    execution_status: Optional[ExecutionStatus] = Query(None, alias="status", description="按执行状态过滤"),
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    flow_repo: FlowRepository = Depends(get_flow_repository),
    execution_repo: ExecutionRepository = Depends(get_execution_repository)
) -> List[ExecutionResponse]:
    """列出流程的执行记录（最新在前）"""
    if await flow_repo.get(flow_id) is None:
        raise FlowNotFoundError(flow_id)

    executions = await execution_repo.list_by_flow(
        flow_id, status=execution_status, offset=offset, limit=limit
    )
    return [ExecutionResponse.from_execution(execution) for execution in executions]
