"""
流程执行引擎

负责验证、创建执行实例、在后台任务中驱动调度器，以及取消正在运行的执行。
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

from ..actions import ActionRegistry, build_default_registry
from ..actions.plugin import PluginManager
from ..config import Settings
from ..exceptions import (
    FlowNotFoundError, FlowValidationError, ExecutionNotFoundError
)
from ..integrations.event_bus import EventBus
from ..models.flow import FlowGraph, ValidationResult
from ..models.execution import Execution
from ..storage.repository import FlowRepository, ExecutionRepository
from .condition import ConditionEvaluator
from .scheduler import ExecutionScheduler, CancellationToken
from .validator import validate_flow


logger = logging.getLogger(__name__)


@dataclass
class RunHandle:
    """正在运行的执行"""
    execution: Execution
    token: CancellationToken
    task: asyncio.Task


class FlowEngine:
    """流程执行引擎"""

    def __init__(
        self,
        flow_repository: FlowRepository,
        execution_repository: ExecutionRepository,
        action_registry: ActionRegistry = None,
        event_bus: EventBus = None,
        settings: Settings = None,
        plugin_manager: PluginManager = None
    ):
        self.settings = settings or Settings()
        self.flow_repository = flow_repository
        self.execution_repository = execution_repository
        self.event_bus = event_bus or EventBus()
        self.action_registry = action_registry or build_default_registry(self.settings, plugin_manager)
        self.scheduler = ExecutionScheduler(
            self.action_registry,
            self.execution_repository,
            self.event_bus,
            ConditionEvaluator()
        )

        self._running: Dict[str, RunHandle] = {}

    async def validate(self, flow_id: str) -> ValidationResult:
        """验证已保存的流程"""
        graph = await self._get_graph(flow_id)
        return validate_flow(graph.nodes, graph.edges)

    async def run(
        self,
        flow_id: str,
        trigger_type: str = "manual",
        payload: Any = None,
        wait: bool = False
    ) -> str:
        """运行已保存的流程，返回执行ID；验证失败抛出 FlowValidationError"""
        graph = await self._get_graph(flow_id)
        return await self.run_graph(graph, trigger_type=trigger_type, payload=payload, wait=wait)

    async def run_graph(
        self,
        graph: FlowGraph,
        trigger_type: str = "manual",
        payload: Any = None,
        wait: bool = False
    ) -> str:
        """运行流程图快照"""
        result = validate_flow(graph.nodes, graph.edges)
        if not result.valid:
            logger.info(f"Refusing to run flow {graph.flow.id}: {len(result.errors)} validation error(s)")
            raise FlowValidationError(result.errors)

        execution = Execution(flow_id=graph.flow.id, trigger_type=trigger_type)
        execution.start()
        await self.execution_repository.create(execution)

        token = CancellationToken()
        task = asyncio.create_task(self.scheduler.run(graph, execution, token, payload))
        self._running[execution.id] = RunHandle(execution=execution, token=token, task=task)
        task.add_done_callback(lambda _: self._running.pop(execution.id, None))

        logger.info(f"Started execution {execution.id} of flow {graph.flow.id} ({trigger_type})")

        if wait:
            await asyncio.shield(task)

        return execution.id

    def cancel(self, execution_id: str) -> bool:
        """请求取消正在运行的执行，只在节点之间生效"""
        handle = self._running.get(execution_id)
        if handle is None:
            return False
        handle.token.cancel()
        logger.info(f"Cancellation requested for execution {execution_id}")
        return True

    def is_running(self, execution_id: str) -> bool:
        return execution_id in self._running

    async def wait_for(self, execution_id: str, timeout: Optional[float] = None) -> Execution:
        """等待执行结束并返回最终状态"""
        handle = self._running.get(execution_id)
        if handle is not None:
            await asyncio.wait_for(asyncio.shield(handle.task), timeout)

        execution = await self.execution_repository.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        return execution

    async def shutdown(self):
        """取消所有正在运行的执行并等待其结束"""
        handles = list(self._running.values())
        for handle in handles:
            handle.token.cancel()
        if handles:
            await asyncio.gather(*(handle.task for handle in handles), return_exceptions=True)
        await self.event_bus.drain()

    async def _get_graph(self, flow_id: str) -> FlowGraph:
        graph = await self.flow_repository.get_graph(flow_id)
        if graph is None:
            raise FlowNotFoundError(flow_id)
        return graph
