"""
执行调度器

从触发节点开始按拓扑顺序逐个执行节点：
    - 条件节点根据结果只沿匹配 "true"/"false" 的出边继续，无标签的边总是继续
    - 所有入边都失效的节点记为 skipped，并让其出边同样失效
    - 任一动作失败即中止执行，后续节点不再生成步骤
    - 每个节点执行前检查取消令牌
"""
import asyncio
import json
import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Set

from ..actions.base import ActionRegistry
from ..exceptions import FlowExecutionError, NodeExecutionError, error_message
from ..integrations.event_bus import EventBus, STEP_UPDATE_TOPIC, EXECUTION_COMPLETE_TOPIC
from ..models.flow import (
    FlowGraph, FlowNode, FlowEdge, NodeType, parse_node_config
)
from ..models.execution import Execution, ExecutionStep, ExecutionContext
from ..storage.repository import ExecutionRepository
from .condition import ConditionEvaluator
from .interpolation import interpolate_config


logger = logging.getLogger(__name__)


CANCELLED_MESSAGE = "Execution cancelled by user"


class CancellationToken:
    """协作式取消令牌，只在节点之间检查"""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class NodeOutcome:
    """节点执行结果"""
    output: Any = None
    input: Any = None
    error: Optional[str] = None
    branch: Optional[bool] = None


class NodeExecutor:
    """节点执行器基类"""

    async def execute(self, node: FlowNode, context: ExecutionContext) -> NodeOutcome:
        raise NotImplementedError


class TriggerNodeExecutor(NodeExecutor):
    """触发节点：直接成功，输出触发信息"""

    async def execute(self, node: FlowNode, context: ExecutionContext) -> NodeOutcome:
        payload = context.trigger.get("payload")
        return NodeOutcome(
            output={"triggered": True, "type": context.trigger.get("type"), "payload": payload},
            input=payload or None
        )


class ActionNodeExecutor(NodeExecutor):
    """动作节点：插值参数后交给动作注册表"""

    def __init__(self, registry: ActionRegistry):
        self.registry = registry

    async def execute(self, node: FlowNode, context: ExecutionContext) -> NodeOutcome:
        config = parse_node_config(node)

        params = interpolate_config(config.params, context.as_mapping())
        result = await self.registry.execute(config.action_type, params)

        if result.success:
            return NodeOutcome(output=result.output, input=params)
        return NodeOutcome(output=result.output, input=params, error=failure_message(result.output))


class ConditionNodeExecutor(NodeExecutor):
    """条件节点：求值并记录布尔结果"""

    def __init__(self, evaluator: ConditionEvaluator):
        self.evaluator = evaluator

    async def execute(self, node: FlowNode, context: ExecutionContext) -> NodeOutcome:
        config = parse_node_config(node)

        result = self.evaluator.evaluate(config.condition, context)
        return NodeOutcome(output={"result": result}, input=config.condition, branch=result)


class PassThroughNodeExecutor(NodeExecutor):
    """未知节点类型直接通过"""

    async def execute(self, node: FlowNode, context: ExecutionContext) -> NodeOutcome:
        return NodeOutcome()


def failure_message(output: Any) -> str:
    """动作失败时的错误描述：优先取 error 字段，否则为输出的 JSON"""
    if isinstance(output, dict) and isinstance(output.get("error"), str):
        return output["error"]
    if isinstance(output, str):
        return output
    return json.dumps(output, separators=(",", ":"), default=str, ensure_ascii=False)


def topological_order(graph: FlowGraph) -> List[FlowNode]:
    """Kahn 算法拓扑排序，同层按节点与边的原始顺序"""
    in_degree: Dict[str, int] = {node.id: 0 for node in graph.nodes}
    adjacency: Dict[str, List[str]] = {node.id: [] for node in graph.nodes}
    for edge in graph.edges:
        if edge.source_node_id in adjacency and edge.target_node_id in in_degree:
            adjacency[edge.source_node_id].append(edge.target_node_id)
            in_degree[edge.target_node_id] += 1

    queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
    order: List[FlowNode] = []
    while queue:
        node_id = queue.popleft()
        order.append(graph.get_node(node_id))
        for neighbour in adjacency[node_id]:
            in_degree[neighbour] -= 1
            if in_degree[neighbour] == 0:
                queue.append(neighbour)

    if len(order) != len(graph.nodes):
        raise FlowExecutionError("Flow contains a cycle and cannot be executed")
    return order


class ExecutionScheduler:
    """单次执行的调度器"""

    def __init__(
        self,
        action_registry: ActionRegistry,
        execution_repository: ExecutionRepository,
        event_bus: EventBus = None,
        evaluator: ConditionEvaluator = None
    ):
        self.execution_repository = execution_repository
        self.event_bus = event_bus
        self.evaluator = evaluator or ConditionEvaluator()

        self.node_executors: Dict[str, NodeExecutor] = {
            NodeType.TRIGGER.value: TriggerNodeExecutor(),
            NodeType.ACTION.value: ActionNodeExecutor(action_registry),
            NodeType.CONDITION.value: ConditionNodeExecutor(self.evaluator)
        }
        self._pass_through = PassThroughNodeExecutor()

    async def run(
        self,
        graph: FlowGraph,
        execution: Execution,
        token: CancellationToken = None,
        payload: Any = None
    ) -> Execution:
        """驱动一次执行直到终止状态；不向外抛出节点错误"""
        token = token or CancellationToken()
        context = ExecutionContext(
            execution_id=execution.id,
            flow_id=graph.flow.id,
            trigger={"type": execution.trigger_type, "payload": payload}
        )

        try:
            completed = await self._walk(graph, execution, context, token)
            if completed:
                execution.complete()
            else:
                logger.info(f"Execution {execution.id} cancelled")
                execution.cancel(CANCELLED_MESSAGE)
        except NodeExecutionError as e:
            logger.warning(f"Execution {execution.id} failed: {e}")
            execution.fail(str(e))
        except asyncio.CancelledError:
            execution.cancel(CANCELLED_MESSAGE)
            await self._finish(execution)
            raise
        except Exception as e:
            logger.error(f"Execution {execution.id} crashed: {e}", exc_info=True)
            execution.fail(error_message(e))

        await self._finish(execution)
        return execution

    async def _walk(
        self,
        graph: FlowGraph,
        execution: Execution,
        context: ExecutionContext,
        token: CancellationToken
    ) -> bool:
        live_edges: Set[FlowEdge] = set()
        trigger_ids = {node.id for node in graph.trigger_nodes()[:1]}

        for node in topological_order(graph):
            if token.cancelled:
                return False

            if node.id not in trigger_ids:
                incoming = graph.incoming_edges(node.id)
                if not any(edge in live_edges for edge in incoming):
                    await self._skip(execution, node)
                    continue

            outcome = await self._execute_node(execution, node, context)
            context.set_node_output(node.id, outcome.output)

            for edge in graph.outgoing_edges(node.id):
                if self._follows(edge, outcome.branch):
                    live_edges.add(edge)

        return True

    @staticmethod
    def _follows(edge: FlowEdge, branch: Optional[bool]) -> bool:
        if branch is None:
            return True
        label = edge.branch
        if label == "true":
            return branch
        if label == "false":
            return not branch
        return True

    async def _execute_node(
        self,
        execution: Execution,
        node: FlowNode,
        context: ExecutionContext
    ) -> NodeOutcome:
        step = ExecutionStep(execution_id=execution.id, node_id=node.id)
        step.start()
        await self.execution_repository.create_step(step)
        self._publish_step(step)

        executor = self.node_executors.get(node.type, self._pass_through)
        try:
            outcome = await executor.execute(node, context)
        except Exception as e:
            logger.error(f"Node {node.id} raised: {e}", exc_info=True)
            outcome = NodeOutcome(error=error_message(e))

        if outcome.input is not None:
            step.input = json.dumps(outcome.input, default=str, ensure_ascii=False)

        if outcome.error is not None:
            step.fail(outcome.error, outcome.output)
            await self.execution_repository.update_step(step)
            self._publish_step(step)
            raise NodeExecutionError(node.id, outcome.error, label=node.label)

        step.succeed(outcome.output)
        await self.execution_repository.update_step(step)
        self._publish_step(step)
        logger.debug(f"Node {node.id} succeeded in {step.duration_ms}ms")
        return outcome

    async def _skip(self, execution: Execution, node: FlowNode):
        step = ExecutionStep(execution_id=execution.id, node_id=node.id)
        step.skip()
        await self.execution_repository.create_step(step)
        self._publish_step(step)
        logger.debug(f"Node {node.id} skipped")

    async def _finish(self, execution: Execution):
        try:
            await self.execution_repository.update(execution)
        except Exception as e:
            logger.error(f"Failed to persist execution {execution.id}: {e}", exc_info=True)

        payload: Dict[str, Any] = {"id": execution.id, "status": execution.status.value}
        if execution.error:
            payload["error"] = execution.error
        self._publish(EXECUTION_COMPLETE_TOPIC, payload)

    def _publish_step(self, step: ExecutionStep):
        self._publish(STEP_UPDATE_TOPIC, step.to_dict())

    def _publish(self, topic: str, payload: Dict[str, Any]):
        if self.event_bus is not None:
            self.event_bus.publish_nowait(topic, payload)
