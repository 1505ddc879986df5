"""
存储仓库接口定义
"""
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional, List, Dict, Any

from ..models.flow import Flow, FlowGraph, utcnow
from ..models.execution import Execution, ExecutionStep, ExecutionStatus


class FlowRepository(ABC):
    """流程存储仓库接口"""

    @abstractmethod
    async def save_graph(self, graph: FlowGraph) -> str:
        """保存流程及其节点、边（整体替换）"""
        pass

    @abstractmethod
    async def get(self, flow_id: str) -> Optional[Flow]:
        """获取流程"""
        pass

    @abstractmethod
    async def get_graph(self, flow_id: str) -> Optional[FlowGraph]:
        """获取流程图快照"""
        pass

    @abstractmethod
    async def list(
        self,
        offset: int = 0,
        limit: int = 100,
        filters: Dict[str, Any] = None
    ) -> List[Flow]:
        """列出流程，filters 支持 workspace_id 与 status"""
        pass

    @abstractmethod
    async def delete(self, flow_id: str) -> bool:
        """删除流程"""
        pass


class ExecutionRepository(ABC):
    """执行记录存储仓库接口"""

    @abstractmethod
    async def create(self, execution: Execution) -> str:
        """保存执行实例"""
        pass

    @abstractmethod
    async def get(self, execution_id: str) -> Optional[Execution]:
        """获取执行实例"""
        pass

    @abstractmethod
    async def update(self, execution: Execution) -> bool:
        """更新执行实例"""
        pass

    @abstractmethod
    async def list_by_flow(
        self,
        flow_id: str,
        status: ExecutionStatus = None,
        offset: int = 0,
        limit: int = 100
    ) -> List[Execution]:
        """根据流程ID列出执行实例（最新在前）"""
        pass

    @abstractmethod
    async def create_step(self, step: ExecutionStep) -> str:
        """保存执行步骤"""
        pass

    @abstractmethod
    async def update_step(self, step: ExecutionStep) -> bool:
        """更新执行步骤"""
        pass

    @abstractmethod
    async def list_steps(self, execution_id: str) -> List[ExecutionStep]:
        """列出执行步骤（按创建顺序）"""
        pass


# 内存实现（用于测试与命令行）
class InMemoryFlowRepository(FlowRepository):
    """内存流程仓库实现"""

    def __init__(self):
        self.graphs: Dict[str, FlowGraph] = {}

    async def save_graph(self, graph: FlowGraph) -> str:
        flow = replace(graph.flow, updated_at=utcnow())
        self.graphs[flow.id] = FlowGraph(flow=flow, nodes=graph.nodes, edges=graph.edges)
        return flow.id

    async def get(self, flow_id: str) -> Optional[Flow]:
        graph = self.graphs.get(flow_id)
        return replace(graph.flow) if graph else None

    async def get_graph(self, flow_id: str) -> Optional[FlowGraph]:
        return self.graphs.get(flow_id)

    async def list(
        self,
        offset: int = 0,
        limit: int = 100,
        filters: Dict[str, Any] = None
    ) -> List[Flow]:
        filters = filters or {}
        flows = []
        for graph in self.graphs.values():
            flow = graph.flow
            if filters.get("workspace_id") and flow.workspace_id != filters["workspace_id"]:
                continue
            if filters.get("status") and flow.status != filters["status"]:
                continue
            flows.append(replace(flow))

        return flows[offset:offset + limit]

    async def delete(self, flow_id: str) -> bool:
        if flow_id in self.graphs:
            del self.graphs[flow_id]
            return True
        return False


class InMemoryExecutionRepository(ExecutionRepository):
    """内存执行仓库实现（保存副本，调用方修改对象后需显式 update）"""

    def __init__(self):
        self.executions: Dict[str, Execution] = {}
        self.steps: Dict[str, ExecutionStep] = {}

    async def create(self, execution: Execution) -> str:
        self.executions[execution.id] = replace(execution)
        return execution.id

    async def get(self, execution_id: str) -> Optional[Execution]:
        execution = self.executions.get(execution_id)
        return replace(execution) if execution else None

    async def update(self, execution: Execution) -> bool:
        if execution.id in self.executions:
            self.executions[execution.id] = replace(execution)
            return True
        return False

    async def list_by_flow(
        self,
        flow_id: str,
        status: ExecutionStatus = None,
        offset: int = 0,
        limit: int = 100
    ) -> List[Execution]:
        results = []
        for execution in self.executions.values():
            if execution.flow_id != flow_id:
                continue
            if status and execution.status != status:
                continue
            results.append(replace(execution))

        results.sort(key=lambda e: e.created_at, reverse=True)
        return results[offset:offset + limit]

    async def create_step(self, step: ExecutionStep) -> str:
        self.steps[step.id] = replace(step)
        return step.id

    async def update_step(self, step: ExecutionStep) -> bool:
        if step.id in self.steps:
            self.steps[step.id] = replace(step)
            return True
        return False

    async def list_steps(self, execution_id: str) -> List[ExecutionStep]:
        return [
            replace(step) for step in self.steps.values()
            if step.execution_id == execution_id
        ]
