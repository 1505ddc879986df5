"""
SQLAlchemy 仓库实现
"""
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy import select, delete, func

from ..models.flow import Flow, FlowNode, FlowEdge, FlowGraph, utcnow
from ..models.execution import Execution, ExecutionStep, ExecutionStatus, StepStatus
from .repository import FlowRepository, ExecutionRepository
from .sqlalchemy_models import (
    FlowRecord,
    FlowNodeRecord,
    FlowEdgeRecord,
    ExecutionRecord,
    ExecutionStepRecord,
    Base
)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite 不保存时区信息，读出后按 UTC 处理"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DatabaseManager:
    """数据库管理器"""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine: Optional[AsyncEngine] = None
        self.async_session_maker = None

    def _engine_options(self) -> Dict[str, Any]:
        if not self.database_url.startswith("sqlite"):
            return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}
        if ":memory:" in self.database_url or self.database_url.endswith("://"):
            # 内存库必须共享同一个连接
            return {"poolclass": StaticPool}
        return {}

    async def initialize(self):
        """初始化数据库连接"""
        self.engine = create_async_engine(
            self.database_url,
            echo=False,
            **self._engine_options()
        )

        self.async_session_maker = sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # 创建表（开发环境）
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        """关闭数据库连接"""
        if self.engine:
            await self.engine.dispose()

    @asynccontextmanager
    async def get_session(self):
        """获取数据库会话"""
        async with self.async_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()


class SQLAlchemyFlowRepository(FlowRepository):
    """SQLAlchemy 流程仓库实现"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    async def save_graph(self, graph: FlowGraph) -> str:
        """保存流程图（节点与边删除后重建）"""
        flow = graph.flow
        async with self.db.get_session() as session:
            flow_db = await session.get(FlowRecord, flow.id)
            if flow_db is None:
                flow_db = FlowRecord(id=flow.id, created_at=flow.created_at)
                session.add(flow_db)

            flow_db.workspace_id = flow.workspace_id
            flow_db.name = flow.name
            flow_db.description = flow.description
            flow_db.status = flow.status
            flow_db.trigger_config = flow.trigger_config
            flow_db.updated_at = utcnow()

            await session.execute(delete(FlowNodeRecord).where(FlowNodeRecord.flow_id == flow.id))
            await session.execute(delete(FlowEdgeRecord).where(FlowEdgeRecord.flow_id == flow.id))

            for position, node in enumerate(graph.nodes):
                session.add(FlowNodeRecord(
                    flow_id=flow.id,
                    id=node.id,
                    position=position,
                    type=node.type,
                    label=node.label,
                    position_x=node.x,
                    position_y=node.y,
                    config=node.config,
                    created_at=node.created_at,
                    updated_at=node.updated_at
                ))

            for position, edge in enumerate(graph.edges):
                session.add(FlowEdgeRecord(
                    flow_id=flow.id,
                    id=edge.id,
                    position=position,
                    source_node_id=edge.source_node_id,
                    target_node_id=edge.target_node_id,
                    source_handle=edge.source_handle,
                    target_handle=edge.target_handle,
                    label=edge.label,
                    created_at=edge.created_at
                ))

            await session.flush()
            return flow.id

    async def get(self, flow_id: str) -> Optional[Flow]:
        """获取流程"""
        async with self.db.get_session() as session:
            flow_db = await session.get(FlowRecord, flow_id)
            return self._db_to_flow(flow_db) if flow_db else None

    async def get_graph(self, flow_id: str) -> Optional[FlowGraph]:
        """获取流程图快照"""
        async with self.db.get_session() as session:
            flow_db = await session.get(FlowRecord, flow_id)
            if not flow_db:
                return None

            nodes_result = await session.execute(
                select(FlowNodeRecord)
                .where(FlowNodeRecord.flow_id == flow_id)
                .order_by(FlowNodeRecord.position)
            )
            edges_result = await session.execute(
                select(FlowEdgeRecord)
                .where(FlowEdgeRecord.flow_id == flow_id)
                .order_by(FlowEdgeRecord.position)
            )

            nodes = [
                FlowNode(
                    id=n.id,
                    flow_id=n.flow_id,
                    type=n.type,
                    label=n.label or "",
                    x=n.position_x or 0.0,
                    y=n.position_y or 0.0,
                    config=n.config,
                    created_at=_aware(n.created_at),
                    updated_at=_aware(n.updated_at)
                )
                for n in nodes_result.scalars().all()
            ]
            edges = [
                FlowEdge(
                    id=e.id,
                    flow_id=e.flow_id,
                    source_node_id=e.source_node_id,
                    target_node_id=e.target_node_id,
                    source_handle=e.source_handle,
                    target_handle=e.target_handle,
                    label=e.label,
                    created_at=_aware(e.created_at)
                )
                for e in edges_result.scalars().all()
            ]

            return FlowGraph(flow=self._db_to_flow(flow_db), nodes=nodes, edges=edges)

    async def list(
        self,
        offset: int = 0,
        limit: int = 100,
        filters: Dict[str, Any] = None
    ) -> List[Flow]:
        """列出流程"""
        async with self.db.get_session() as session:
            query = select(FlowRecord)

            if filters:
                if filters.get('workspace_id'):
                    query = query.where(FlowRecord.workspace_id == filters['workspace_id'])
                if filters.get('status'):
                    query = query.where(FlowRecord.status == filters['status'])

            query = query.order_by(FlowRecord.created_at.desc())
            query = query.offset(offset).limit(limit)

            result = await session.execute(query)
            return [self._db_to_flow(f) for f in result.scalars().all()]

    async def delete(self, flow_id: str) -> bool:
        """删除流程及其执行记录"""
        async with self.db.get_session() as session:
            execution_ids = select(ExecutionRecord.id).where(ExecutionRecord.flow_id == flow_id)
            await session.execute(
                delete(ExecutionStepRecord).where(ExecutionStepRecord.execution_id.in_(execution_ids))
            )
            await session.execute(delete(ExecutionRecord).where(ExecutionRecord.flow_id == flow_id))
            await session.execute(delete(FlowNodeRecord).where(FlowNodeRecord.flow_id == flow_id))
            await session.execute(delete(FlowEdgeRecord).where(FlowEdgeRecord.flow_id == flow_id))
            result = await session.execute(delete(FlowRecord).where(FlowRecord.id == flow_id))
            return result.rowcount > 0

    def _db_to_flow(self, flow_db: FlowRecord) -> Flow:
        return Flow(
            id=flow_db.id,
            workspace_id=flow_db.workspace_id,
            name=flow_db.name,
            description=flow_db.description,
            status=flow_db.status,
            trigger_config=flow_db.trigger_config,
            created_at=_aware(flow_db.created_at),
            updated_at=_aware(flow_db.updated_at)
        )


class SQLAlchemyExecutionRepository(ExecutionRepository):
    """SQLAlchemy 执行仓库实现"""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    async def create(self, execution: Execution) -> str:
        """保存执行实例"""
        async with self.db.get_session() as session:
            session.add(ExecutionRecord(id=execution.id, **self._execution_values(execution)))
            await session.flush()
            return execution.id

    async def get(self, execution_id: str) -> Optional[Execution]:
        """获取执行实例"""
        async with self.db.get_session() as session:
            execution_db = await session.get(ExecutionRecord, execution_id)
            return self._db_to_execution(execution_db) if execution_db else None

    async def update(self, execution: Execution) -> bool:
        """更新执行实例"""
        async with self.db.get_session() as session:
            execution_db = await session.get(ExecutionRecord, execution.id)
            if not execution_db:
                return False
            for key, value in self._execution_values(execution).items():
                setattr(execution_db, key, value)
            return True

    async def list_by_flow(
        self,
        flow_id: str,
        status: ExecutionStatus = None,
        offset: int = 0,
        limit: int = 100
    ) -> List[Execution]:
        """根据流程ID列出执行实例"""
        async with self.db.get_session() as session:
            query = select(ExecutionRecord).where(ExecutionRecord.flow_id == flow_id)

            if status:
                query = query.where(ExecutionRecord.status == status.value)

            query = query.order_by(ExecutionRecord.created_at.desc())
            query = query.offset(offset).limit(limit)

            result = await session.execute(query)
            return [self._db_to_execution(e) for e in result.scalars().all()]

    async def create_step(self, step: ExecutionStep) -> str:
        """保存执行步骤"""
        async with self.db.get_session() as session:
            count = await session.scalar(
                select(func.count()).select_from(ExecutionStepRecord)
                .where(ExecutionStepRecord.execution_id == step.execution_id)
            )
            session.add(ExecutionStepRecord(
                id=step.id,
                execution_id=step.execution_id,
                sequence=count or 0,
                **self._step_values(step)
            ))
            await session.flush()
            return step.id

    async def update_step(self, step: ExecutionStep) -> bool:
        """更新执行步骤"""
        async with self.db.get_session() as session:
            step_db = await session.get(ExecutionStepRecord, step.id)
            if not step_db:
                return False
            for key, value in self._step_values(step).items():
                setattr(step_db, key, value)
            return True

    async def list_steps(self, execution_id: str) -> List[ExecutionStep]:
        """列出执行步骤"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(ExecutionStepRecord)
                .where(ExecutionStepRecord.execution_id == execution_id)
                .order_by(ExecutionStepRecord.sequence)
            )
            return [self._db_to_step(s) for s in result.scalars().all()]

    def _execution_values(self, execution: Execution) -> Dict[str, Any]:
        return {
            "flow_id": execution.flow_id,
            "status": execution.status.value,
            "trigger_type": execution.trigger_type,
            "started_at": execution.started_at,
            "completed_at": execution.completed_at,
            "error": execution.error,
            "created_at": execution.created_at,
        }

    def _step_values(self, step: ExecutionStep) -> Dict[str, Any]:
        return {
            "node_id": step.node_id,
            "status": step.status.value,
            "input": step.input,
            "output": step.output,
            "error": step.error,
            "started_at": step.started_at,
            "completed_at": step.completed_at,
            "duration_ms": step.duration_ms,
        }

    def _db_to_execution(self, execution_db: ExecutionRecord) -> Execution:
        return Execution(
            id=execution_db.id,
            flow_id=execution_db.flow_id,
            status=ExecutionStatus(execution_db.status),
            trigger_type=execution_db.trigger_type,
            started_at=_aware(execution_db.started_at),
            completed_at=_aware(execution_db.completed_at),
            error=execution_db.error,
            created_at=_aware(execution_db.created_at)
        )

    def _db_to_step(self, step_db: ExecutionStepRecord) -> ExecutionStep:
        return ExecutionStep(
            id=step_db.id,
            execution_id=step_db.execution_id,
            node_id=step_db.node_id,
            status=StepStatus(step_db.status),
            input=step_db.input,
            output=step_db.output,
            error=step_db.error,
            started_at=_aware(step_db.started_at),
            completed_at=_aware(step_db.completed_at),
            duration_ms=step_db.duration_ms
        )
