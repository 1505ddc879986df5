"""
SQLAlchemy 数据库模型定义
"""
from sqlalchemy import (
    Column, String, Text, Integer, BigInteger, Float,
    DateTime, ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func


Base = declarative_base()


class FlowRecord(Base):
    """流程定义表"""
    __tablename__ = 'flows'

    id = Column(String(64), primary_key=True)
    workspace_id = Column(String(64), nullable=False, default='')
    name = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default='draft')
    trigger_config = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # 关系
    nodes = relationship("FlowNodeRecord", back_populates="flow", cascade="all, delete-orphan")
    edges = relationship("FlowEdgeRecord", back_populates="flow", cascade="all, delete-orphan")

    # 约束
    __table_args__ = (
        CheckConstraint("status IN ('draft', 'active', 'disabled')", name='check_flow_status'),
        Index('idx_flows_workspace_id', 'workspace_id'),
        Index('idx_flows_status', 'status'),
    )


class FlowNodeRecord(Base):
    """流程节点表（节点ID在流程内唯一）"""
    __tablename__ = 'flow_nodes'

    flow_id = Column(String(64), ForeignKey('flows.id', ondelete='CASCADE'), primary_key=True)
    id = Column(String(255), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(50), nullable=False)
    label = Column(String(255), default='')
    position_x = Column(Float, default=0.0)
    position_y = Column(Float, default=0.0)
    config = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    flow = relationship("FlowRecord", back_populates="nodes")


class FlowEdgeRecord(Base):
    """流程边表"""
    __tablename__ = 'flow_edges'

    flow_id = Column(String(64), ForeignKey('flows.id', ondelete='CASCADE'), primary_key=True)
    id = Column(String(255), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    source_node_id = Column(String(255), nullable=False)
    target_node_id = Column(String(255), nullable=False)
    source_handle = Column(String(255))
    target_handle = Column(String(255))
    label = Column(String(255), default='')
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    flow = relationship("FlowRecord", back_populates="edges")


class ExecutionRecord(Base):
    """流程执行表"""
    __tablename__ = 'executions'

    id = Column(String(64), primary_key=True)
    flow_id = Column(String(64), ForeignKey('flows.id', ondelete='CASCADE'), nullable=False)
    status = Column(String(20), nullable=False)
    trigger_type = Column(String(50), nullable=False, default='manual')
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)

    steps = relationship("ExecutionStepRecord", back_populates="execution", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'running', 'success', 'failed', 'cancelled')",
            name='check_execution_status'
        ),
        Index('idx_executions_flow_id', 'flow_id'),
        Index('idx_executions_status', 'status'),
        Index('idx_executions_created_at', 'created_at'),
    )


class ExecutionStepRecord(Base):
    """执行步骤表"""
    __tablename__ = 'execution_steps'

    id = Column(String(64), primary_key=True)
    execution_id = Column(String(64), ForeignKey('executions.id', ondelete='CASCADE'), nullable=False)
    sequence = Column(Integer, nullable=False, default=0)
    node_id = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False)
    input = Column(Text)
    output = Column(Text)
    error = Column(Text)
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    duration_ms = Column(BigInteger)

    execution = relationship("ExecutionRecord", back_populates="steps")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'running', 'success', 'error', 'skipped')",
            name='check_step_status'
        ),
        Index('idx_execution_steps_execution_id', 'execution_id'),
        Index('idx_execution_steps_status', 'status'),
    )
