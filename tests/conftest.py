"""
Pytest 配置和公共 fixtures
"""
import pytest
from typing import AsyncGenerator

from flow_runtime.config import Settings
from flow_runtime.core import FlowEngine
from flow_runtime.integrations import EventBus
from flow_runtime.storage.repository import InMemoryFlowRepository, InMemoryExecutionRepository
from flow_runtime.storage.sqlalchemy_repository import DatabaseManager


# 配置 pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """测试配置：文件读取白名单指向临时目录"""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'flow_runtime.db'}",
        user_data_dir=tmp_path,
        shell_timeout_ms=10_000,
        http_timeout_ms=5_000,
    )


@pytest.fixture
def flow_repo() -> InMemoryFlowRepository:
    return InMemoryFlowRepository()


@pytest.fixture
def execution_repo() -> InMemoryExecutionRepository:
    return InMemoryExecutionRepository()


@pytest.fixture
async def event_bus() -> AsyncGenerator[EventBus, None]:
    """创建事件总线"""
    bus = EventBus()
    yield bus
    await bus.close()


@pytest.fixture
async def engine(flow_repo, execution_repo, event_bus, settings) -> AsyncGenerator[FlowEngine, None]:
    """创建使用内存存储的流程引擎"""
    flow_engine = FlowEngine(
        flow_repository=flow_repo,
        execution_repository=execution_repo,
        event_bus=event_bus,
        settings=settings
    )

    yield flow_engine

    await flow_engine.shutdown()


@pytest.fixture
async def test_database() -> AsyncGenerator[DatabaseManager, None]:
    """创建测试数据库"""
    # 使用 SQLite 内存数据库进行测试
    db_manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await db_manager.initialize()

    yield db_manager

    await db_manager.close()
