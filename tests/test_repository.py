"""
存储仓库测试（内存实现与 SQLAlchemy 实现共用同一组用例）
"""
from datetime import timedelta

import pytest

from flow_runtime.models.execution import Execution, ExecutionStep, ExecutionStatus, StepStatus
from flow_runtime.storage.repository import InMemoryFlowRepository, InMemoryExecutionRepository
from flow_runtime.storage.sqlalchemy_repository import (
    DatabaseManager, SQLAlchemyFlowRepository, SQLAlchemyExecutionRepository
)

from helpers import trigger_node, shell_node, condition_node, compare, edge, make_graph


@pytest.fixture(params=["memory", "sqlalchemy"])
async def repositories(request):
    if request.param == "memory":
        yield InMemoryFlowRepository(), InMemoryExecutionRepository()
        return

    db_manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await db_manager.initialize()
    yield SQLAlchemyFlowRepository(db_manager), SQLAlchemyExecutionRepository(db_manager)
    await db_manager.close()


def sample_graph(flow_id="flow-1", **flow_fields):
    nodes = [
        trigger_node(),
        shell_node("b", "echo b", label="Second"),
        condition_node("a", compare("x", "neq", "y")),
    ]
    edges = [edge("trigger", "b"), edge("b", "a", label="true")]
    return make_graph(nodes, edges, flow_id=flow_id, **flow_fields)


@pytest.mark.asyncio
async def test_graph_round_trip(repositories):
    flow_repo, _ = repositories
    graph = sample_graph(description="demo", trigger_config='{"triggerType": "manual"}')

    await flow_repo.save_graph(graph)
    loaded = await flow_repo.get_graph("flow-1")

    assert loaded.flow.name == "Test flow"
    assert loaded.flow.description == "demo"
    assert loaded.flow.trigger_config == '{"triggerType": "manual"}'
    assert [node.id for node in loaded.nodes] == ["trigger", "b", "a"]
    assert [node.config for node in loaded.nodes] == [node.config for node in graph.nodes]
    assert loaded.get_node("b").label == "Second"
    assert [(e.id, e.source_node_id, e.target_node_id, e.branch) for e in loaded.edges] == [
        ("trigger->b", "trigger", "b", None),
        ("b->a", "b", "a", "true"),
    ]
    assert loaded.flow.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_save_replaces_nodes_and_edges(repositories):
    flow_repo, _ = repositories
    await flow_repo.save_graph(sample_graph())

    smaller = make_graph([trigger_node(), shell_node("only", "echo")], [edge("trigger", "only")])
    await flow_repo.save_graph(smaller)
    loaded = await flow_repo.get_graph("flow-1")

    assert [node.id for node in loaded.nodes] == ["trigger", "only"]
    assert len(loaded.edges) == 1


@pytest.mark.asyncio
async def test_missing_flow(repositories):
    flow_repo, _ = repositories

    assert await flow_repo.get("missing") is None
    assert await flow_repo.get_graph("missing") is None
    assert await flow_repo.delete("missing") is False


@pytest.mark.asyncio
async def test_list_with_filters(repositories):
    flow_repo, _ = repositories
    await flow_repo.save_graph(sample_graph("f1", workspace_id="ws1", status="active"))
    await flow_repo.save_graph(sample_graph("f2", workspace_id="ws1", status="disabled"))
    await flow_repo.save_graph(sample_graph("f3", workspace_id="ws2", status="active"))

    assert {f.id for f in await flow_repo.list()} == {"f1", "f2", "f3"}
    assert {f.id for f in await flow_repo.list(filters={"workspace_id": "ws1"})} == {"f1", "f2"}
    assert {f.id for f in await flow_repo.list(filters={"status": "active"})} == {"f1", "f3"}
    assert len(await flow_repo.list(offset=1, limit=1)) == 1


@pytest.mark.asyncio
async def test_delete_flow(repositories):
    flow_repo, _ = repositories
    await flow_repo.save_graph(sample_graph())

    assert await flow_repo.delete("flow-1") is True
    assert await flow_repo.get("flow-1") is None


@pytest.mark.asyncio
async def test_execution_lifecycle(repositories):
    flow_repo, execution_repo = repositories
    await flow_repo.save_graph(sample_graph())
    execution = Execution(flow_id="flow-1", trigger_type="manual")
    execution.start()
    await execution_repo.create(execution)

    stored = await execution_repo.get(execution.id)
    assert stored.status == ExecutionStatus.RUNNING

    execution.fail('Node "b" failed: boom')
    assert await execution_repo.update(execution) is True

    stored = await execution_repo.get(execution.id)
    assert stored.status == ExecutionStatus.FAILED
    assert stored.error == 'Node "b" failed: boom'
    assert stored.completed_at is not None


@pytest.mark.asyncio
async def test_update_unknown_execution(repositories):
    _, execution_repo = repositories

    assert await execution_repo.update(Execution(flow_id="x")) is False
    assert await execution_repo.get("missing") is None


@pytest.mark.asyncio
async def test_list_by_flow_newest_first(repositories):
    flow_repo, execution_repo = repositories
    await flow_repo.save_graph(sample_graph())
    older = Execution(flow_id="flow-1")
    newer = Execution(flow_id="flow-1", created_at=older.created_at + timedelta(seconds=5))
    newer.start()
    newer.complete()
    for execution in (older, newer, Execution(flow_id="other")):
        await execution_repo.create(execution)

    assert [e.id for e in await execution_repo.list_by_flow("flow-1")] == [newer.id, older.id]
    assert [e.id for e in await execution_repo.list_by_flow("flow-1", status=ExecutionStatus.SUCCESS)] == [newer.id]


@pytest.mark.asyncio
async def test_steps_keep_creation_order(repositories):
    flow_repo, execution_repo = repositories
    await flow_repo.save_graph(sample_graph())
    execution = Execution(flow_id="flow-1")
    await execution_repo.create(execution)

    first = ExecutionStep(execution_id=execution.id, node_id="trigger")
    first.start()
    await execution_repo.create_step(first)
    second = ExecutionStep(execution_id=execution.id, node_id="b")
    second.skip()
    await execution_repo.create_step(second)

    first.succeed({"triggered": True})
    assert await execution_repo.update_step(first) is True

    steps = await execution_repo.list_steps(execution.id)
    assert [step.node_id for step in steps] == ["trigger", "b"]
    assert steps[0].status == StepStatus.SUCCESS
    assert steps[0].output_data == {"triggered": True}
    assert steps[1].status == StepStatus.SKIPPED
    assert steps[1].started_at is None


@pytest.mark.asyncio
async def test_delete_flow_removes_executions(test_database):
    flow_repo = SQLAlchemyFlowRepository(test_database)
    execution_repo = SQLAlchemyExecutionRepository(test_database)
    await flow_repo.save_graph(sample_graph())
    execution = Execution(flow_id="flow-1")
    await execution_repo.create(execution)
    step = ExecutionStep(execution_id=execution.id, node_id="trigger")
    step.skip()
    await execution_repo.create_step(step)

    assert await flow_repo.delete("flow-1") is True

    assert await execution_repo.get(execution.id) is None
    assert await execution_repo.list_steps(execution.id) == []
