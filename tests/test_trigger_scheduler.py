"""
定时触发调度器测试
"""
import asyncio
from dataclasses import replace

import pytest

from flow_runtime.core.trigger_scheduler import TriggerScheduler, schedule_interval

from helpers import trigger_node, action_node, linear_graph


FAST_UNITS = {"minutes": 0.05, "hours": 3.0}


def scheduled_graph(flow_id, interval_value=1, interval_unit="minutes", trigger_type="schedule"):
    return linear_graph(
        trigger_node(
            triggerType=trigger_type,
            schedule={"intervalValue": interval_value, "intervalUnit": interval_unit},
        ),
        action_node("p", "plugin.action", {"pluginId": "x", "actionId": "y"}),
        flow_id=flow_id,
    )


@pytest.fixture
async def trigger_scheduler(engine, flow_repo):
    scheduler = TriggerScheduler(engine, flow_repo, refresh_seconds=3600, unit_seconds=FAST_UNITS)
    yield scheduler
    await scheduler.stop()


@pytest.mark.parametrize("schedule, expected", [
    ({"intervalValue": 5, "intervalUnit": "minutes"}, 300.0),
    ({"intervalValue": "2", "intervalUnit": "hours"}, 7200.0),
    ({"intervalValue": 1, "intervalUnit": "days"}, 86400.0),
    ({"intervalValue": 1, "intervalUnit": "weeks"}, 0.0),
    ({"intervalValue": "soon", "intervalUnit": "minutes"}, 0.0),
    ({"intervalValue": -3, "intervalUnit": "minutes"}, 0.0),
    (None, 0.0),
])
def test_schedule_interval(schedule, expected):
    assert schedule_interval(schedule) == expected


@pytest.mark.asyncio
async def test_only_enabled_scheduled_flows_are_picked_up(trigger_scheduler, flow_repo):
    await flow_repo.save_graph(scheduled_graph("scheduled"))
    await flow_repo.save_graph(scheduled_graph("manual", trigger_type="manual"))
    disabled = scheduled_graph("disabled")
    await flow_repo.save_graph(replace(disabled, flow=replace(disabled.flow, status="disabled")))
    await flow_repo.save_graph(scheduled_graph("zero", interval_value=0))

    await trigger_scheduler.refresh()

    assert trigger_scheduler.scheduled_flows() == ["scheduled"]
    assert trigger_scheduler.jobs["scheduled"].interval_seconds == pytest.approx(0.05)


@pytest.mark.asyncio
async def test_scheduled_flow_runs_with_schedule_trigger(trigger_scheduler, flow_repo, execution_repo):
    await flow_repo.save_graph(scheduled_graph("scheduled"))

    await trigger_scheduler.start()
    for _ in range(100):
        executions = await execution_repo.list_by_flow("scheduled")
        if executions:
            break
        await asyncio.sleep(0.02)

    assert executions
    assert all(execution.trigger_type == "schedule" for execution in executions)


@pytest.mark.asyncio
async def test_refresh_restarts_changed_and_stops_removed(trigger_scheduler, flow_repo):
    await flow_repo.save_graph(scheduled_graph("a"))
    await flow_repo.save_graph(scheduled_graph("b"))
    await trigger_scheduler.refresh()
    original_task = trigger_scheduler.jobs["a"].task

    await flow_repo.save_graph(scheduled_graph("a", interval_value=1, interval_unit="hours"))
    await flow_repo.delete("b")
    await trigger_scheduler.refresh()

    assert trigger_scheduler.scheduled_flows() == ["a"]
    assert trigger_scheduler.jobs["a"].interval_seconds == pytest.approx(3.0)
    assert trigger_scheduler.jobs["a"].task is not original_task
    await asyncio.gather(original_task, return_exceptions=True)
    assert original_task.cancelled()


@pytest.mark.asyncio
async def test_run_flow_logs_failures(trigger_scheduler):
    # 不存在的流程只记录日志
    await trigger_scheduler.run_flow("missing")


@pytest.mark.asyncio
async def test_stop_cancels_jobs(trigger_scheduler, flow_repo):
    await flow_repo.save_graph(scheduled_graph("a"))
    await trigger_scheduler.start()
    task = trigger_scheduler.jobs["a"].task

    await trigger_scheduler.stop()

    assert trigger_scheduler.scheduled_flows() == []
    assert task.done()
