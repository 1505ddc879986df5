"""
定时触发调度器

扫描所有未禁用流程的触发节点，triggerType 为 schedule 的按固定间隔自动运行。
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from ..models.flow import FlowStatus, TriggerConfig, TriggerType, parse_node_config
from ..storage.repository import FlowRepository


logger = logging.getLogger(__name__)


UNIT_SECONDS: Dict[str, float] = {
    "minutes": 60.0,
    "hours": 3600.0,
    "days": 86400.0,
}

_PAGE_SIZE = 100


@dataclass
class ScheduledJob:
    """定时任务"""
    flow_id: str
    interval_seconds: float
    task: asyncio.Task


def schedule_interval(schedule: Optional[Dict[str, Any]], unit_seconds: Dict[str, float] = None) -> float:
    """间隔秒数，配置非法时返回 0"""
    if not schedule:
        return 0.0
    units = unit_seconds or UNIT_SECONDS
    multiplier = units.get(schedule.get("intervalUnit"), 0.0)
    try:
        value = float(schedule.get("intervalValue") or 0)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, value * multiplier)


class TriggerScheduler:
    """定时触发调度器"""

    def __init__(
        self,
        engine,
        flow_repository: FlowRepository,
        refresh_seconds: float = 60.0,
        unit_seconds: Dict[str, float] = None
    ):
        self.engine = engine
        self.flow_repository = flow_repository
        self.refresh_seconds = refresh_seconds
        self.unit_seconds = unit_seconds or UNIT_SECONDS
        self.jobs: Dict[str, ScheduledJob] = {}
        self._refresh_task: Optional[asyncio.Task] = None

    async def start(self):
        """加载定时流程并启动周期性重新扫描"""
        await self.refresh()
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_loop())
        logger.info(f"Trigger scheduler started with {len(self.jobs)} scheduled flow(s)")

    async def stop(self):
        """停止所有定时任务"""
        tasks = [job.task for job in self.jobs.values()]
        if self._refresh_task is not None:
            tasks.append(self._refresh_task)
            self._refresh_task = None
        self.jobs.clear()

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Trigger scheduler stopped")

    async def refresh(self):
        """重新扫描流程，间隔变化的任务重建，不再定时的任务停止"""
        intervals = await self._scan()

        for flow_id, interval in intervals.items():
            existing = self.jobs.get(flow_id)
            if existing and existing.interval_seconds == interval:
                continue
            if existing:
                existing.task.cancel()

            task = asyncio.create_task(self._job_loop(flow_id, interval))
            self.jobs[flow_id] = ScheduledJob(flow_id=flow_id, interval_seconds=interval, task=task)
            logger.info(f"Scheduled flow {flow_id} every {interval:g}s")

        for flow_id in list(self.jobs):
            if flow_id not in intervals:
                self.jobs.pop(flow_id).task.cancel()
                logger.info(f"Unscheduled flow {flow_id}")

    async def _scan(self) -> Dict[str, float]:
        intervals: Dict[str, float] = {}
        offset = 0
        while True:
            flows = await self.flow_repository.list(offset=offset, limit=_PAGE_SIZE)
            for flow in flows:
                if flow.status == FlowStatus.DISABLED.value:
                    continue
                interval = await self._flow_interval(flow.id)
                if interval > 0:
                    intervals[flow.id] = interval
            if len(flows) < _PAGE_SIZE:
                return intervals
            offset += _PAGE_SIZE

    async def _flow_interval(self, flow_id: str) -> float:
        graph = await self.flow_repository.get_graph(flow_id)
        if graph is None:
            return 0.0
        for node in graph.trigger_nodes():
            config = parse_node_config(node)
            if isinstance(config, TriggerConfig) and config.trigger_type == TriggerType.SCHEDULE.value:
                return schedule_interval(config.schedule, self.unit_seconds)
        return 0.0

    async def _refresh_loop(self):
        while True:
            await asyncio.sleep(self.refresh_seconds)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Failed to refresh scheduled flows: {e}", exc_info=True)

    async def _job_loop(self, flow_id: str, interval: float):
        while True:
            await asyncio.sleep(interval)
            await self.run_flow(flow_id)

    async def run_flow(self, flow_id: str):
        """触发一次定时执行，失败只记录日志"""
        try:
            execution_id = await self.engine.run(flow_id, trigger_type=TriggerType.SCHEDULE.value)
            logger.info(f"Scheduled run of flow {flow_id} started: {execution_id}")
        except Exception as e:
            logger.error(f"Failed to execute scheduled flow {flow_id}: {e}")

    def scheduled_flows(self) -> List[str]:
        return list(self.jobs)
