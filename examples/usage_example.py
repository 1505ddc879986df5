"""
流程运行时使用示例
"""
import asyncio
from pathlib import Path
import logging

from flow_runtime import FlowEngine, FlowParser
from flow_runtime.integrations import EventBus, STEP_UPDATE_TOPIC, EXECUTION_COMPLETE_TOPIC
from flow_runtime.storage.repository import InMemoryFlowRepository, InMemoryExecutionRepository


# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


async def main():
    flow_repo = InMemoryFlowRepository()
    execution_repo = InMemoryExecutionRepository()
    event_bus = EventBus()

    # 订阅执行事件
    event_bus.subscribe(
        STEP_UPDATE_TOPIC,
        lambda event: print(f"  step {event.payload['nodeId']}: {event.payload['status']}")
    )
    event_bus.subscribe(
        EXECUTION_COMPLETE_TOPIC,
        lambda event: print(f"execution finished: {event.payload}")
    )

    engine = FlowEngine(
        flow_repository=flow_repo,
        execution_repository=execution_repo,
        event_bus=event_bus
    )

    graph = FlowParser().parse_file(Path(__file__).parent / "health_check.yaml")
    await flow_repo.save_graph(graph)

    result = await engine.validate(graph.flow.id)
    print(f"valid: {result.valid}")

    # 手动触发，触发数据通过 {{trigger.payload.url}} 传给 HTTP 动作
    execution_id = await engine.run(
        graph.flow.id,
        payload={"url": "https://example.com"},
        wait=True
    )
    execution = await engine.wait_for(execution_id)
    print(f"status: {execution.status.value}")

    await engine.shutdown()
    await event_bus.close()


if __name__ == "__main__":
    asyncio.run(main())
