"""
Flow Runtime API 主入口
"""
import uvicorn

from flow_runtime.config import Settings, configure_logging

# 加载配置（含 .env）并配置日志
settings = Settings.from_env()
configure_logging(settings.log_level)

# 导入应用
from flow_runtime.api.app import app


if __name__ == "__main__":
    if settings.api_reload:
        # 开发模式
        uvicorn.run(
            "flow_runtime.api.app:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=True,
            log_level=settings.log_level.lower()
        )
    else:
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower()
        )
