"""
运行时配置与日志初始化
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """运行时配置"""
    database_url: str = "sqlite+aiosqlite:///./flow_runtime.db"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    log_level: str = "INFO"
    user_data_dir: Path = field(default_factory=lambda: Path.home() / ".flow-runtime")
    shell_timeout_ms: int = 30_000
    http_timeout_ms: int = 30_000
    trigger_refresh_seconds: float = 60.0

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """从环境变量（以及 .env 文件）加载配置"""
        load_dotenv(env_file)

        defaults = cls()
        user_data_dir = os.getenv("FLOW_RUNTIME_USER_DATA_DIR")
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            api_host=os.getenv("API_HOST", defaults.api_host),
            api_port=int(os.getenv("API_PORT", str(defaults.api_port))),
            api_reload=_env_bool("API_RELOAD"),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            user_data_dir=Path(user_data_dir).expanduser() if user_data_dir else defaults.user_data_dir,
            shell_timeout_ms=int(os.getenv("SHELL_TIMEOUT_MS", str(defaults.shell_timeout_ms))),
            http_timeout_ms=int(os.getenv("HTTP_TIMEOUT_MS", str(defaults.http_timeout_ms))),
            trigger_refresh_seconds=float(
                os.getenv("TRIGGER_REFRESH_SECONDS", str(defaults.trigger_refresh_seconds))
            ),
        )


def configure_logging(level: str = "INFO"):
    """配置日志"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
