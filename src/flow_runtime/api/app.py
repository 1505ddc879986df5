"""
FastAPI 应用主文件
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from typing import Dict, Any, Optional

from .. import __version__
from ..config import Settings
from ..core import FlowEngine, TriggerScheduler
from ..exceptions import (
    FlowNotFoundError, ExecutionNotFoundError, FlowValidationError, FlowParseError
)
from ..integrations import EventBus
from ..storage.sqlalchemy_repository import (
    DatabaseManager, SQLAlchemyFlowRepository, SQLAlchemyExecutionRepository
)
from .dependencies import app_state
from .middleware import RequestLoggingMiddleware


logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """创建 FastAPI 应用；settings 缺省时在启动阶段从环境变量读取"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        config = settings or Settings.from_env()
        logger.info("Starting flow runtime API...")

        db_manager = DatabaseManager(config.database_url)
        await db_manager.initialize()

        flow_repo = SQLAlchemyFlowRepository(db_manager)
        execution_repo = SQLAlchemyExecutionRepository(db_manager)
        event_bus = EventBus()

        engine = FlowEngine(
            flow_repository=flow_repo,
            execution_repository=execution_repo,
            event_bus=event_bus,
            settings=config
        )
        trigger_scheduler = TriggerScheduler(
            engine,
            flow_repo,
            refresh_seconds=config.trigger_refresh_seconds
        )
        await trigger_scheduler.start()

        app_state.update({
            "settings": config,
            "db_manager": db_manager,
            "flow_repo": flow_repo,
            "execution_repo": execution_repo,
            "event_bus": event_bus,
            "engine": engine,
            "trigger_scheduler": trigger_scheduler
        })

        logger.info("Flow runtime API started")

        yield

        logger.info("Shutting down flow runtime API...")
        await trigger_scheduler.stop()
        await engine.shutdown()
        await event_bus.close()
        await db_manager.close()
        app_state.clear()
        logger.info("Flow runtime API shut down")

    app = FastAPI(
        title="Flow Runtime API",
        description="可视化自动化流程运行时 RESTful API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    from .routers import flows, executions
    app.include_router(flows.router, prefix="/api/v1/flows", tags=["flows"])
    app.include_router(executions.router, prefix="/api/v1/executions", tags=["executions"])

    register_exception_handlers(app)

    @app.get("/", tags=["root"])
    async def root():
        """API根路径"""
        return {
            "name": "Flow Runtime API",
            "version": __version__,
            "status": "running",
            "docs": "/docs"
        }

    return app


def _error(status_code: int, error: str, message: str, details: Any = None) -> JSONResponse:
    content: Dict[str, Any] = {"error": error, "message": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI):
    """领域异常到 HTTP 响应的映射"""

    @app.exception_handler(FlowNotFoundError)
    async def flow_not_found_handler(request: Request, exc: FlowNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "flow_not_found", str(exc))

    @app.exception_handler(ExecutionNotFoundError)
    async def execution_not_found_handler(request: Request, exc: ExecutionNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "execution_not_found", str(exc))

    @app.exception_handler(FlowValidationError)
    async def validation_error_handler(request: Request, exc: FlowValidationError):
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "validation_error",
            str(exc),
            [error.to_dict() for error in exc.errors]
        )

    @app.exception_handler(FlowParseError)
    async def parse_error_handler(request: Request, exc: FlowParseError):
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_flow_document", str(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """全局异常处理器"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": getattr(request.state, "request_id", None)
            }
        )


app = create_app()
