"""FastAPI 入口：组装服务容器、注册路由与统一的错误处理。"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gradeflow.api.v1 import router as api_v1_router
from gradeflow.config import Settings, get_settings
from gradeflow.exceptions import GradeflowError, UnauthenticatedError, ValidationError
from gradeflow.services import Services, build_services

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None, services: Optional[Services] = None
) -> FastAPI:
    """应用工厂，便于测试时注入独立的服务容器。"""

    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.services.close()

    app = FastAPI(title="Gradeflow API", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(GradeflowError)
    async def handle_domain_error(request: Request, exc: GradeflowError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError.from_pydantic(exc)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    app.include_router(api_v1_router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "grading_provider": settings.grading_provider}

    return app


app = create_app()
