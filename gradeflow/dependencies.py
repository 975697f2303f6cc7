"""FastAPI 依赖注入工具。"""

from typing import Optional

from fastapi import Depends, Header, Request

from gradeflow.exceptions import UnauthenticatedError
from gradeflow.models import User
from gradeflow.security import decode_token
from gradeflow.services import Services
from gradeflow.services.policy import Caller


def get_services(request: Request) -> Services:
    """从应用状态中取出服务容器。"""

    return request.app.state.services


def get_current_caller(
    authorization: Optional[str] = Header(None),
    services: Services = Depends(get_services),
) -> Caller:
    """从 Bearer Token 解析调用方身份。"""

    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthenticatedError()

    payload = decode_token(authorization[7:], services.settings.secret_key)
    if not payload or payload.get("sub") is None:
        raise UnauthenticatedError()

    user = services.store.get(User, int(payload["sub"]))
    if user is None:
        raise UnauthenticatedError()
    return Caller.of(user)
