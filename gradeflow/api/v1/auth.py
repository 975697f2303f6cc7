"""用户认证API。"""

from fastapi import APIRouter, Depends, Form, status
from pydantic import BaseModel

from gradeflow.dependencies import get_current_caller, get_services
from gradeflow.exceptions import UnauthenticatedError
from gradeflow.schemas.gradebook import UserCreate, UserRead
from gradeflow.security import create_token, verify_password
from gradeflow.services import Services
from gradeflow.services.policy import Caller

router = APIRouter()


class Token(BaseModel):
    access_token: str
    token_type: str


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, services: Services = Depends(get_services)):
    """用户注册。"""
    return services.classroom.register_user(user_data)


@router.post("/login", response_model=Token)
def login(
    username: str = Form(...),
    password: str = Form(...),
    services: Services = Depends(get_services),
):
    """用户登录，返回Token。"""
    user = services.classroom.find_user_by_username(username)
    if not user or not verify_password(password, user.password_hash):
        raise UnauthenticatedError("用户名或密码错误")

    settings = services.settings
    access_token = create_token(
        user.id, user.role.value, settings.secret_key, settings.token_expire_hours
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserRead)
def get_current_user_info(
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """获取当前登录用户信息。"""
    return services.classroom.get_user(caller, caller.id)
