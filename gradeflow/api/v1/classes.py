"""班级与选课API。"""

from typing import List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from gradeflow.dependencies import get_current_caller, get_services
from gradeflow.schemas.gradebook import ClassCreate, ClassRead, EnrollmentRead, UserRead
from gradeflow.services import Services
from gradeflow.services.policy import Caller

router = APIRouter()


class EnrollRequest(BaseModel):
    student_id: int


@router.get("", response_model=List[ClassRead])
def list_classes(
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """教师返回自己的班级，学生返回已加入的班级。"""
    return services.classroom.list_classes(caller)


@router.post("", response_model=ClassRead, status_code=status.HTTP_201_CREATED)
def create_class(
    class_data: ClassCreate,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.create_class(caller, class_data)


@router.get("/{class_id}", response_model=ClassRead)
def get_class(
    class_id: int,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.get_class(caller, class_id)


@router.post(
    "/{class_id}/enroll", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED
)
def enroll_student(
    class_id: int,
    body: EnrollRequest,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """任课教师将学生加入班级。"""
    return services.classroom.enroll(caller, class_id, body.student_id)


@router.get("/{class_id}/students", response_model=List[UserRead])
def list_students(
    class_id: int,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.list_students(caller, class_id)
