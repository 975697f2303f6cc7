"""学生视图API。"""

from typing import List

from fastapi import APIRouter, Depends

from gradeflow.dependencies import get_current_caller, get_services
from gradeflow.models import UserRole
from gradeflow.schemas.gradebook import AssignmentRead, StudentStats
from gradeflow.services import Services
from gradeflow.services.policy import Caller

router = APIRouter()


@router.get("/assignments", response_model=List[AssignmentRead])
def student_assignments(
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    caller = services.policy.require_role(caller, UserRole.STUDENT)
    return services.classroom.list_assignments(caller)


@router.get("/stats", response_model=StudentStats)
def student_stats(
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """待完成作业数、已完成作业数与平均分。"""
    caller = services.policy.require_role(caller, UserRole.STUDENT)
    return services.views.student_stats(caller.id)
