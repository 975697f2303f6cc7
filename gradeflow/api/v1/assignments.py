"""作业API：发布、查询、提交与提交列表。"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from gradeflow.dependencies import get_current_caller, get_services
from gradeflow.models import UserRole
from gradeflow.schemas.gradebook import (
    AssignmentCreate,
    AssignmentRead,
    AssignmentUpdate,
    AssignmentWithStats,
    SubmissionCreate,
    SubmissionDetails,
    SubmitResult,
)
from gradeflow.services import Services
from gradeflow.services.policy import Caller

router = APIRouter()


@router.get("", response_model=List[AssignmentRead])
def list_assignments(
    class_id: Optional[int] = Query(None),
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.list_assignments(caller, class_id)


@router.post("", response_model=AssignmentRead, status_code=status.HTTP_201_CREATED)
def create_assignment(
    assignment_data: AssignmentCreate,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.create_assignment(caller, assignment_data)


@router.get("/recent", response_model=List[AssignmentWithStats])
def recent_assignments(
    limit: int = Query(5, ge=1, le=50),
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """教师仪表盘：最近发布的作业及提交统计。"""
    caller = services.policy.require_role(caller, UserRole.TEACHER)
    return services.views.recent_assignments(caller.id, limit)


@router.get("/{assignment_id}", response_model=AssignmentRead)
def get_assignment(
    assignment_id: int,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.get_assignment(caller, assignment_id)


@router.patch("/{assignment_id}", response_model=AssignmentRead)
def update_assignment(
    assignment_id: int,
    update_data: AssignmentUpdate,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.update_assignment(caller, assignment_id, update_data)


@router.post(
    "/{assignment_id}/submit",
    response_model=SubmitResult,
    status_code=status.HTTP_201_CREATED,
)
def submit_assignment(
    assignment_id: int,
    submission_data: SubmissionCreate,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """学生提交作业；自动评分失败时提交依然成功，grading_status 为 pending。"""
    outcome = services.lifecycle.submit(
        caller, assignment_id, caller.id, submission_data.content
    )
    return SubmitResult.model_validate(outcome)


@router.get("/{assignment_id}/submissions", response_model=List[SubmissionDetails])
def list_assignment_submissions(
    assignment_id: int,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.list_submissions_for_assignment(caller, assignment_id)
