"""提交API：待复核队列、我的提交、详情、手动评分与重新评分。"""

from typing import List

from fastapi import APIRouter, Depends, status

from gradeflow.dependencies import get_current_caller, get_services
from gradeflow.models import UserRole
from gradeflow.schemas.gradebook import FeedbackRead, ReviewInput, SubmissionDetails, SubmitResult
from gradeflow.services import Services
from gradeflow.services.policy import Caller

router = APIRouter()


@router.get("/pending", response_model=List[SubmissionDetails])
def pending_reviews(
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """教师的待复核队列（状态为 ai_graded 的提交）。"""
    caller = services.policy.require_role(caller, UserRole.TEACHER)
    return services.views.pending_reviews(caller.id)


@router.get("/my", response_model=List[SubmissionDetails])
def my_submissions(
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.list_my_submissions(caller)


@router.get("/{submission_id}", response_model=SubmissionDetails)
def get_submission(
    submission_id: int,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.get_submission(caller, submission_id)


@router.post(
    "/{submission_id}/grade",
    response_model=FeedbackRead,
    status_code=status.HTTP_201_CREATED,
)
def grade_submission(
    submission_id: int,
    grade_data: ReviewInput,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """教师为尚无反馈的提交手动评分。"""
    return services.lifecycle.grade_manually(caller, submission_id, grade_data)


@router.post("/{submission_id}/retry-grading", response_model=SubmitResult)
def retry_grading(
    submission_id: int,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    outcome = services.lifecycle.retry_grading(caller, submission_id)
    return SubmitResult.model_validate(outcome)
