"""反馈API：查看与教师复核。"""

from fastapi import APIRouter, Depends

from gradeflow.dependencies import get_current_caller, get_services
from gradeflow.schemas.gradebook import FeedbackRead, ReviewInput
from gradeflow.services import Services
from gradeflow.services.policy import Caller

router = APIRouter()


@router.get("/{feedback_id}", response_model=FeedbackRead)
def get_feedback(
    feedback_id: int,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    return services.classroom.get_feedback(caller, feedback_id)


@router.put("/{feedback_id}", response_model=FeedbackRead)
def review_feedback(
    feedback_id: int,
    review_data: ReviewInput,
    caller: Caller = Depends(get_current_caller),
    services: Services = Depends(get_services),
):
    """教师复核：覆盖教师分数与评语，提交状态变为 teacher_reviewed。"""
    return services.lifecycle.review(caller, feedback_id, review_data)
