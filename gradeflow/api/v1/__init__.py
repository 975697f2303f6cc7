"""API v1 路由包入口。"""

from fastapi import APIRouter

from gradeflow.api.v1 import assignments, auth, classes, feedback, student, submissions

router = APIRouter(prefix="/api/v1")

# 注册子路由
router.include_router(auth.router, prefix="/auth", tags=["认证"])
router.include_router(classes.router, prefix="/classes", tags=["班级"])
router.include_router(assignments.router, prefix="/assignments", tags=["作业"])
router.include_router(submissions.router, prefix="/submissions", tags=["提交"])
router.include_router(feedback.router, prefix="/feedback", tags=["反馈"])
router.include_router(student.router, prefix="/student", tags=["学生"])
