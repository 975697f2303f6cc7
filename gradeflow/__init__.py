"""Gradeflow：作业提交、自动评分与教师复核的后端服务。"""

__version__ = "0.1.0"
