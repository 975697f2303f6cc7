"""自动评分（Grading Oracle）的契约与离线实现。

核心只依赖 ``GradingOracle.grade`` 这一契约；具体由哪个大模型实现由配置
决定。任何失败（网络、超时、无法解析的输出）都以 OracleError 表达。
"""

from __future__ import annotations

import hashlib
from typing import Any, Dict, List, Optional, Protocol

from pydantic import AliasChoices, BaseModel, Field, field_validator

from gradeflow.config import Settings
from gradeflow.exceptions import OracleError
from gradeflow.models import Assignment
from gradeflow.schemas.gradebook import AIComments

# 作业未配置评分标准时使用，至少覆盖 content/organization/grammar/creativity 四个维度
DEFAULT_RUBRIC: Dict[str, Any] = {
    "criteria": [
        {"name": "content", "weight": 40, "description": "内容的准确性与深度"},
        {"name": "organization", "weight": 25, "description": "结构与逻辑是否清晰"},
        {"name": "grammar", "weight": 20, "description": "语言与语法"},
        {"name": "creativity", "weight": 15, "description": "创造性与批判性思维"},
    ]
}


class AssignmentContext(BaseModel):
    """传给评分方的作业上下文。"""

    title: str
    description: str
    type: str
    rubric: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_RUBRIC))

    @classmethod
    def from_assignment(cls, assignment: Assignment) -> "AssignmentContext":
        return cls(
            title=assignment.title,
            description=assignment.description,
            type=getattr(assignment.type, "value", str(assignment.type)),
            rubric=assignment.rubric or dict(DEFAULT_RUBRIC),
        )

    def criteria_names(self) -> List[str]:
        names: List[str] = []
        for idx, item in enumerate(self.rubric.get("criteria") or [], start=1):
            if isinstance(item, dict):
                names.append(str(item.get("name") or f"criterion_{idx}"))
            elif isinstance(item, str):
                names.append(item)
        return names or [c["name"] for c in DEFAULT_RUBRIC["criteria"]]


class GradingResult(BaseModel):
    """评分方返回的结构化结果，兼容 ``overallScore``/``rubricScores`` 写法。"""

    score: int = Field(ge=0, le=100, validation_alias=AliasChoices("score", "overallScore"))
    rubric_scores: Dict[str, int] = Field(
        default_factory=dict, validation_alias=AliasChoices("rubric_scores", "rubricScores")
    )
    feedback: AIComments = Field(default_factory=AIComments)

    model_config = {"populate_by_name": True}

    @field_validator("score", mode="before")
    @classmethod
    def _round_score(cls, value: Any) -> Any:
        if isinstance(value, float):
            return int(value + 0.5)
        return value

    @field_validator("rubric_scores", mode="before")
    @classmethod
    def _round_rubric(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                str(k): int(v + 0.5) if isinstance(v, float) else v for k, v in value.items()
            }
        return value

    @field_validator("rubric_scores")
    @classmethod
    def _rubric_range(cls, value: Dict[str, int]) -> Dict[str, int]:
        for name, score in value.items():
            if not 0 <= score <= 100:
                raise ValueError(f"{name} 的分数必须在 0-100 之间")
        return value


class GradingOracle(Protocol):
    """自动评分能力。"""

    def grade(self, content: str, context: AssignmentContext) -> GradingResult:
        ...


def parse_grading_payload(payload: Any) -> GradingResult:
    """校验评分方的原始输出，无法解析时抛出 OracleError。"""

    try:
        if isinstance(payload, GradingResult):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        return GradingResult.model_validate(payload)
    except ValueError as exc:
        raise OracleError("评分结果无法解析", {"reason": str(exc)}) from exc


class HeuristicGradingOracle:
    """确定性的离线评分，便于本地开发与演示，后续可替换为真实大模型。"""

    def grade(self, content: str, context: AssignmentContext) -> GradingResult:
        criteria = context.criteria_names()
        rubric_scores = {
            name: self._score_text(content, offset=idx * 2)
            for idx, name in enumerate(criteria)
        }
        overall = int(sum(rubric_scores.values()) / len(rubric_scores) + 0.5)
        return GradingResult(
            score=overall,
            rubric_scores=rubric_scores,
            feedback=AIComments(
                strengths=[self._summarize_text(content, "提交内容较少")],
                improvements=[
                    "补充具体的例子或证据以支持论点。",
                    "对照评分标准逐项检查，完善薄弱环节。",
                ],
                comments=f"《{context.title}》的自动评分结果，仅供教师复核参考。",
            ),
        )

    def _score_text(self, text: str, offset: int) -> int:
        if not text.strip():
            return 10
        digest = hashlib.sha256(text.encode("utf-8", errors="ignore")).digest()
        offset %= len(digest) - 1
        value = int.from_bytes(digest[offset : offset + 2], "big")
        return 50 + value % 51  # 50-100 之间

    def _summarize_text(self, text: str, fallback: str, max_length: int = 80) -> str:
        cleaned = " ".join(text.split())
        if not cleaned:
            return fallback
        return cleaned[:max_length] + ("..." if len(cleaned) > max_length else "")


def build_grading_oracle(settings: Settings, provider: Optional[str] = None) -> GradingOracle:
    """按配置选择评分提供方。"""

    provider = provider or settings.grading_provider
    if provider == "heuristic":
        return HeuristicGradingOracle()

    from gradeflow.services.ai import GeminiGradingOracle, OpenAIGradingOracle

    if provider == "gemini":
        return GeminiGradingOracle(settings)
    if provider == "openai":
        return OpenAIGradingOracle(settings)
    raise ValueError(f"未知的评分提供方: {provider}")
