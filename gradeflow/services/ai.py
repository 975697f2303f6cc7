"""大模型评分提供方：Gemini（LangChain 结构化输出）与 OpenAI（JSON 模式）。

两者可互换，对外只暴露 ``GradingOracle.grade`` 契约。重试与超时属于这里，
生命周期层只调用一次。
"""

from __future__ import annotations

import json
import logging
from typing import Type, TypeVar

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from openai import OpenAI, OpenAIError
from pydantic import BaseModel

from gradeflow.config import Settings
from gradeflow.exceptions import OracleError
from gradeflow.services.grading import (
    AssignmentContext,
    GradingResult,
    parse_grading_payload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

SYSTEM_PROMPT = (
    "You are an expert teacher assistant with expertise in grading and providing "
    "constructive feedback. Return JSON only."
)


def build_user_prompt(content: str, context: AssignmentContext) -> str:
    criteria = "\n".join(
        f"- {item.get('name')} ({item.get('weight', '')}%)"
        if isinstance(item, dict)
        else f"- {item}"
        for item in context.rubric.get("criteria") or []
    )
    return (
        f"Grade the following {context.type} submission.\n\n"
        f"ASSIGNMENT: {context.title}\n"
        f"DESCRIPTION: {context.description}\n\n"
        f"GRADING RUBRIC:\n{criteria}\n\n"
        f"STUDENT SUBMISSION:\n{content}\n\n"
        "Return JSON with fields:\n"
        "- score (0-100)\n"
        "- rubric_scores (object keyed by rubric criterion name, each 0-100)\n"
        "- feedback: {strengths: [2-3 items], improvements: [2-3 items], comments: string}\n"
    )


class GeminiNotConfiguredError(OracleError):
    """当未提供 Gemini API Key 时抛出。"""


class GeminiJSONClient:
    """使用 LangChain 封装的 Gemini 结构化输出。"""

    def __init__(
        self,
        settings: Settings,
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
    ) -> None:
        self.settings = settings
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._chat: ChatGoogleGenerativeAI | None = None

    @property
    def is_available(self) -> bool:
        return bool(self.settings.gemini_api_key)

    def _get_chat(self) -> ChatGoogleGenerativeAI:
        if not self.is_available:
            raise GeminiNotConfiguredError("Gemini API 未配置")
        if self._chat is None:
            self._chat = ChatGoogleGenerativeAI(
                model=self.settings.gemini_model,
                google_api_key=self.settings.gemini_api_key,
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
                timeout=self.settings.grading_timeout_seconds,
            )
        return self._chat

    def structured_predict(
        self,
        schema: Type[T],
        system_prompt: str,
        user_prompt: str,
    ) -> T:
        """根据 prompt 生成并校验结构化结果。"""

        chat = self._get_chat()
        try:
            chain = chat.with_structured_output(schema=schema)
            result: T = chain.invoke(
                [
                    SystemMessage(content=system_prompt),
                    HumanMessage(content=user_prompt),
                ]
            )
        except Exception as exc:
            raise OracleError("Gemini 结构化生成失败", {"reason": str(exc)}) from exc
        return result


class GeminiGradingOracle:
    """基于 Gemini 的评分提供方。"""

    def __init__(self, settings: Settings, client: GeminiJSONClient | None = None) -> None:
        self.client = client or GeminiJSONClient(settings)

    def grade(self, content: str, context: AssignmentContext) -> GradingResult:
        result = self.client.structured_predict(
            GradingResult, SYSTEM_PROMPT, build_user_prompt(content, context)
        )
        if result is None:
            raise OracleError("Gemini 返回了空结果")
        return parse_grading_payload(result)


class OpenAIGradingOracle:
    """基于 OpenAI Chat Completions JSON 模式的评分提供方。"""

    def __init__(self, settings: Settings, client: OpenAI | None = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise OracleError("OpenAI API 未配置")
            self._client = OpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.grading_timeout_seconds,
            )
        return self._client

    def grade(self, content: str, context: AssignmentContext) -> GradingResult:
        try:
            response = self.client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(content, context)},
                ],
                response_format={"type": "json_object"},
                temperature=0.5,
                max_tokens=1024,
            )
        except OpenAIError as exc:
            raise OracleError("OpenAI 评分调用失败", {"reason": str(exc)}) from exc

        raw = response.choices[0].message.content if response.choices else None
        if not raw:
            raise OracleError("OpenAI 返回了空结果")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("OpenAI returned non-JSON grading output: %.200s", raw)
            raise OracleError("评分结果不是合法 JSON", {"reason": str(exc)}) from exc
        return parse_grading_payload(payload)
