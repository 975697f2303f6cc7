"""领域异常定义。

服务层只抛出这里定义的异常，由 API 层统一映射为 HTTP 响应，
每一类错误都保持可区分，不折叠为通用失败。
"""

from typing import Any, Dict, List, Optional


class GradeflowError(Exception):
    """所有领域错误的基类。"""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(GradeflowError):
    """引用的实体不存在。"""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} {entity_id} 不存在", {"entity": entity, "id": entity_id}
        )
        self.entity = entity
        self.entity_id = entity_id


class ForbiddenError(GradeflowError):
    """调用方已认证但无权执行该操作。"""

    kind = "forbidden"
    status_code = 403


class UnauthenticatedError(GradeflowError):
    """缺少调用方身份。"""

    kind = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "无法验证凭据") -> None:
        super().__init__(message)


class ValidationError(GradeflowError):
    """输入不合法，``violations`` 为逐字段的错误列表。"""

    kind = "validation_error"
    status_code = 422

    def __init__(self, message: str, violations: Optional[List[Dict[str, str]]] = None) -> None:
        super().__init__(message)
        self.violations = violations or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [{"field": field, "message": message}])

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationError":
        """把 pydantic 的 ValidationError 转换为逐字段错误。"""
        violations = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())) or "__root__",
                "message": err.get("msg", "invalid"),
            }
            for err in exc.errors()
        ]
        return cls("输入数据不合法", violations)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["violations"] = self.violations
        return payload


class ConflictError(GradeflowError):
    """违反唯一性约束，例如重复反馈或重复选课。"""

    kind = "conflict"
    status_code = 409


class InvalidTransitionError(ConflictError):
    """提交状态试图倒退。"""

    kind = "invalid_transition"


class OracleError(GradeflowError):
    """自动评分调用失败或返回无法解析的结果。"""

    kind = "oracle_error"
    status_code = 502
