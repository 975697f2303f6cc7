"""应用配置管理。

使用 Pydantic Settings 统一读取环境变量，便于在本地/生产之间切换。
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """核心配置项。

    - ``database_url``：默认使用内存 SQLite，参考实现不要求持久化。
    - ``grading_provider``：自动评分的提供方，``gemini`` / ``openai`` / ``heuristic``。
    - ``secret_key``：Token 签名密钥，生产环境必须覆盖。
    """

    database_url: str = Field(
        default="sqlite:///:memory:", description="SQLAlchemy 数据库 URL"
    )
    grading_provider: Literal["gemini", "openai", "heuristic"] = Field(
        default="gemini", description="自动评分提供方"
    )
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API Key")
    gemini_model: str = Field(default="gemini-1.5-pro", description="Gemini 模型名")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    openai_model: str = Field(default="gpt-4o", description="OpenAI 模型名")
    grading_timeout_seconds: float = Field(
        default=60.0, gt=0, description="单次评分调用的超时时间（秒）"
    )
    secret_key: str = Field(
        default="gradeflow-dev-secret", description="Token 签名密钥"
    )
    token_expire_hours: int = Field(default=24, ge=1, description="Token 有效期（小时）")
    log_level: str = Field(default="INFO", description="日志级别")

    model_config = {
        "env_prefix": "GRADEFLOW_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """缓存后的全局配置实例。"""

    return Settings()
