"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级从高到低：
初始化参数 > 环境变量 > .env > config.yaml > secrets。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("TUTOR_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class TutorSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 后端服务 ----
    backend_base_url: str = Field(
        default="https://imessage-gemini-chatbot.vercel.app",
        description="后端服务基础URL（预览/测试环境可在此切换）",
    )
    backend_model: Optional[str] = Field(default=None, description="可选的模型名覆盖，随每个请求发送")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 存储与日志 ----
    storage_root: str = Field(default=".storage", description="存储根目录")
    snapshot_key: str = Field(default="chat_store_snapshot", description="快照在键值存储中的键名")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 对话与记忆 ----
    max_context_messages: int = Field(default=20, ge=1, le=100, description="请求回复时携带的最近消息数")
    memory_history_window: int = Field(default=24, ge=1, le=200, description="记忆总结使用的最近消息数")
    memory_sync_debounce_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="记忆同步前的等待时间，期间的重复请求会被合并",
    )

    # ---- 翻译与朗读 ----
    translation_target_lang: str = Field(default="Korean", description="AI 消息翻译目标语言")
    tts_style: Optional[str] = Field(default=None, description="可选的朗读风格提示")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("backend_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("backend_base_url must start with http:// or https://")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = TutorSettings()

