"""每条消息的临时 UI 状态。

四个功能（语法反馈、原生替代表达、翻译、朗读）各自维护一份
message_id -> FeatureState 的映射，状态机形状相同：

    idle -> loading -> loaded(value) | failed(error)

翻译额外使用 shown / hidden 两个状态表示“已加载且可见 / 已加载但收起”。
这些状态只存在于内存中，进程结束即丢弃，需要时重新获取。
"""

from dataclasses import dataclass
from typing import Any, Generic, Literal, Optional, TypeVar


StateStatus = Literal["idle", "loading", "loaded", "failed", "shown", "hidden"]

T = TypeVar("T")


@dataclass(frozen=True)
class FeatureState(Generic[T]):
    status: StateStatus = "idle"
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def idle(cls) -> "FeatureState[Any]":
        return cls()

    @classmethod
    def loading(cls) -> "FeatureState[Any]":
        return cls(status="loading")

    @classmethod
    def loaded(cls, value: T) -> "FeatureState[T]":
        return cls(status="loaded", value=value)

    @classmethod
    def failed(cls, error: str) -> "FeatureState[Any]":
        return cls(status="failed", error=error)

    @classmethod
    def shown(cls, value: T) -> "FeatureState[T]":
        return cls(status="shown", value=value)

    @classmethod
    def hidden(cls, value: T) -> "FeatureState[T]":
        return cls(status="hidden", value=value)

    @property
    def is_busy_or_done(self) -> bool:
        """loading 或已有结果时，重复触发不应再发请求。"""

        return self.status in ("loading", "loaded", "shown", "hidden")


IDLE: FeatureState[Any] = FeatureState()
