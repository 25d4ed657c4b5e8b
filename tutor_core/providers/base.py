"""后端服务抽象接口。

ConversationStore / MessageFeedbackCoordinator / 记忆同步不直接依赖 HTTP，
而是依赖此协议：

- 默认实现是 HttpBackendClient（httpx 异步客户端）。
- 测试里用手写的 Fake 实现替换，返回固定结果或抛出 BusinessError。

所有方法失败时都应抛出 BusinessError 子类（NetworkError / ApiError），
调用方据此把错误转换成可展示的文案。
"""

from typing import Dict, List, Optional, Protocol

from tutor_core.domain.feedback import GrammarFeedback, HistoryItem, MemoryUpdate, NativeAlternative
from tutor_core.domain.models import ConversationMemoryProfile


class BackendClient(Protocol):
    async def grammar_feedback(self, text: str) -> GrammarFeedback:
        ...

    async def native_alternatives(self, text: str) -> List[NativeAlternative]:
        ...

    async def translate(self, text: str, target_lang: str, register: Optional[str] = None) -> str:
        """返回非空译文；译文为空视为失败。"""

        ...

    async def chat_reply(
        self,
        message: str,
        history: List[HistoryItem],
        memory_profile: Optional[ConversationMemoryProfile] = None,
        memory_summary: Optional[str] = None,
        persona_profile: Optional[Dict[str, int]] = None,
    ) -> str:
        """返回去掉首尾空白后的非空回复；空回复视为失败。"""

        ...

    async def tts_audio(self, text: str, voice_name: Optional[str] = None, style: Optional[str] = None) -> bytes:
        ...

    async def update_memory_summary(
        self,
        current_summary: str,
        current_profile: Optional[ConversationMemoryProfile],
        history: List[HistoryItem],
    ) -> MemoryUpdate:
        ...
