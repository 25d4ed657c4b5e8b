"""对外 API 服务模块。

提供进程级的默认 Store / Coordinator 构造函数，供上层界面直接调用。
"""

from typing import Optional

from tutor_core.config.settings import settings
from tutor_core.coordinator.feedback_coordinator import MessageFeedbackCoordinator, SpeechPlayer
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.infrastructure.storage.json_store import JsonFileKeyValueStore
from tutor_core.providers import create_backend
from tutor_core.providers.base import BackendClient
from tutor_core.stores.conversation_store import ConversationStore


_client: Optional[BackendClient] = None
_store: Optional[ConversationStore] = None


def get_default_client() -> BackendClient:
    global _client
    if _client is None:
        _client = create_backend(settings)
    return _client


def get_default_store() -> ConversationStore:
    """获取默认的 ConversationStore 实例（单例）。"""
    global _store
    if _store is None:
        _store = ConversationStore(
            client=get_default_client(),
            kv_store=JsonFileKeyValueStore(root=settings.storage_root),
        )
        logger.info(
            "Conversation store ready",
            extra={"extra": {"conversations": len(_store.conversations), "storage_root": settings.storage_root}},
        )
    return _store


def create_coordinator(conversation_id: str, player: Optional[SpeechPlayer] = None) -> MessageFeedbackCoordinator:
    """为打开的会话界面创建协调器；界面关闭时调用 coordinator.close()。"""

    store = get_default_store()
    store.get_conversation(conversation_id)
    return MessageFeedbackCoordinator(
        store=store,
        conversation_id=conversation_id,
        client=get_default_client(),
        player=player,
    )


def reset_defaults() -> None:
    """丢弃单例（测试或切换配置后使用）。"""
    global _client, _store
    _client = None
    _store = None
