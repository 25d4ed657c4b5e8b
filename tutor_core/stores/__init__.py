"""有状态的聚合层：会话、词典与会话记忆。"""

from tutor_core.stores.conversation_store import ConversationStore
from tutor_core.stores.dictionary_store import DictionaryFilter, DictionaryStore
from tutor_core.stores.memory_sync import ConversationMemorySyncScheduler

__all__ = ["ConversationStore", "DictionaryStore", "DictionaryFilter", "ConversationMemorySyncScheduler"]
