"""ConversationStore：会话、消息、AI 人设、记忆与词典的聚合根。

职责：
- 独占所有会话级 / 消息级数据，是唯一的修改入口。
- 同步修改本地状态后再发起远程调用（聊天回复、记忆同步）。
- 每次修改后立即持久化整个快照，调用方无需手动 flush。

并发模型：所有方法都应在同一个事件循环里调用，远程调用期间会让出控制权，
恢复后再修改共享状态，因此不需要额外加锁。
"""

from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from tutor_core.config.settings import settings
from tutor_core.domain.exceptions import BusinessError, StorageError, ValidationError
from tutor_core.domain.feedback import GrammarFeedback, HistoryItem, NativeAlternative
from tutor_core.domain.models import (
    AIProfileSettings,
    ChatMessage,
    Conversation,
    ConversationMemoryProfile,
    CorrectionPair,
    PersonaProfile,
    TranslationRegister,
    initial_letter,
)
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.infrastructure.storage.json_store import KeyValueStore, PersistenceCodec, StoreSnapshot
from tutor_core.providers.base import BackendClient
from tutor_core.sample_data import sample_state
from tutor_core.stores.dictionary_store import DictionaryStore
from tutor_core.stores.memory_sync import ConversationMemorySyncScheduler
from tutor_core.text.normalizer import normalize
from tutor_core.text.search import MessageSearch
from tutor_core.text.selector import improved_expression


# 聊天回复失败时追加的固定回复，保证用户总能收到一条 AI 消息
FALLBACK_REPLY = "죄송해요, 지금은 답장을 불러오지 못했어요. 잠시 후 다시 말해 줄래요?"

GRAMMAR_ENTRY_TONE = "Correction"
REWRITE_ENTRY_TONE = "Natural"

ProfileListener = Callable[[str, AIProfileSettings, AIProfileSettings], None]


def current_time_text() -> str:
    return datetime.now().strftime("%H:%M")


class ConversationStore:
    def __init__(
        self,
        client: BackendClient,
        kv_store: KeyValueStore,
        snapshot_key: Optional[str] = None,
        codec: Optional[PersistenceCodec] = None,
        clock: Callable[[], str] = current_time_text,
        max_context_messages: Optional[int] = None,
        memory_history_window: Optional[int] = None,
        memory_sync_debounce_seconds: Optional[float] = None,
    ):
        self._client = client
        self._kv = kv_store
        self._key = snapshot_key or settings.snapshot_key
        self._codec = codec or PersistenceCodec()
        self._clock = clock
        self._max_context = max_context_messages or settings.max_context_messages
        self._profile_listeners: List[ProfileListener] = []

        snapshot = self._load()
        self.conversations: List[Conversation] = snapshot.conversations
        self._messages: Dict[str, List[ChatMessage]] = snapshot.messages
        self._ai_profiles: Dict[str, AIProfileSettings] = snapshot.ai_profiles
        self.dictionary = DictionaryStore(
            entries=snapshot.dictionary_entries,
            categories=snapshot.dictionary_categories,
            on_change=self._persist,
        )
        self.memory = ConversationMemorySyncScheduler(
            client=client,
            messages_for=self.messages,
            window=memory_history_window or settings.memory_history_window,
            debounce_seconds=(
                settings.memory_sync_debounce_seconds
                if memory_sync_debounce_seconds is None
                else memory_sync_debounce_seconds
            ),
            summaries=snapshot.memory_summaries,
            profiles=snapshot.memory_profiles,
            signatures=snapshot.memory_signatures,
            on_change=self._persist,
        )

    # ---- 读取 ----

    def get_conversation(self, conversation_id: str) -> Conversation:
        for conv in self.conversations:
            if conv.id == conversation_id:
                return conv
        raise ValidationError(code="CONVERSATION_NOT_FOUND", message=conversation_id)

    def messages(self, conversation_id: str) -> List[ChatMessage]:
        return list(self._messages.get(conversation_id, []))

    def get_message(self, conversation_id: str, message_id: str) -> ChatMessage:
        for message in self._messages.get(conversation_id, []):
            if message.id == message_id:
                return message
        raise ValidationError(code="MESSAGE_NOT_FOUND", message=message_id)

    def ai_profile(self, conversation_id: str) -> AIProfileSettings:
        """返回会话的 AI 人设；首次访问时按会话名创建默认人设。"""

        profile = self._ai_profiles.get(conversation_id)
        if profile is None:
            conv = self.get_conversation(conversation_id)
            profile = AIProfileSettings.default(conv.name)
            self._ai_profiles[conversation_id] = profile
        return profile

    def memory_summary(self, conversation_id: str) -> str:
        return self.memory.summary(conversation_id)

    def memory_profile(self, conversation_id: str) -> ConversationMemoryProfile:
        return self.memory.profile(conversation_id)

    def memory_sync_status(self, conversation_id: str) -> Optional[str]:
        return self.memory.status.get(conversation_id)

    def search(self, conversation_id: str, query: str) -> MessageSearch:
        return MessageSearch(self._messages.get(conversation_id, []), query)

    # ---- 会话操作 ----

    async def send_user_message(self, text: str, conversation_id: str) -> Optional[ChatMessage]:
        """发送用户消息并等待 AI 回复。

        回复失败时追加固定的兜底回复；返回追加的 AI 消息，空输入返回 None。
        """

        trimmed = (text or "").strip()
        if not trimmed:
            return None
        self.get_conversation(conversation_id)

        history = self._history_for_reply(conversation_id)
        self._append(conversation_id, ChatMessage(role="user", text=trimmed, time_text=self._clock()))
        self._update_preview(conversation_id, trimmed)
        self._persist()

        profile = self.ai_profile(conversation_id)
        memory_profile = self.memory.profile(conversation_id)
        try:
            reply = await self._client.chat_reply(
                trimmed,
                history,
                memory_profile=None if memory_profile.is_empty else memory_profile,
                memory_summary=self.memory.summary(conversation_id) or None,
                persona_profile=profile.persona.as_dict(),
            )
            succeeded = True
        except BusinessError as e:
            logger.warning(
                "Chat reply failed, using fallback",
                extra={"extra": {"conversation_id": conversation_id, "code": e.code, "error": e.message}},
            )
            reply = FALLBACK_REPLY
            succeeded = False

        ai_message = ChatMessage(role="ai", text=reply, time_text=self._clock())
        self._append(conversation_id, ai_message)
        self._update_preview(conversation_id, reply)
        self._persist()
        if succeeded:
            self.memory.request_sync(conversation_id)
        return ai_message

    def mark_conversation_opened(self, conversation_id: str) -> None:
        conv = self.get_conversation(conversation_id)
        conv.unread_count = 0
        self._persist()

    def update_ai_profile(
        self,
        conversation_id: str,
        name: str,
        avatar_image_data: Optional[bytes] = None,
        voice_preset: Optional[str] = None,
        korean_translation_register: Optional[TranslationRegister] = None,
        persona: Optional[PersonaProfile] = None,
        clear_avatar: bool = False,
    ) -> AIProfileSettings:
        """保存 AI 人设，并同步会话名与头像字符。

        值为 None 的字段沿用旧值；头像只有在 clear_avatar=True 时才会被清除。
        """

        conv = self.get_conversation(conversation_id)
        old = self.ai_profile(conversation_id)
        trimmed = (name or "").strip()
        new = AIProfileSettings(
            name=trimmed or old.name,
            avatar_image_data=None if clear_avatar else (avatar_image_data or old.avatar_image_data),
            voice_preset=voice_preset or old.voice_preset,
            korean_translation_register=korean_translation_register or old.korean_translation_register,
            persona=persona if persona is not None else PersonaProfile(**old.persona.as_dict()),
        )
        self._ai_profiles[conversation_id] = new
        if trimmed:
            conv.name = trimmed
        conv.avatar_text = initial_letter(trimmed or conv.name)
        self._persist()
        for listener in list(self._profile_listeners):
            listener(conversation_id, old, new)
        return new

    def add_profile_listener(self, listener: ProfileListener) -> None:
        self._profile_listeners.append(listener)

    def remove_profile_listener(self, listener: ProfileListener) -> None:
        if listener in self._profile_listeners:
            self._profile_listeners.remove(listener)

    def clear_conversation_history(self, conversation_id: str) -> None:
        conv = self.get_conversation(conversation_id)
        self._messages[conversation_id] = []
        conv.last_message = ""
        conv.unread_count = 0
        self.memory.forget_signature(conversation_id)
        self._persist()

    async def refresh_memory_now(self, conversation_id: str) -> Optional[str]:
        self.get_conversation(conversation_id)
        return await self.memory.refresh_now(conversation_id)

    # ---- 词典保存路径 ----

    def save_native_alternative(
        self,
        alternative: NativeAlternative,
        original_text: str,
        category_ids: Iterable[str] = (),
    ) -> bool:
        return self._save_entry(
            "native",
            alternative.text,
            original_text,
            tone=alternative.tone,
            nuance=alternative.nuance,
            category_ids=category_ids,
        )

    def save_grammar_correction(
        self,
        original_text: str,
        feedback: GrammarFeedback,
        category_ids: Iterable[str] = (),
    ) -> bool:
        expression = improved_expression(original_text, feedback)
        if expression is None:
            return False
        pairs = [CorrectionPair(wrong=e.wrong, right=e.right, reason=e.reason) for e in feedback.edits]
        return self._save_entry(
            "grammar",
            expression,
            original_text,
            tone=GRAMMAR_ENTRY_TONE,
            nuance=feedback.feedback,
            category_ids=category_ids,
            correction_pairs=pairs,
        )

    def save_natural_rewrite(
        self,
        original_text: str,
        feedback: GrammarFeedback,
        category_ids: Iterable[str] = (),
    ) -> bool:
        rewrite = (feedback.natural_rewrite or "").strip()
        if not rewrite or normalize(rewrite) == normalize(original_text):
            return False
        return self._save_entry(
            "native",
            rewrite,
            original_text,
            tone=REWRITE_ENTRY_TONE,
            nuance=feedback.natural_reason,
            category_ids=category_ids,
        )

    def is_saved(self, text: str) -> bool:
        return self.dictionary.contains_text(text)

    def _save_entry(self, kind, text, original_text, **kwargs) -> bool:
        try:
            self.dictionary.save(kind, text, original_text, **kwargs)
        except ValidationError as e:
            logger.info("Dictionary save rejected", extra={"extra": {"code": e.code, "kind": kind}})
            return False
        return True

    # ---- 内部 ----

    def _history_for_reply(self, conversation_id: str) -> List[HistoryItem]:
        msgs = [m for m in self._messages.get(conversation_id, []) if m.text.strip()]
        return [HistoryItem(role=m.role, text=m.text) for m in msgs[-self._max_context:]]

    def _append(self, conversation_id: str, message: ChatMessage) -> None:
        self._messages.setdefault(conversation_id, []).append(message)

    def _update_preview(self, conversation_id: str, last_message: str) -> None:
        conv = self.get_conversation(conversation_id)
        conv.last_message = last_message
        conv.time_text = self._clock()
        conv.unread_count = 0

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            conversations=self.conversations,
            messages=self._messages,
            dictionary_entries=self.dictionary.entries,
            dictionary_categories=self.dictionary.categories,
            ai_profiles=self._ai_profiles,
            memory_summaries=self.memory.summaries,
            memory_profiles=self.memory.profiles,
            memory_signatures=self.memory.signatures,
        )

    def _load(self) -> StoreSnapshot:
        snapshot = StoreSnapshot()
        try:
            raw = self._kv.read(self._key)
            if raw is not None:
                snapshot = self._codec.decode(raw)
        except StorageError as e:
            logger.error(
                "Failed to load snapshot, starting from defaults",
                extra={"extra": {"code": e.code, "error": e.message}},
            )
        # 会话不可删除，快照里一个会话都没有时补上示例会话，其余数据保留
        if not snapshot.conversations:
            snapshot.conversations, snapshot.messages = sample_state()
        return snapshot

    def _persist(self) -> None:
        try:
            self._kv.write(self._key, self._codec.encode(self.snapshot()))
        except StorageError as e:
            logger.error("Failed to persist snapshot", extra={"extra": {"code": e.code, "error": e.message}})
