"""单条消息的反馈状态协调器。

每个打开的会话界面持有一个 MessageFeedbackCoordinator，按消息 id 维护
四个互相独立的状态机：

- 语法反馈（点选用户消息触发）
- 原生替代表达（按需触发）
- AI 消息翻译（shown / hidden 切换，不重复请求）
- AI 消息朗读（音频缓存 + 全局唯一的“正在朗读”消息）

同一 (消息, 功能) 在 loading 或已有结果时不会再次发请求，重复点击是幂等的。
远程失败只会把对应状态置为 failed，不会影响其他状态机。
状态只保存在内存中，可随时丢弃重建。
"""

from typing import Callable, Dict, List, Optional, Protocol, Set

from tutor_core.config.settings import settings
from tutor_core.domain.exceptions import BusinessError, PlaybackError
from tutor_core.domain.feedback import GrammarFeedback, NativeAlternative
from tutor_core.domain.models import AIProfileSettings, ChatMessage, voice_preview_text
from tutor_core.domain.states import IDLE, FeatureState
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.providers.base import BackendClient
from tutor_core.stores.conversation_store import ConversationStore
from tutor_core.text.alternatives import merge_alternatives, preferred_alternative
from tutor_core.text.selector import improved_expression


class SpeechPlayer(Protocol):
    """音频播放设备的抽象。解码失败时 play 应抛出 PlaybackError。"""

    def play(self, audio: bytes, on_finished: Callable[[], None]) -> None:
        ...

    def stop(self) -> None:
        ...


class MessageFeedbackCoordinator:
    def __init__(
        self,
        store: ConversationStore,
        conversation_id: str,
        client: BackendClient,
        player: Optional[SpeechPlayer] = None,
        target_lang: Optional[str] = None,
        tts_style: Optional[str] = None,
    ):
        self._store = store
        self.conversation_id = conversation_id
        self._client = client
        self._player = player
        self._target_lang = target_lang or settings.translation_target_lang
        self._tts_style = tts_style if tts_style is not None else settings.tts_style

        self.selected_message_id: Optional[str] = None
        self._grammar: Dict[str, FeatureState[GrammarFeedback]] = {}
        self._alternatives: Dict[str, FeatureState[List[NativeAlternative]]] = {}
        self._translations: Dict[str, FeatureState[str]] = {}
        self._translation_generation = 0

        self._audio_cache: Dict[str, bytes] = {}
        self._speech_loading: Set[str] = set()
        self.speech_errors: Dict[str, str] = {}
        self.speaking_message_id: Optional[str] = None
        self._latest_speech_request: Optional[str] = None

        store.add_profile_listener(self._on_profile_changed)

    def close(self) -> None:
        self.stop_speech()
        self._store.remove_profile_listener(self._on_profile_changed)

    def _message(self, message_id: str) -> ChatMessage:
        return self._store.get_message(self.conversation_id, message_id)

    # ---- 语法反馈 ----

    def grammar_state(self, message_id: str) -> FeatureState[GrammarFeedback]:
        return self._grammar.get(message_id, IDLE)

    async def select_message(self, message_id: str) -> FeatureState[GrammarFeedback]:
        """点选用户消息：切换选中状态，仅在 idle 时请求语法反馈。

        loading / loaded / failed 状态下重复点选只切换选中，不会重试。
        """

        message = self._message(message_id)
        if message.role != "user":
            return self.grammar_state(message_id)
        if self.selected_message_id == message_id:
            self.selected_message_id = None
            return self.grammar_state(message_id)
        self.selected_message_id = message_id
        if self.grammar_state(message_id).status != "idle":
            return self.grammar_state(message_id)

        self._grammar[message_id] = FeatureState.loading()
        try:
            feedback = await self._client.grammar_feedback(message.text)
        except BusinessError as e:
            self._log_failure("grammar_feedback", message_id, e)
            self._grammar[message_id] = FeatureState.failed(e.message)
        else:
            self._grammar[message_id] = FeatureState.loaded(feedback)
        return self._grammar[message_id]

    def reset_grammar_feedback(self, message_id: str) -> None:
        """显式重置，下一次点选会重新请求。"""

        if self.grammar_state(message_id).status != "loading":
            self._grammar.pop(message_id, None)

    def improved_expression(self, message_id: str) -> Optional[str]:
        state = self.grammar_state(message_id)
        if state.status != "loaded":
            return None
        return improved_expression(self._message(message_id).text, state.value)

    def save_improved_expression(self, message_id: str, category_ids=()) -> bool:
        state = self.grammar_state(message_id)
        if state.status != "loaded" or state.value is None:
            return False
        return self._store.save_grammar_correction(self._message(message_id).text, state.value, category_ids)

    # ---- 原生替代表达 ----

    def alternatives_state(self, message_id: str) -> FeatureState[List[NativeAlternative]]:
        return self._alternatives.get(message_id, IDLE)

    async def request_alternatives(self, message_id: str) -> FeatureState[List[NativeAlternative]]:
        current = self.alternatives_state(message_id)
        if current.is_busy_or_done:
            return current
        message = self._message(message_id)
        self._alternatives[message_id] = FeatureState.loading()
        try:
            generated = await self._client.native_alternatives(message.text)
        except BusinessError as e:
            self._log_failure("native_alternatives", message_id, e)
            self._alternatives[message_id] = FeatureState.failed(e.message)
            return self._alternatives[message_id]

        grammar = self.grammar_state(message_id)
        preferred = preferred_alternative(grammar.value if grammar.status == "loaded" else None)
        self._alternatives[message_id] = FeatureState.loaded(merge_alternatives(preferred, generated))
        return self._alternatives[message_id]

    # ---- 翻译 ----

    def translation_state(self, message_id: str) -> FeatureState[str]:
        return self._translations.get(message_id, IDLE)

    async def toggle_translation(self, message_id: str) -> FeatureState[str]:
        """AI 消息翻译：idle/failed 时请求，shown 与 hidden 之间切换时不再请求。"""

        message = self._message(message_id)
        if message.role != "ai":
            return self.translation_state(message_id)
        current = self.translation_state(message_id)
        if current.status == "loading":
            return current
        if current.status == "shown":
            self._translations[message_id] = FeatureState.hidden(current.value)
            return self._translations[message_id]
        if current.status == "hidden":
            self._translations[message_id] = FeatureState.shown(current.value)
            return self._translations[message_id]

        generation = self._translation_generation
        register = self._store.ai_profile(self.conversation_id).korean_translation_register
        self._translations[message_id] = FeatureState.loading()
        try:
            text = await self._client.translate(message.text, self._target_lang, register)
            result = FeatureState.shown(text)
        except BusinessError as e:
            self._log_failure("translate", message_id, e)
            result = FeatureState.failed(e.message)
        # 语气设置在请求期间变更过，旧结果作废
        if generation != self._translation_generation:
            return self.translation_state(message_id)
        self._translations[message_id] = result
        return result

    def reset_translations(self) -> None:
        self._translation_generation += 1
        self._translations.clear()

    def _on_profile_changed(self, conversation_id: str, old: AIProfileSettings, new: AIProfileSettings) -> None:
        if conversation_id != self.conversation_id:
            return
        if old.korean_translation_register != new.korean_translation_register:
            self.reset_translations()

    # ---- 朗读 ----

    def is_speech_loading(self, message_id: str) -> bool:
        return message_id in self._speech_loading

    def has_cached_audio(self, message_id: str) -> bool:
        return message_id in self._audio_cache

    async def toggle_speech(self, message_id: str) -> None:
        """朗读 AI 消息；再次点击正在朗读的消息则停止。"""

        message = self._message(message_id)
        if message.role != "ai":
            return
        if self.speaking_message_id == message_id:
            self.stop_speech()
            return
        if message_id in self._speech_loading:
            return
        self.stop_speech()
        self._latest_speech_request = message_id
        self.speech_errors.pop(message_id, None)

        audio = self._audio_cache.get(message_id)
        if audio is None:
            profile = self._store.ai_profile(self.conversation_id)
            self._speech_loading.add(message_id)
            try:
                audio = await self._client.tts_audio(message.text, profile.voice_preset, self._tts_style)
            except BusinessError as e:
                self._log_failure("tts_audio", message_id, e)
                self.speech_errors[message_id] = e.message
                return
            finally:
                self._speech_loading.discard(message_id)
            self._audio_cache[message_id] = audio
            # 等待期间用户又点了别的消息
            if self._latest_speech_request != message_id:
                return
        self._play(message_id, audio)

    def _play(self, message_id: str, audio: bytes) -> None:
        if self._player is None:
            return
        self._player.stop()
        self.speaking_message_id = message_id
        try:
            self._player.play(audio, lambda: self.on_playback_finished(message_id))
        except PlaybackError as e:
            self._log_failure("playback", message_id, e)
            self.speech_errors[message_id] = e.message
            self.on_playback_finished(message_id)

    def on_playback_finished(self, message_id: str) -> None:
        if self.speaking_message_id == message_id:
            self.speaking_message_id = None

    def stop_speech(self) -> None:
        self._latest_speech_request = None
        if self.speaking_message_id is None:
            return
        if self._player is not None:
            self._player.stop()
        self.speaking_message_id = None

    async def preview_voice(self, name: str, voice_preset: str) -> bool:
        """试听人设声音，不写入缓存，也不关联任何消息。"""

        self.stop_speech()
        fallback = self._store.ai_profile(self.conversation_id).name
        try:
            audio = await self._client.tts_audio(voice_preview_text(name, fallback), voice_preset)
        except BusinessError as e:
            self._log_failure("voice_preview", None, e)
            return False
        if self._player is None:
            return False
        self._player.stop()
        try:
            self._player.play(audio, lambda: None)
        except PlaybackError as e:
            self._log_failure("voice_preview", None, e)
            return False
        return True

    def _log_failure(self, feature: str, message_id: Optional[str], error: BusinessError) -> None:
        logger.warning(
            f"{feature} failed",
            extra={"extra": {
                "conversation_id": self.conversation_id,
                "message_id": message_id,
                "code": error.code,
                "error": error.message,
            }},
        )
