import pytest

from tutor_core.domain.exceptions import ApiError, PlaybackError
from tutor_core.domain.feedback import GrammarFeedback, MemoryUpdate
from tutor_core.infrastructure.storage.json_store import MemoryKeyValueStore
from tutor_core.stores.conversation_store import ConversationStore


class FakeBackend:
    """手写的 BackendClient 实现：返回预置结果，或在对应字段为异常时抛出。"""

    def __init__(self):
        self.calls = []
        self.reply = "Sounds fun! What happened next?"
        self.feedback = GrammarFeedback(has_errors=False)
        self.alternatives = []
        self.translation = "번역"
        self.audio = b"RIFF-audio"
        self.memory = MemoryUpdate(memory_summary="")

    def _result(self, name, value):
        self.calls.append(name)
        if isinstance(value, Exception):
            raise value
        return value

    def count(self, name):
        return self.calls.count(name)

    async def grammar_feedback(self, text):
        return self._result("grammar_feedback", self.feedback)

    async def native_alternatives(self, text):
        return self._result("native_alternatives", self.alternatives)

    async def translate(self, text, target_lang, register=None):
        self.last_register = register
        return self._result("translate", self.translation)

    async def chat_reply(self, message, history, memory_profile=None, memory_summary=None, persona_profile=None):
        self.last_chat = {
            "message": message,
            "history": history,
            "memory_profile": memory_profile,
            "memory_summary": memory_summary,
            "persona_profile": persona_profile,
        }
        return self._result("chat_reply", self.reply)

    async def tts_audio(self, text, voice_name=None, style=None):
        self.last_voice = voice_name
        return self._result("tts_audio", self.audio)

    async def update_memory_summary(self, current_summary, current_profile, history):
        self.last_memory_history = history
        return self._result("update_memory_summary", self.memory)


class FakePlayer:
    def __init__(self, fail=False):
        self.fail = fail
        self.played = []
        self.stops = 0
        self.on_finished = None

    def play(self, audio, on_finished):
        if self.fail:
            raise PlaybackError(code="DECODE_ERROR", message="Could not decode audio")
        self.played.append(audio)
        self.on_finished = on_finished

    def stop(self):
        self.stops += 1


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def store(backend, kv):
    return ConversationStore(client=backend, kv_store=kv, clock=lambda: "09:30")


@pytest.fixture
def api_error():
    return ApiError(code="HTTP_STATUS", message="Backend error (500): boom", http_status=500)


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def broken_player():
    return FakePlayer(fail=True)
