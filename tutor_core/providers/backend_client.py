"""后端 HTTP 适配器。

本模块负责：

1. 把 BackendClient 协议的调用转换为后端 `/api/*` 的 JSON 请求。
2. 使用 httpx 异步客户端发送请求并处理网络/API 异常。
3. 将响应 JSON 解析为统一的领域模型（GrammarFeedback、NativeAlternative 等）。

换句话说，这里就是“后端 JSON ⇄ 项目内部统一模型”的唯一转换层。
"""

from typing import Any, Dict, List, Optional

import httpx

from tutor_core.domain.exceptions import ApiError, NetworkError
from tutor_core.domain.feedback import (
    FeedbackPoint,
    GrammarEdit,
    GrammarFeedback,
    HistoryItem,
    MemoryUpdate,
    NativeAlternative,
    SentenceFeedback,
)
from tutor_core.domain.models import MEMORY_SECTIONS, ConversationMemoryProfile


# 内部字段名 -> 后端 JSON 字段名
MEMORY_WIRE_KEYS: Dict[str, str] = {
    "hobbies": "hobbies",
    "goals": "goals",
    "projects": "projects",
    "personality_traits": "personalityTraits",
    "daily_routine": "dailyRoutine",
    "preferences": "preferences",
    "background": "background",
    "notes": "notes",
}


def _list(value: Any) -> List[Any]:
    """缺失的列表字段视为空列表；字段存在但不是列表时抛出 TypeError，由 _parse 转为无效响应。"""

    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return value


def memory_profile_to_payload(profile: ConversationMemoryProfile) -> Dict[str, List[str]]:
    return {MEMORY_WIRE_KEYS[name]: list(getattr(profile, name)) for name, _ in MEMORY_SECTIONS}


def memory_profile_from_payload(data: Any) -> Optional[ConversationMemoryProfile]:
    if not isinstance(data, dict):
        return None
    values = {}
    for name, _ in MEMORY_SECTIONS:
        raw = _list(data.get(MEMORY_WIRE_KEYS[name], data.get(name)))
        values[name] = [str(item) for item in raw if isinstance(item, (str, int, float))]
    return ConversationMemoryProfile(**values).cleaned()


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _optional_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value.strip() else None


class HttpBackendClient:
    """后端服务客户端实现。

    - name: 用于日志。
    - 每个方法对应后端的一个 POST 接口，失败时抛出 NetworkError / ApiError。
    """

    name = "backend"

    def __init__(self, settings):
        # Settings 里包含 base_url、超时、可选模型名等配置
        self._settings = settings

    # ---- 公共接口 ----

    async def grammar_feedback(self, text: str) -> GrammarFeedback:
        path = "/api/grammar-feedback"
        data = await self._post_json(path, {"text": text})
        return self._parse(path, self._parse_grammar_feedback, data)

    async def native_alternatives(self, text: str) -> List[NativeAlternative]:
        path = "/api/native-alternatives"
        data = await self._post_json(path, {"text": text})
        items = self._parse(path, self._parse_alternatives, data)
        error = _optional_text(data.get("error"))
        if not items and error:
            raise ApiError(code="API_ERROR", message=error)
        return items

    async def translate(self, text: str, target_lang: str, register: Optional[str] = None) -> str:
        body: Dict[str, Any] = {"text": text, "targetLang": target_lang}
        if register:
            body["register"] = register
        data = await self._post_json("/api/translate", body)
        translation = _text(data.get("translation"))
        if not translation.strip():
            raise ApiError(code="EMPTY_RESPONSE", message="Empty response")
        return translation

    async def chat_reply(
        self,
        message: str,
        history: List[HistoryItem],
        memory_profile: Optional[ConversationMemoryProfile] = None,
        memory_summary: Optional[str] = None,
        persona_profile: Optional[Dict[str, int]] = None,
    ) -> str:
        body: Dict[str, Any] = {
            "message": message,
            "history": [{"role": h.role, "text": h.text} for h in history],
        }
        if memory_profile is not None and not memory_profile.is_empty:
            body["memoryProfile"] = memory_profile_to_payload(memory_profile)
        if memory_summary and memory_summary.strip():
            body["memorySummary"] = memory_summary
        if persona_profile:
            body["personaProfile"] = dict(persona_profile)
        data = await self._post_json("/api/chat", body)
        reply = _text(data.get("reply")).strip()
        if not reply:
            raise ApiError(code="EMPTY_RESPONSE", message="Empty response")
        return reply

    async def tts_audio(self, text: str, voice_name: Optional[str] = None, style: Optional[str] = None) -> bytes:
        body: Dict[str, Any] = {"text": text}
        if voice_name:
            body["voiceName"] = voice_name
        if style:
            body["style"] = style
        resp = await self._post("/api/tts", body)
        content_type = (resp.headers.get("content-type") or "").lower()
        if content_type and not content_type.startswith("audio/"):
            raise ApiError(code="INVALID_RESPONSE", message="Invalid backend response")
        if not resp.content:
            raise ApiError(code="EMPTY_RESPONSE", message="Empty response")
        return resp.content

    async def update_memory_summary(
        self,
        current_summary: str,
        current_profile: Optional[ConversationMemoryProfile],
        history: List[HistoryItem],
    ) -> MemoryUpdate:
        body: Dict[str, Any] = {
            "currentSummary": current_summary or "",
            "history": [{"role": h.role, "text": h.text} for h in history],
        }
        if current_profile is not None:
            body["currentProfile"] = memory_profile_to_payload(current_profile)
        path = "/api/memory-summary"
        data = await self._post_json(path, body)
        return self._parse(path, self._parse_memory_update, data)

    # ---- HTTP ----

    async def _post(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        """发送 POST 请求，统一处理网络错误和非 2xx 状态码。"""

        payload = dict(body)
        model = getattr(self._settings, "backend_model", None)
        if model:
            payload["model"] = model
        base = str(self._settings.backend_base_url).rstrip("/")
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{base}{path}",
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or "Network error", path=path)
        if not 200 <= resp.status_code < 300:
            detail = "Unknown error"
            try:
                err = resp.json()
                if isinstance(err, dict) and isinstance(err.get("error"), str):
                    detail = err["error"]
            except ValueError:
                pass
            raise ApiError(
                code="HTTP_STATUS",
                message=f"Backend error ({resp.status_code}): {detail}",
                http_status=resp.status_code,
                path=path,
            )
        return resp

    async def _post_json(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._post(path, body)
        try:
            data = resp.json()
        except ValueError:
            raise ApiError(code="INVALID_RESPONSE", message="Invalid backend response", path=path)
        if not isinstance(data, dict):
            raise ApiError(code="INVALID_RESPONSE", message="Invalid backend response", path=path)
        return data

    # ---- 解析 ----

    def _parse(self, path: str, parser, data: Dict[str, Any]):
        """字段类型与约定不符（例如列表字段给了数字）时统一视为无效响应。"""

        try:
            return parser(data)
        except (TypeError, AttributeError, ValueError):
            raise ApiError(code="INVALID_RESPONSE", message="Invalid backend response", path=path)

    def _parse_alternatives(self, data: Dict[str, Any]) -> List[NativeAlternative]:
        items = []
        for raw in _list(data.get("alternatives")):
            if not isinstance(raw, dict):
                continue
            alt_text = _text(raw.get("text")).strip()
            if alt_text:
                items.append(
                    NativeAlternative(
                        text=alt_text,
                        tone=_text(raw.get("tone")),
                        nuance=_text(raw.get("nuance")),
                    )
                )
        return items

    def _parse_memory_update(self, data: Dict[str, Any]) -> MemoryUpdate:
        return MemoryUpdate(
            memory_summary=_text(data.get("memorySummary")).strip(),
            memory_profile=memory_profile_from_payload(data.get("memoryProfile")),
        )

    def _parse_grammar_feedback(self, data: Dict[str, Any]) -> GrammarFeedback:
        """将后端的语法反馈 JSON 解析为 GrammarFeedback。"""

        edits = [
            GrammarEdit(wrong=_text(e.get("wrong")), right=_text(e.get("right")), reason=_optional_text(e.get("reason")))
            for e in _list(data.get("edits"))
            if isinstance(e, dict)
        ]
        points = [
            FeedbackPoint(part=_text(p.get("part")), issue=_optional_text(p.get("issue")), fix=_optional_text(p.get("fix")))
            for p in _list(data.get("feedbackPoints"))
            if isinstance(p, dict)
        ]
        sentences = [
            SentenceFeedback(
                sentence=_text(s.get("sentence")),
                feedback=_text(s.get("feedback")),
                suggested=_optional_text(s.get("suggested")),
                why=_optional_text(s.get("why")),
            )
            for s in _list(data.get("sentenceFeedback"))
            if isinstance(s, dict)
        ]
        return GrammarFeedback(
            has_errors=bool(data.get("hasErrors")),
            corrected_text=_text(data.get("correctedText")),
            edits=edits,
            feedback=_text(data.get("feedback")),
            feedback_points=points,
            sentence_feedback=sentences,
            natural_alternative=_text(data.get("naturalAlternative")),
            natural_reason=_text(data.get("naturalReason")),
            natural_rewrite=_text(data.get("naturalRewrite")),
        )
