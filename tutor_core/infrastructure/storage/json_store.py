import base64
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

from tutor_core.config.settings import settings
from tutor_core.domain.exceptions import StorageError
from tutor_core.domain.models import (
    MEMORY_SECTIONS,
    AIProfileSettings,
    ChatMessage,
    Conversation,
    ConversationMemoryProfile,
    CorrectionPair,
    DictionaryCategory,
    DictionaryEntry,
    PersonaProfile,
)

# 旧版只保存纯文本摘要时，迁移出的 notes 最多保留的条数
LEGACY_NOTES_LIMIT = 8


class KeyValueStore(Protocol):
    def read(self, key: str) -> Optional[str]:
        ...

    def write(self, key: str, value: str) -> None:
        ...


class MemoryKeyValueStore:
    """进程内键值存储，主要用于测试。"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.write_count = 0

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value
        self.write_count += 1


class JsonFileKeyValueStore:
    """每个 key 对应 storage_root 下的一个 JSON 文件，写入走临时文件 + os.replace。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self._root / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(code="STORE_READ_ERROR", message=str(e), key=key)

    def write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path = self._root / f"{key}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e), key=key)


@dataclass
class StoreSnapshot:
    """ConversationStore 需要持久化的全部状态。"""

    conversations: List[Conversation] = field(default_factory=list)
    messages: Dict[str, List[ChatMessage]] = field(default_factory=dict)
    dictionary_entries: List[DictionaryEntry] = field(default_factory=list)
    dictionary_categories: List[DictionaryCategory] = field(default_factory=list)
    ai_profiles: Dict[str, AIProfileSettings] = field(default_factory=dict)
    memory_summaries: Dict[str, str] = field(default_factory=dict)
    memory_profiles: Dict[str, ConversationMemoryProfile] = field(default_factory=dict)
    memory_signatures: Dict[str, str] = field(default_factory=dict)


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_dt(value: Any) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _mapping(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def legacy_notes_from_summary(summary: str) -> List[str]:
    """把旧版纯文本摘要按行拆成 notes（去掉行首的 "-"），最多 8 条。"""

    notes: List[str] = []
    for line in (summary or "").splitlines():
        item = line.strip().lstrip("-").strip()
        if item:
            notes.append(item)
        if len(notes) >= LEGACY_NOTES_LIMIT:
            break
    return notes


class PersistenceCodec:
    """StoreSnapshot 与单个 JSON 字符串之间的双向转换。

    读取时所有人设 / 记忆字段都是可选的（缺失即默认值），以兼容旧版快照；
    单条记录损坏只会被跳过，整体 JSON 无法解析才会抛出 StorageError。
    """

    version = 2

    # ---- encode ----

    def encode(self, snapshot: StoreSnapshot) -> str:
        obj = {
            "version": self.version,
            "conversations": [self._conversation_to_dict(c) for c in snapshot.conversations],
            "messages": {
                cid: [self._message_to_dict(m) for m in msgs] for cid, msgs in snapshot.messages.items()
            },
            "dictionaryEntries": [self._entry_to_dict(e) for e in snapshot.dictionary_entries],
            "dictionaryCategories": [
                {"id": c.id, "name": c.name, "createdAt": _iso(c.created_at)}
                for c in snapshot.dictionary_categories
            ],
            "aiProfiles": {cid: self._profile_to_dict(p) for cid, p in snapshot.ai_profiles.items()},
            "memorySummaries": dict(snapshot.memory_summaries),
            "memoryProfiles": {
                cid: {name: list(getattr(p, name)) for name, _ in MEMORY_SECTIONS}
                for cid, p in snapshot.memory_profiles.items()
            },
            "memorySignatures": dict(snapshot.memory_signatures),
        }
        return json.dumps(obj, ensure_ascii=False)

    def _conversation_to_dict(self, conv: Conversation) -> Dict[str, Any]:
        return {
            "id": conv.id,
            "name": conv.name,
            "lastMessage": conv.last_message,
            "timeText": conv.time_text,
            "unreadCount": conv.unread_count,
            "avatarText": conv.avatar_text,
        }

    def _message_to_dict(self, msg: ChatMessage) -> Dict[str, Any]:
        return {"id": msg.id, "role": msg.role, "text": msg.text, "timeText": msg.time_text}

    def _entry_to_dict(self, entry: DictionaryEntry) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": entry.id,
            "kind": entry.kind,
            "text": entry.text,
            "originalText": entry.original_text,
            "tone": entry.tone,
            "nuance": entry.nuance,
            "createdAt": _iso(entry.created_at),
            "categoryIds": list(entry.category_ids),
        }
        if entry.correction_pairs is not None:
            payload["correctionPairs"] = [
                {"wrong": p.wrong, "right": p.right, "reason": p.reason} for p in entry.correction_pairs
            ]
        return payload

    def _profile_to_dict(self, profile: AIProfileSettings) -> Dict[str, Any]:
        avatar = None
        if profile.avatar_image_data:
            avatar = base64.b64encode(profile.avatar_image_data).decode("ascii")
        return {
            "name": profile.name,
            "avatarImageData": avatar,
            "voicePreset": profile.voice_preset,
            "koreanTranslationSpeechLevel": profile.korean_translation_register,
            "personaProfile": profile.persona.as_dict(),
        }

    # ---- decode ----

    def decode(self, raw: str) -> StoreSnapshot:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(code="SNAPSHOT_DECODE_ERROR", message=str(e))
        if not isinstance(data, dict):
            raise StorageError(code="SNAPSHOT_DECODE_ERROR", message="snapshot is not an object")
        try:
            return self._decode_snapshot(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise StorageError(code="SNAPSHOT_DECODE_ERROR", message=str(e))

    def _decode_snapshot(self, data: Dict[str, Any]) -> StoreSnapshot:
        snapshot = StoreSnapshot()
        for item in _list(data.get("conversations")):
            try:
                snapshot.conversations.append(self._to_conversation(item))
            except (KeyError, TypeError, ValueError, AttributeError):
                continue
        for cid, items in _mapping(data, "messages").items():
            msgs: List[ChatMessage] = []
            for item in _list(items):
                try:
                    msgs.append(self._to_message(item))
                except (KeyError, TypeError, ValueError, AttributeError):
                    continue
            snapshot.messages[cid] = msgs
        for item in _list(data.get("dictionaryEntries")):
            try:
                snapshot.dictionary_entries.append(self._to_entry(item))
            except (KeyError, TypeError, ValueError, AttributeError):
                continue
        for item in _list(data.get("dictionaryCategories")):
            try:
                snapshot.dictionary_categories.append(
                    DictionaryCategory(id=item["id"], name=item["name"], created_at=_parse_dt(item.get("createdAt")))
                )
            except (KeyError, TypeError, ValueError, AttributeError):
                continue
        for cid, item in _mapping(data, "aiProfiles").items():
            try:
                snapshot.ai_profiles[cid] = self._to_profile(item)
            except (KeyError, TypeError, ValueError, AttributeError):
                continue

        snapshot.memory_summaries = {
            cid: text for cid, text in _mapping(data, "memorySummaries").items() if isinstance(text, str)
        }
        snapshot.memory_signatures = {
            cid: sig for cid, sig in _mapping(data, "memorySignatures").items() if isinstance(sig, str)
        }
        raw_profiles = data.get("memoryProfiles")
        if isinstance(raw_profiles, dict):
            for cid, item in raw_profiles.items():
                if isinstance(item, dict):
                    profile = self._to_memory_profile(item)
                    if not profile.is_empty:
                        snapshot.memory_profiles[cid] = profile
        else:
            # 旧版快照：只有纯文本摘要，没有结构化画像
            for cid, summary in snapshot.memory_summaries.items():
                notes = legacy_notes_from_summary(summary)
                if notes:
                    snapshot.memory_profiles[cid] = ConversationMemoryProfile(notes=notes)
        return snapshot

    def _to_conversation(self, data: Dict[str, Any]) -> Conversation:
        return Conversation(
            id=data["id"],
            name=data.get("name") or "",
            last_message=data.get("lastMessage") or "",
            time_text=data.get("timeText") or "",
            unread_count=int(data.get("unreadCount", 0)),
            avatar_text=data.get("avatarText") or "",
        )

    def _to_message(self, data: Dict[str, Any]) -> ChatMessage:
        role = data["role"]
        if role not in ("user", "ai"):
            raise ValueError(f"unknown role {role!r}")
        return ChatMessage(id=data["id"], role=role, text=data.get("text") or "", time_text=data.get("timeText") or "")

    def _to_entry(self, data: Dict[str, Any]) -> DictionaryEntry:
        kind = data["kind"]
        if kind not in ("native", "grammar"):
            raise ValueError(f"unknown kind {kind!r}")
        pairs = None
        raw_pairs = data.get("correctionPairs")
        if isinstance(raw_pairs, list):
            pairs = [
                CorrectionPair(wrong=p.get("wrong") or "", right=p.get("right") or "", reason=p.get("reason"))
                for p in raw_pairs
                if isinstance(p, dict)
            ]
        return DictionaryEntry(
            id=data["id"],
            kind=kind,
            text=data.get("text") or "",
            original_text=data.get("originalText") or "",
            tone=data.get("tone") or "",
            nuance=data.get("nuance") or "",
            created_at=_parse_dt(data.get("createdAt")),
            category_ids=[c for c in _list(data.get("categoryIds")) if isinstance(c, str)],
            correction_pairs=pairs,
        )

    def _to_profile(self, data: Dict[str, Any]) -> AIProfileSettings:
        avatar = None
        if data.get("avatarImageData"):
            avatar = base64.b64decode(data["avatarImageData"])
        persona_raw = data.get("personaProfile") or {}
        persona = PersonaProfile(
            **{name: persona_raw.get(name) for name in PersonaProfile.TRAIT_NAMES if name in persona_raw}
        )
        return AIProfileSettings(
            name=data.get("name") or "",
            avatar_image_data=avatar,
            voice_preset=data.get("voicePreset"),
            korean_translation_register=data.get("koreanTranslationSpeechLevel"),
            persona=persona,
        )

    def _to_memory_profile(self, data: Dict[str, Any]) -> ConversationMemoryProfile:
        values = {}
        for name, _ in MEMORY_SECTIONS:
            values[name] = [item for item in _list(data.get(name)) if isinstance(item, str)]
        return ConversationMemoryProfile(**values).cleaned()
