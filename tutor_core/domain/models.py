"""会话、人设、记忆与词典的领域模型。

本模块只定义数据结构与少量纯函数校验逻辑，不做任何 I/O：

- Conversation / ChatMessage: 会话列表与消息流。
- AIProfileSettings / PersonaProfile: 每个会话绑定的 AI 人设。
- ConversationMemoryProfile: 从聊天记录中总结出的长期用户画像。
- DictionaryEntry / DictionaryCategory / CorrectionPair: 用户收藏的表达。

所有可变更的状态都归 ConversationStore 所有，其余模块只读。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple
from uuid import uuid4


# 消息角色：用户 / AI
Role = Literal["user", "ai"]
EntryKind = Literal["native", "grammar"]
TranslationRegister = Literal["polite", "casual"]

SUPPORTED_VOICE_PRESETS: Tuple[str, ...] = (
    "Kore",
    "Puck",
    "Charon",
    "Fenrir",
    "Aoede",
    "Leda",
    "Orus",
    "Zephyr",
)
DEFAULT_VOICE_PRESET = "Kore"
DEFAULT_REGISTER: TranslationRegister = "polite"

REGISTER_DISPLAY_NAMES: Dict[str, str] = {
    "polite": "존댓말",
    "casual": "반말",
}

ENTRY_KIND_LABELS: Dict[str, str] = {
    "native": "#Native Expression",
    "grammar": "#Grammar Correction",
}

TRAIT_MIN = 1
TRAIT_MAX = 5
DEFAULT_TRAIT = 3


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex}"


def initial_letter(name: str) -> str:
    """头像占位字符：名称首字母大写，空名称返回 "A"。"""

    trimmed = (name or "").strip()
    if not trimmed:
        return "A"
    return trimmed[0].upper()


@dataclass
class Conversation:
    id: str
    name: str
    last_message: str
    time_text: str
    unread_count: int
    avatar_text: str


@dataclass(frozen=True)
class ChatMessage:
    """一条聊天消息，创建后不可修改，只会追加到会话末尾。"""

    role: Role
    text: str
    time_text: str
    id: str = field(default_factory=lambda: new_id("m"))


def clamp_trait(value) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError):
        return DEFAULT_TRAIT
    return max(TRAIT_MIN, min(TRAIT_MAX, v))


@dataclass
class PersonaProfile:
    """AI 人设的五个性格维度，每个维度取值都会被钳制到 [1, 5]。"""

    friendliness: int = DEFAULT_TRAIT
    humor: int = DEFAULT_TRAIT
    curiosity: int = DEFAULT_TRAIT
    directness: int = DEFAULT_TRAIT
    energy: int = DEFAULT_TRAIT

    TRAIT_NAMES = ("friendliness", "humor", "curiosity", "directness", "energy")

    def __post_init__(self) -> None:
        for name in self.TRAIT_NAMES:
            setattr(self, name, clamp_trait(getattr(self, name)))

    def as_dict(self) -> Dict[str, int]:
        return {name: getattr(self, name) for name in self.TRAIT_NAMES}


@dataclass
class AIProfileSettings:
    """会话级 AI 人设。

    - voice_preset 必须是 SUPPORTED_VOICE_PRESETS 之一，否则回退为默认值。
    - korean_translation_register 决定 AI 消息翻译成韩语时使用 존댓말 还是 반말。
    """

    name: str
    avatar_image_data: Optional[bytes] = None
    voice_preset: str = DEFAULT_VOICE_PRESET
    korean_translation_register: TranslationRegister = DEFAULT_REGISTER
    persona: PersonaProfile = field(default_factory=PersonaProfile)

    def __post_init__(self) -> None:
        self.voice_preset = normalize_voice_preset(self.voice_preset)
        if self.korean_translation_register not in REGISTER_DISPLAY_NAMES:
            self.korean_translation_register = DEFAULT_REGISTER

    @classmethod
    def default(cls, name: str) -> "AIProfileSettings":
        return cls(name=name)


def normalize_voice_preset(value: Optional[str]) -> str:
    if value in SUPPORTED_VOICE_PRESETS:
        return value
    return DEFAULT_VOICE_PRESET


def voice_preview_text(name: str, fallback_name: str = "") -> str:
    safe_name = (name or "").strip() or fallback_name
    return f"Hi, I'm {safe_name}. Nice to meet you."


# (字段名, 调试视图标题)，顺序即展示顺序
MEMORY_SECTIONS: Tuple[Tuple[str, str], ...] = (
    ("hobbies", "Hobbies"),
    ("goals", "Goals"),
    ("projects", "Projects"),
    ("personality_traits", "Personality"),
    ("daily_routine", "Daily Routine"),
    ("preferences", "Preferences"),
    ("background", "Background"),
    ("notes", "Notes"),
)


@dataclass
class ConversationMemoryProfile:
    hobbies: List[str] = field(default_factory=list)
    goals: List[str] = field(default_factory=list)
    projects: List[str] = field(default_factory=list)
    personality_traits: List[str] = field(default_factory=list)
    daily_routine: List[str] = field(default_factory=list)
    preferences: List[str] = field(default_factory=list)
    background: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name, _ in MEMORY_SECTIONS)

    def cleaned(self) -> "ConversationMemoryProfile":
        """去掉空白项与重复项（保持原顺序）。"""

        values = {}
        for name, _ in MEMORY_SECTIONS:
            seen = set()
            items = []
            for raw in getattr(self, name):
                item = str(raw).strip()
                if item and item not in seen:
                    seen.add(item)
                    items.append(item)
            values[name] = items
        return ConversationMemoryProfile(**values)

    def debug_sections(self) -> List[Tuple[str, List[str]]]:
        return [(title, list(getattr(self, name))) for name, title in MEMORY_SECTIONS if getattr(self, name)]


@dataclass
class CorrectionPair:
    wrong: str
    right: str
    reason: Optional[str] = None


@dataclass
class DictionaryEntry:
    id: str
    kind: EntryKind
    text: str
    original_text: str
    tone: str
    nuance: str
    created_at: datetime
    category_ids: List[str] = field(default_factory=list)
    correction_pairs: Optional[List[CorrectionPair]] = None

    @property
    def label(self) -> str:
        return ENTRY_KIND_LABELS.get(self.kind, "")


@dataclass
class DictionaryCategory:
    id: str
    name: str
    created_at: datetime
