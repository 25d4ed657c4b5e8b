"""后端服务返回的统一数据模型。

HttpBackendClient 负责把后端 JSON 解析为这里的结构，上层（文本改写流水线、
MessageFeedbackCoordinator、记忆同步）只依赖这些模型。
"""

from dataclasses import dataclass, field
from typing import List, Optional

from tutor_core.domain.models import ConversationMemoryProfile


@dataclass
class GrammarEdit:
    wrong: str
    right: str
    reason: Optional[str] = None


@dataclass
class FeedbackPoint:
    """对用户句子中某一片段的点评，fix 可能是可直接替换的短语，也可能是一句说明。"""

    part: str
    issue: Optional[str] = None
    fix: Optional[str] = None


@dataclass
class SentenceFeedback:
    sentence: str
    feedback: str
    suggested: Optional[str] = None
    why: Optional[str] = None


@dataclass
class GrammarFeedback:
    has_errors: bool
    corrected_text: str = ""
    edits: List[GrammarEdit] = field(default_factory=list)
    feedback: str = ""
    feedback_points: List[FeedbackPoint] = field(default_factory=list)
    sentence_feedback: List[SentenceFeedback] = field(default_factory=list)
    natural_alternative: str = ""
    natural_reason: str = ""
    natural_rewrite: str = ""


@dataclass
class NativeAlternative:
    text: str
    tone: str = ""
    nuance: str = ""


@dataclass
class HistoryItem:
    """发给后端的一条精简历史（role + text）。"""

    role: str
    text: str


@dataclass
class MemoryUpdate:
    memory_summary: str
    memory_profile: Optional[ConversationMemoryProfile] = None
