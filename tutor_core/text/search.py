"""会话内消息搜索：大小写不敏感的字面量匹配，返回每条消息里的匹配区间。"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from tutor_core.domain.models import ChatMessage


@dataclass
class MessageMatch:
    message_id: str
    spans: List[Tuple[int, int]]


def find_spans(text: str, query: str) -> List[Tuple[int, int]]:
    trimmed = (query or "").strip()
    if not trimmed:
        return []
    pattern = re.compile(re.escape(trimmed), re.IGNORECASE)
    return [m.span() for m in pattern.finditer(text or "")]


def search_messages(messages: Sequence[ChatMessage], query: str) -> List[MessageMatch]:
    matches: List[MessageMatch] = []
    for message in messages:
        spans = find_spans(message.text, query)
        if spans:
            matches.append(MessageMatch(message_id=message.id, spans=spans))
    return matches


class MessageSearch:
    """搜索结果游标，支持上一条 / 下一条循环跳转。"""

    def __init__(self, messages: Sequence[ChatMessage], query: str):
        self.query = query
        self.matches = search_messages(messages, query)
        self._index = len(self.matches) - 1 if self.matches else -1

    @property
    def active(self) -> Optional[MessageMatch]:
        if self._index < 0:
            return None
        return self.matches[self._index]

    def is_matched(self, message_id: str) -> bool:
        return any(m.message_id == message_id for m in self.matches)

    def next(self) -> Optional[MessageMatch]:
        if not self.matches:
            return None
        self._index = (self._index + 1) % len(self.matches)
        return self.active

    def previous(self) -> Optional[MessageMatch]:
        if not self.matches:
            return None
        self._index = (self._index - 1) % len(self.matches)
        return self.active
