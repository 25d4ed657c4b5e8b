"""用户词典：收藏的表达 + 分类。

- 保存时按归一化文本去重（只在创建时检查，之后修改分类不再重新校验）。
- 新条目插入最前面（最近保存的在前）。
- 分类名非空且大小写不敏感唯一，按创建时间排序。
- 删除分类会把它从所有条目的分类集合中移除，条目本身保留。

所有修改操作完成后都会调用 on_change，由上层负责持久化。
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Literal, Optional

from tutor_core.domain.exceptions import ValidationError
from tutor_core.domain.models import CorrectionPair, DictionaryCategory, DictionaryEntry, EntryKind, new_id
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.text.normalizer import normalize


FilterKind = Literal["all", "uncategorized", "category"]


@dataclass(frozen=True)
class DictionaryFilter:
    kind: FilterKind = "all"
    category_id: Optional[str] = None

    @classmethod
    def all(cls) -> "DictionaryFilter":
        return cls()

    @classmethod
    def uncategorized(cls) -> "DictionaryFilter":
        return cls(kind="uncategorized")

    @classmethod
    def category(cls, category_id: str) -> "DictionaryFilter":
        return cls(kind="category", category_id=category_id)

    def matches(self, entry: DictionaryEntry) -> bool:
        if self.kind == "uncategorized":
            return not entry.category_ids
        if self.kind == "category":
            return self.category_id in entry.category_ids
        return True


class DictionaryStore:
    def __init__(
        self,
        entries: Optional[List[DictionaryEntry]] = None,
        categories: Optional[List[DictionaryCategory]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.entries: List[DictionaryEntry] = list(entries or [])
        self.categories: List[DictionaryCategory] = sorted(categories or [], key=lambda c: c.created_at)
        self.active_filter = DictionaryFilter.all()
        self._on_change = on_change

    # ---- 条目 ----

    def contains_text(self, text: str) -> bool:
        key = normalize(text)
        return any(normalize(e.text) == key for e in self.entries)

    def save(
        self,
        kind: EntryKind,
        text: str,
        original_text: str,
        tone: str = "",
        nuance: str = "",
        category_ids: Iterable[str] = (),
        correction_pairs: Optional[List[CorrectionPair]] = None,
    ) -> DictionaryEntry:
        """保存一条表达。

        Raises:
            ValidationError: 文本为空（EMPTY_TEXT）或与已有条目归一化后相同（DUPLICATE_ENTRY）。
        """

        trimmed = (text or "").strip()
        if not normalize(trimmed):
            raise ValidationError(code="EMPTY_TEXT", message="Text is empty")
        if self.contains_text(trimmed):
            logger.info("Dictionary entry rejected as duplicate", extra={"extra": {"kind": kind}})
            raise ValidationError(code="DUPLICATE_ENTRY", message="Already saved in your dictionary")
        entry = DictionaryEntry(
            id=new_id("e"),
            kind=kind,
            text=trimmed,
            original_text=(original_text or "").strip(),
            tone=(tone or "").strip(),
            nuance=(nuance or "").strip(),
            created_at=datetime.now(timezone.utc),
            category_ids=self._valid_category_ids(category_ids),
            correction_pairs=list(correction_pairs) if correction_pairs is not None else None,
        )
        self.entries.insert(0, entry)
        self._changed()
        return entry

    def get_entry(self, entry_id: str) -> DictionaryEntry:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        raise ValidationError(code="ENTRY_NOT_FOUND", message=entry_id)

    def delete_entry(self, entry_id: str) -> None:
        entry = self.get_entry(entry_id)
        self.entries.remove(entry)
        self._changed()

    def set_categories(self, entry_id: str, category_ids: Iterable[str]) -> DictionaryEntry:
        """覆盖条目的分类：过滤掉未知 id 并去重（保持顺序）。"""

        entry = self.get_entry(entry_id)
        entry.category_ids = self._valid_category_ids(category_ids)
        self._changed()
        return entry

    # ---- 分类 ----

    def get_category(self, category_id: str) -> DictionaryCategory:
        for category in self.categories:
            if category.id == category_id:
                return category
        raise ValidationError(code="CATEGORY_NOT_FOUND", message=category_id)

    def create_category(self, name: str) -> DictionaryCategory:
        """创建分类。

        Raises:
            ValidationError: 名称为空（CATEGORY_NAME_EMPTY）或重名（CATEGORY_NAME_DUPLICATE）。
        """

        trimmed = self._validate_category_name(name)
        category = DictionaryCategory(id=new_id("cat"), name=trimmed, created_at=datetime.now(timezone.utc))
        self.categories.append(category)
        self.categories.sort(key=lambda c: c.created_at)
        self._changed()
        return category

    def rename_category(self, category_id: str, name: str) -> DictionaryCategory:
        category = self.get_category(category_id)
        category.name = self._validate_category_name(name, exclude_id=category_id)
        self._changed()
        return category

    def delete_category(self, category_id: str) -> None:
        category = self.get_category(category_id)
        self.categories.remove(category)
        for entry in self.entries:
            if category_id in entry.category_ids:
                entry.category_ids = [cid for cid in entry.category_ids if cid != category_id]
        if self.active_filter.kind == "category" and self.active_filter.category_id == category_id:
            self.active_filter = DictionaryFilter.all()
        self._changed()

    def _validate_category_name(self, name: str, exclude_id: Optional[str] = None) -> str:
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError(code="CATEGORY_NAME_EMPTY", message="Category name is empty")
        lowered = trimmed.lower()
        for category in self.categories:
            if category.id != exclude_id and category.name.lower() == lowered:
                raise ValidationError(code="CATEGORY_NAME_DUPLICATE", message="Category already exists")
        return trimmed

    def _valid_category_ids(self, category_ids: Iterable[str]) -> List[str]:
        known = {c.id for c in self.categories}
        result: List[str] = []
        for cid in category_ids:
            if cid in known and cid not in result:
                result.append(cid)
        return result

    # ---- 过滤 ----

    def filtered(self, entry_filter: Optional[DictionaryFilter] = None) -> List[DictionaryEntry]:
        f = entry_filter or self.active_filter
        return [e for e in self.entries if f.matches(e)]

    def count(self, entry_filter: DictionaryFilter) -> int:
        return len(self.filtered(entry_filter))

    def set_active_filter(self, entry_filter: DictionaryFilter) -> None:
        if entry_filter.kind == "category":
            self.get_category(entry_filter.category_id or "")
        self.active_filter = entry_filter

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
