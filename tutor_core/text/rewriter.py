"""把后端给出的修改建议应用到用户原句上。

语法反馈里有两类可用的修改：

1. edits: 明确的 (wrong, right) 替换对。
2. feedback_points: (part, fix)，fix 是自由文本，可能是
   "Add 'to the store'"、"Use 'went'"、"Remove 'very'" 这样的指令，
   也可能直接就是替换短语，或者是一段无法直接替换的说明。

derive_replacement 负责把 fix 变成具体的替换短语；
apply_edits / apply_feedback_points 按“最长匹配优先”逐条做一次
大小写不敏感的子串替换。片段互相重叠时，结果依赖替换顺序，这是已知的
启发式限制，不做额外处理。
"""

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from tutor_core.domain.feedback import FeedbackPoint, GrammarEdit
from tutor_core.text.normalizer import collapse_whitespace


# fix 文本不含引号指令时，仅当长度不超过该值才当作替换短语使用
MAX_BARE_FIX_LENGTH = 36

# 引号必须成对出现，单引号短语里允许出现撇号（如 don't）
_QUOTED = (
    r"""(?:"(?P<double>[^"]+)"|'(?P<single>.+?)'(?=\W|$)|“(?P<curly_double>[^”]+)”|‘(?P<curly_single>[^’]+)’)"""
)
_ADD_DIRECTIVE = re.compile(r"\badd\s+" + _QUOTED, re.IGNORECASE)
_USE_DIRECTIVE = re.compile(r"\buse\s+" + _QUOTED, re.IGNORECASE)
_REMOVE_DIRECTIVE = re.compile(r"\b(?:remove|delete|omit)\s+" + _QUOTED, re.IGNORECASE)
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([,.!?;:])")


def _quoted_phrase(match: "re.Match[str]") -> str:
    for group in ("double", "single", "curly_double", "curly_single"):
        if match.group(group) is not None:
            return match.group(group)
    return ""


def _remove_first(text: str, phrase: str) -> str:
    match = re.search(re.escape(phrase), text, re.IGNORECASE)
    if not match:
        return text
    return text[: match.start()] + " " + text[match.end():]


def derive_replacement(raw_fix: Optional[str], context_phrase: str) -> Optional[str]:
    """根据 fix 指令推导替换 context_phrase 的新短语。

    Returns:
        替换短语；指令无法直接用于替换时返回 None（调用方应跳过该条修改）。
    """

    fix = (raw_fix or "").strip()
    if not fix:
        return None
    context = context_phrase or ""

    match = _ADD_DIRECTIVE.search(fix)
    if match:
        return collapse_whitespace(f"{context} {_quoted_phrase(match)}") or None

    match = _USE_DIRECTIVE.search(fix)
    if match:
        return _quoted_phrase(match).strip() or None

    match = _REMOVE_DIRECTIVE.search(fix)
    if match:
        remaining = collapse_whitespace(_remove_first(context, _quoted_phrase(match).strip()))
        remaining = _SPACE_BEFORE_PUNCT.sub(r"\1", remaining).strip()
        return remaining or None

    if len(fix) <= MAX_BARE_FIX_LENGTH:
        return fix
    return None


def _replace_first(text: str, wrong: str, right: str) -> str:
    match = re.search(re.escape(wrong), text, re.IGNORECASE)
    if not match:
        return text
    return text[: match.start()] + right + text[match.end():]


def _apply_pairs(source: str, pairs: Iterable[Tuple[str, str]]) -> str:
    # sorted 是稳定排序，长度相同的片段保持原顺序
    ordered = sorted(pairs, key=lambda pair: len(pair[0]), reverse=True)
    text = source
    for wrong, right in ordered:
        text = _replace_first(text, wrong, right)
    return text


def apply_edits(source: str, edits: Sequence[GrammarEdit]) -> str:
    pairs: List[Tuple[str, str]] = []
    for edit in edits:
        wrong = (edit.wrong or "").strip()
        if wrong:
            pairs.append((wrong, (edit.right or "").strip()))
    return collapse_whitespace(_apply_pairs(source, pairs))


def apply_feedback_points(source: str, points: Sequence[FeedbackPoint]) -> str:
    pairs: List[Tuple[str, str]] = []
    for point in points:
        part = (point.part or "").strip()
        if not part:
            continue
        replacement = derive_replacement(point.fix, part)
        if replacement is None:
            continue
        pairs.append((part, replacement))
    return collapse_whitespace(_apply_pairs(source, pairs))
