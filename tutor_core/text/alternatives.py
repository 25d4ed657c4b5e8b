"""把本地推导的“首选”表达与后端返回的替代表达合并。"""

from typing import List, Optional, Sequence

from tutor_core.domain.feedback import GrammarFeedback, NativeAlternative
from tutor_core.text.normalizer import normalize

MAX_ALTERNATIVES = 3
PREFERRED_TONE = "Most Common"


def preferred_alternative(feedback: Optional[GrammarFeedback]) -> Optional[NativeAlternative]:
    """用已加载的语法反馈里的 natural_alternative 构造 "Most Common" 表达。"""

    if feedback is None:
        return None
    text = (feedback.natural_alternative or "").strip()
    if not text:
        return None
    return NativeAlternative(text=text, tone=PREFERRED_TONE, nuance=(feedback.natural_reason or "").strip())


def merge_alternatives(
    preferred: Optional[NativeAlternative],
    generated: Sequence[NativeAlternative],
    cap: int = MAX_ALTERNATIVES,
) -> List[NativeAlternative]:
    """归一化键相同时保留先出现的一项，结果最多 cap 条。"""

    merged: List[NativeAlternative] = []
    seen = set()
    candidates = ([preferred] if preferred is not None else []) + list(generated)
    for item in candidates:
        key = normalize(item.text)
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return merged[:cap]
