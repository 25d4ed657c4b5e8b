"""为一条用户消息挑出唯一的“改进表达”。"""

from typing import List, Optional

from tutor_core.domain.feedback import GrammarFeedback
from tutor_core.text.normalizer import normalize
from tutor_core.text.rewriter import apply_edits, apply_feedback_points


def candidate_expressions(source: str, feedback: GrammarFeedback) -> List[str]:
    """按优先级排列的候选，尚未与原句比较过滤。"""

    candidates: List[str] = []
    if feedback.has_errors:
        candidates.append(feedback.corrected_text)
    edited = apply_feedback_points(apply_edits(source, feedback.edits), feedback.feedback_points)
    candidates.append(edited)
    candidates.append(feedback.natural_rewrite)
    candidates.append(feedback.natural_alternative)
    return candidates


def improved_expression(source: str, feedback: Optional[GrammarFeedback]) -> Optional[str]:
    """返回第一个归一化键既不同于原句、也不同于之前候选的表达；都不满足时返回 None。"""

    if feedback is None:
        return None
    seen = {normalize(source)}
    for raw in candidate_expressions(source, feedback):
        candidate = (raw or "").strip()
        if not candidate:
            continue
        key = normalize(candidate)
        if not key or key in seen:
            continue
        return candidate
    return None
