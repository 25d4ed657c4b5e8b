"""确定性的文本处理流水线。

- normalizer: 归一化键，所有去重 / 相等判断都基于它。
- rewriter: 从 fix 指令推导替换短语，并把替换应用到原句。
- selector: 从多个候选中挑出唯一的“改进表达”。
- alternatives: 合并并去重原生替代表达。
- search: 会话内的消息搜索。
"""

from tutor_core.text.normalizer import normalize
from tutor_core.text.rewriter import apply_edits, apply_feedback_points, derive_replacement
from tutor_core.text.selector import improved_expression
from tutor_core.text.alternatives import merge_alternatives

__all__ = [
    "normalize",
    "derive_replacement",
    "apply_edits",
    "apply_feedback_points",
    "improved_expression",
    "merge_alternatives",
]
