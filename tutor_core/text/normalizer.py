"""归一化键：所有相等判断与去重都基于它。"""

import re

_TRAILING_PUNCT = re.compile(r"[.!?\s]+$")
_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize(text: str) -> str:
    """去掉首尾空白与结尾的 .!?，合并连续空白并转小写。

    两个字符串的键相等即视为同一个表达；该函数是幂等的。
    """

    trimmed = (text or "").strip()
    trimmed = _TRAILING_PUNCT.sub("", trimmed)
    return collapse_whitespace(trimmed).lower()
