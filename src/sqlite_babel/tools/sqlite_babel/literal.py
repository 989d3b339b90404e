"""
字面值讀取

把 sqlite3 輸出的文字儲存格轉成最自然的型別：
雙引號包住的文字 → 字串（去掉引號）；符合數字語法 → int / float；其餘保持原字串。
"""

import re

NUMBER_PATTERN = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?$")


def unquote(text: str) -> str:
    """去掉外層雙引號並還原 \\" 與 \\\\ 跳脫"""
    body = text[1:-1]
    return re.sub(r"\\(.)", r"\1", body, flags=re.DOTALL)


def read_literal(text: str) -> int | float | str:
    """
    讀取單一字面值

    >>> read_literal("42"), read_literal("-1.5"), read_literal('"a,b"'), read_literal("NULL")
    (42, -1.5, 'a,b', 'NULL')
    """
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return unquote(text)

    stripped = text.strip()
    if NUMBER_PATTERN.match(stripped):
        if "." in stripped or "e" in stripped.lower():
            return float(stripped)
        return int(stripped)

    return text
