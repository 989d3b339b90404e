"""
區塊參數（header arguments）

定義 sqlite 區塊可用的參數詞彙，並將 org 風格的參數行
（例如 ":db test.db :colnames yes :var n=3"）解析為 Option Set。
"""

import logging
import re
from typing import Any

from sqlite_babel.schemas import ConfigurationError
from sqlite_babel.tools.sqlite_babel.literal import read_literal, unquote

logger = logging.getLogger(__name__)

OptionSet = dict[str, Any]

# 表格中的水平分隔線標記
HLINE = "hline"

# 以旗標形式傳給 sqlite3 的參數，順序即為命令列順序
FLAG_OPTIONS = ("header", "echo", "bail", "column", "csv", "html", "line", "list")

# 任一出現即不再預設 -csv
TEXT_MODE_OPTIONS = ("csv", "column", "line", "list", "html")

VALUE_OPTIONS = ("db", "separator", "nullvalue", "colnames")

# 區塊層級的通用參數
BLOCK_OPTIONS = ("results", "prologue", "epilogue", "session")

KNOWN_OPTIONS = frozenset(FLAG_OPTIONS + VALUE_OPTIONS + BLOCK_OPTIONS)

_VAR_ASSIGNMENT = re.compile(r"^([A-Za-z_][A-Za-z0-9_-]*)=(.*)$", re.DOTALL)

# 一個參數字詞：可夾帶雙引號字串（引號保留給後續判斷），例如 who="ann lee"
_HEADER_TOKEN = re.compile(r'(?:[^\s"]+|"(?:\\.|[^"\\])*")+')


def has_option(options: OptionSet, name: str) -> bool:
    """旗標是否出現；明確設為 False 視為未出現"""
    return name in options and options[name] is not False


def get_value(options: OptionSet, name: str) -> str | None:
    """取得字串型參數，未設定或僅為旗標時回傳 None"""
    value = options.get(name)
    if value is None or isinstance(value, bool):
        return None
    return str(value)


def normalize_options(mapping: dict[str, Any] | None) -> OptionSet:
    """
    正規化參數字典：去掉前置冒號、轉小寫，並拒絕未知參數

    Raises:
        ConfigurationError: 出現未知參數
    """
    options: OptionSet = {}
    for key, value in (mapping or {}).items():
        name = str(key).lstrip(":").lower()
        if name not in KNOWN_OPTIONS:
            raise ConfigurationError(f"Unknown sqlite header argument: :{name}")
        options[name] = value
    return options


def parse_header_args(text: str) -> tuple[OptionSet, dict[str, Any]]:
    """
    解析 org 風格的參數行

    ":db test.db :header :colnames yes :var n=3 :var who=\"ann lee\""
    → ({"db": "test.db", "header": True, "colnames": "yes"}, {"n": 3, "who": "ann lee"})

    Returns:
        (options, variables)

    Raises:
        ConfigurationError: 參數行格式錯誤或出現未知參數
    """
    text = text or ""
    if _HEADER_TOKEN.sub("", text).strip():
        raise ConfigurationError(f"Malformed header arguments (unbalanced quotes): {text!r}")
    tokens = _HEADER_TOKEN.findall(text)

    pairs: list[tuple[str, list[str]]] = []
    for token in tokens:
        if token.startswith(":") and len(token) > 1:
            pairs.append((token[1:].lower(), []))
        elif not pairs:
            raise ConfigurationError(f"Header argument value without a key: {token!r}")
        else:
            pairs[-1][1].append(token)

    raw_options: dict[str, Any] = {}
    variables: dict[str, Any] = {}
    for name, words in pairs:
        if name == "var":
            for assignment in words:
                var_name, value = _parse_var(assignment)
                variables[var_name] = value
            continue
        raw_options[name] = " ".join(_unquote_word(word) for word in words) if words else True

    return normalize_options(raw_options), variables


def _unquote_word(word: str) -> str:
    if len(word) >= 2 and word.startswith('"') and word.endswith('"'):
        return unquote(word)
    return word


def _parse_var(assignment: str) -> tuple[str, Any]:
    match = _VAR_ASSIGNMENT.match(assignment)
    if not match:
        raise ConfigurationError(f"Malformed :var assignment: {assignment!r}")
    return match.group(1), read_literal(match.group(2))


def result_params(options: OptionSet) -> list[str]:
    """將 :results 的值拆成關鍵字列表"""
    value = get_value(options, "results")
    return value.split() if value else []


def require_db(options: OptionSet) -> str:
    """
    取得 :db 參數

    Raises:
        ConfigurationError: 未提供資料庫路徑
    """
    db = get_value(options, "db")
    if not db:
        raise ConfigurationError("sqlite block cannot run without a :db database path")
    return db
