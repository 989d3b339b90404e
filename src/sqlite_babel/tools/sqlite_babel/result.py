"""
sqlite3 輸出解析

依結果類型決定原樣回傳文字或解析成表格，並處理欄位名稱列與單一值收斂。
"""

import csv
import io
import logging
import re
from typing import Any

from sqlite_babel.tools.sqlite_babel.command import uses_text_mode, wants_colnames
from sqlite_babel.tools.sqlite_babel.literal import read_literal
from sqlite_babel.tools.sqlite_babel.options import HLINE, OptionSet, result_params

logger = logging.getLogger(__name__)

# 出現任一個（且未要求 table）即原樣回傳輸出文字
RAW_RESULT_PARAMS = frozenset({"scalar", "verbatim", "html", "code", "pp", "raw"})

# 未指定分隔字元時，以空白或 | 切分儲存格
_WHITESPACE_SPLIT = re.compile(r"[ \t]*\|[ \t]*|[ \t]+")


def is_raw_result(params: list[str]) -> bool:
    """:results 是否要求原樣輸出"""
    if "table" in params:
        return False
    return any(param in RAW_RESULT_PARAMS for param in params)


def _guess_rows(lines: list[str]) -> list[list[str]]:
    """
    猜測分隔方式：每行都有 tab 用 tab，每行都有逗號用 CSV，否則以空白與 | 切分
    """
    if all("\t" in line for line in lines):
        return [line.split("\t") for line in lines]
    if all("," in line for line in lines):
        return list(csv.reader(lines))
    rows = []
    for line in lines:
        stripped = line.strip(" \t|")
        rows.append(_WHITESPACE_SPLIT.split(stripped) if stripped else [])
    return rows


def parse_table(text: str, structured: bool = True) -> list[list[str]]:
    """
    將 sqlite3 輸出解析為表格

    Args:
        text: 原始輸出
        structured: True 以嚴格 CSV 規則解析；False 自動猜測分隔方式

    Returns:
        list[list[str]]: 儲存格已去除前後空白，短列補空字串到最寬列
    """
    if structured:
        # 單欄的 NULL 會輸出空行，保留為一個空儲存格
        rows = [row or [""] for row in csv.reader(io.StringIO(text))]
    else:
        rows = [row for row in _guess_rows([line for line in text.splitlines() if line.strip()]) if row]

    rows = [[cell.strip() for cell in row] for row in rows]
    width = max((len(row) for row in rows), default=0)
    return [row + [""] * (width - len(row)) for row in rows]


def offset_colnames(table: list, headers: bool) -> list:
    """要求欄位名稱時，在第一列之後插入 HLINE"""
    if headers and table:
        return [table[0], HLINE, *table[1:]]
    return table


def table_or_scalar(table: list) -> Any:
    """單列單欄收斂為單一值，否則逐格讀取字面值"""
    if len(table) == 1 and table[0] != HLINE and len(table[0]) == 1:
        return read_literal(table[0][0])
    return [row if row == HLINE else [read_literal(cell) for cell in row] for row in table]


def interpret_result(output: str, options: OptionSet) -> Any:
    """
    解讀 sqlite3 的輸出

    Returns:
        原樣文字、空字串、單一值，或表格（可能含 HLINE 列）
    """
    if is_raw_result(result_params(options)):
        return output.rstrip("\n")

    if not output:
        return ""

    table = parse_table(output, structured=not uses_text_mode(options))
    logger.debug(f"📋 解析輸出: {len(table)} 列")
    return table_or_scalar(offset_colnames(table, wants_colnames(options)))


def render_org_table(value: Any) -> str:
    """將結果渲染為 org 表格文字；單一值直接轉為字串"""
    if not isinstance(value, list):
        return str(value)
    if not value:
        return ""

    rows = [row if row == HLINE else ["" if cell is None else str(cell) for cell in row] for row in value]
    data_rows = [row for row in rows if row != HLINE]
    width = max((len(row) for row in data_rows), default=0)
    col_widths = [
        max((len(row[i]) for row in data_rows if i < len(row)), default=0) for i in range(width)
    ]

    lines = []
    for row in rows:
        if row == HLINE:
            lines.append("|" + "+".join("-" * (w + 2) for w in col_widths) + "|")
        else:
            cells = [(row[i] if i < len(row) else "").ljust(col_widths[i]) for i in range(width)]
            lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)
