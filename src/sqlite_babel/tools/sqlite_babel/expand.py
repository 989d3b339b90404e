"""
查詢內容展開

將文件變數代入 SQL 內容：表格變數轉存為 CSV 暫存檔並代入其路徑，
字串原樣代入，其他純量以 JSON 表示代入。
"""

import contextlib
import csv
import io
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlite_babel.config import DATA_FILE_PREFIX
from sqlite_babel.tools.sqlite_babel.options import HLINE, OptionSet, get_value

logger = logging.getLogger(__name__)


def is_table(value: Any) -> bool:
    """list of rows（每列為 list/tuple 或 HLINE）才視為表格"""
    return isinstance(value, (list, tuple)) and all(
        row == HLINE or isinstance(row, (list, tuple)) for row in value
    )


def render_value(value: Any) -> str:
    """純量的文字表示：字串原樣，其餘用 JSON"""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def table_to_csv(table: list) -> str:
    """
    將表格序列化為 CSV，每列以換行結尾

    HLINE 列會被略過；含逗號、引號或換行的儲存格依 CSV 規則加上引號。
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in table:
        if row == HLINE:
            continue
        writer.writerow([render_value(cell) for cell in row])
    return buffer.getvalue()


@dataclass
class QueryExpansion:
    """展開後的查詢內容，以及過程中產生的資料檔"""

    body: str
    data_files: list[Path] = field(default_factory=list)

    def cleanup(self) -> None:
        """刪除本次展開產生的 CSV 檔"""
        for path in self.data_files:
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
        self.data_files.clear()


def write_data_file(table: list, data_dir: Path | None = None) -> Path:
    """把表格寫入唯一命名的 CSV 暫存檔，回傳路徑"""
    if data_dir is not None:
        data_dir.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=DATA_FILE_PREFIX, suffix=".csv", dir=data_dir)
    with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
        f.write(table_to_csv(table))
    logger.debug(f"📄 表格變數已寫入: {name} ({len(table)} 列)")
    return Path(name)


def expand_vars(body: str, variables: dict[str, Any] | None, data_dir: Path | None = None) -> QueryExpansion:
    """
    代入變數 $name

    名稱由長到短依序以字面字串取代，避免 $x 先吃掉 $xy 的前綴。
    """
    expansion = QueryExpansion(body=body)
    if not variables:
        return expansion

    try:
        for name in sorted(variables, key=len, reverse=True):
            token = f"${name}"
            if token not in expansion.body:
                continue
            value = variables[name]
            if is_table(value):
                path = write_data_file(list(value), data_dir)
                expansion.data_files.append(path)
                replacement = str(path)
            else:
                replacement = render_value(value)
            expansion.body = expansion.body.replace(token, replacement)
    except BaseException:
        expansion.cleanup()
        raise

    return expansion


def expand_body(
    body: str,
    options: OptionSet,
    variables: dict[str, Any] | None = None,
    data_dir: Path | None = None,
) -> QueryExpansion:
    """代入變數後，再以換行接上 :prologue 與 :epilogue"""
    expansion = expand_vars(body, variables, data_dir)
    parts = [get_value(options, "prologue"), expansion.body, get_value(options, "epilogue")]
    expansion.body = "\n".join(part for part in parts if part is not None)
    return expansion
