"""
sqlite3 命令列組裝

依 Option Set 產生 sqlite3 的參數列表，順序固定：
執行檔、-header/-noheader、-separator、-nullvalue、旗標、預設 -csv、資料庫路徑。
"""

import logging

from sqlite_babel.config import DEFAULT_SQLITE3_COMMAND
from sqlite_babel.tools.sqlite_babel.options import (
    FLAG_OPTIONS,
    TEXT_MODE_OPTIONS,
    OptionSet,
    get_value,
    has_option,
    require_db,
)

logger = logging.getLogger(__name__)


def wants_colnames(options: OptionSet) -> bool:
    """:colnames yes 才把第一列視為欄位名稱"""
    return get_value(options, "colnames") == "yes"


def uses_text_mode(options: OptionSet) -> bool:
    """是否明確指定了輸出模式或欄位分隔字元（此時不使用預設 CSV）"""
    return has_option(options, "separator") or any(has_option(options, name) for name in TEXT_MODE_OPTIONS)


def build_command(options: OptionSet, command: str = DEFAULT_SQLITE3_COMMAND) -> list[str]:
    """
    組裝 sqlite3 參數列表

    Args:
        options: 區塊參數
        command: sqlite3 執行檔名稱或路徑

    Returns:
        list[str]: 可直接交給 create_subprocess_exec 的 argv

    Raises:
        ConfigurationError: 缺少 :db
    """
    db = require_db(options)

    argv = [command, "-header" if wants_colnames(options) else "-noheader"]

    separator = get_value(options, "separator")
    if separator is not None:
        argv += ["-separator", separator]

    nullvalue = get_value(options, "nullvalue")
    if nullvalue is not None:
        argv += ["-nullvalue", nullvalue]

    argv += [f"-{name}" for name in FLAG_OPTIONS if has_option(options, name)]

    if not uses_text_mode(options):
        argv.append("-csv")

    # 以 - 開頭的路徑會被 sqlite3 當成選項
    argv.append(f"./{db}" if db.startswith("-") else db)
    return argv
