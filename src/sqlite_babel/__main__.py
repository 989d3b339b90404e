"""
SQLite Babel Server 主入口

可透過 python -m sqlite_babel 或 sqlite-babel-server 指令啟動伺服器
"""

import logging
import shutil
import sys

import uvicorn

from sqlite_babel.base.logging_config import setup_logging
from sqlite_babel.config import (
    API_KEYS,
    DATA_DIR,
    MCP_HOST,
    MCP_PORT,
    SQLITE3_COMMAND,
    cleanup_data_directory,
)
from sqlite_babel.tools import registry


def main():
    """主函式"""
    setup_logging()
    cleanup_data_directory()

    from sqlite_babel.app import SERVER_VERSION, app

    logger = logging.getLogger(__name__)
    logger.info(f"🚀 MCP 伺服器啟動 [v{SERVER_VERSION}]")
    logger.info(f"📂 資料目錄: {DATA_DIR.absolute()}")
    logger.info(f"🐍 Python: {sys.version}")
    logger.info(f"🔧 已載入 {registry.get_tool_count()} 個 Tools")

    if shutil.which(SQLITE3_COMMAND):
        logger.info(f"🗄️ sqlite3 命令: {SQLITE3_COMMAND}")
    else:
        logger.warning(f"⚠️ 找不到 sqlite3 命令 '{SQLITE3_COMMAND}'，區塊執行將會失敗")

    if API_KEYS:
        logger.info(f"🔐 API Key 認證: 已啟用，共 {len(API_KEYS)} 組 Key")
    else:
        logger.warning("⚠️ API Key 認證: 已停用（開發模式）")

    uvicorn.run(app, host=MCP_HOST, port=MCP_PORT)


if __name__ == "__main__":
    main()
