"""
環境設定與常數

集中管理所有配置項，從環境變數載入。
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# 基本設定
# ═══════════════════════════════════════════════════════════════════════════════
# 專案根目錄
PROJECT_ROOT = Path(__file__).parent.parent.parent

# 載入 .env 檔案
ENV_PATH = PROJECT_ROOT / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)
    logger.info(f"📁 已載入環境設定檔: {ENV_PATH}")

# ═══════════════════════════════════════════════════════════════════════════════
# 認證設定 - 多 API Key 權限管理
# ═══════════════════════════════════════════════════════════════════════════════
# API_KEYS 結構:
# {
#     "api_key": {
#         "tools": ["*"] 或 ["sqlite_babel_*", ...],   # 允許的 tools
#         "exclude_tools": [...],                       # 排除的 tools（可選）
#         "databases": ["/data/*.db", ...]              # 允許的資料庫路徑（可選）
#     }
# }
# ["*"] 表示允許所有 tools；未設定 databases 表示不限制資料庫
#
# 設定方式：請在 .env 中設定 MCP_API_KEYS (JSON 或 Base64 編碼的 JSON 陣列)


class APIKeyManager:
    """API Keys 管理類別"""

    @staticmethod
    def _load_json_env(key: str, default: Any = None) -> Any:
        """從環境變數載入 JSON 格式的值"""
        import base64
        import binascii

        value = os.getenv(key, "")
        if not value:
            return default
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            try:
                return json.loads(base64.b64decode(value).decode("utf-8"))
            except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
                logger.warning(f"⚠️ 環境變數 {key} 格式錯誤，已忽略")
                return default

    @classmethod
    def get_api_keys(cls) -> dict[str, dict]:
        """取得 MCP API Keys"""
        raw = cls._load_json_env("MCP_API_KEYS", [])
        if not raw:
            return {}
        return {item["api_key"]: {k: v for k, v in item.items() if k != "api_key"} for item in raw}


# ═══════════════════════════════════════════════════════════════════════════════
# 認證設定
# ═══════════════════════════════════════════════════════════════════════════════
API_KEYS = APIKeyManager.get_api_keys()

if API_KEYS:
    logger.info(f"🔐 API Key 認證已啟用，已設定 {len(API_KEYS)} 組 Key")
else:
    logger.warning("⚠️ 未設定 API_KEYS，API Key 認證已停用（開發模式）")

# ═══════════════════════════════════════════════════════════════════════════════
# sqlite3 命令列設定
# ═══════════════════════════════════════════════════════════════════════════════
# 外部 sqlite3 執行檔名稱，可為絕對路徑
DEFAULT_SQLITE3_COMMAND = "sqlite3"
SQLITE3_COMMAND = os.getenv("SQLITE3_COMMAND", DEFAULT_SQLITE3_COMMAND)

# 表格變數轉存 CSV 的目錄；可能是使用者自訂的既有目錄，只會清理本程式產生的檔案
DATA_DIR = Path(os.getenv("SQLITE_BABEL_DATA_DIR", str(PROJECT_ROOT / "sqlite_workspace")))

# 表格變數 CSV 檔名前綴
DATA_FILE_PREFIX = "sqlite-data-"


def cleanup_data_directory(data_dir: Path = DATA_DIR) -> None:
    """清理資料目錄中殘留的 CSV 暫存檔（僅限 DATA_FILE_PREFIX 開頭的 .csv）"""
    data_dir.mkdir(parents=True, exist_ok=True)

    cleaned_count = 0
    for item in data_dir.glob(f"{DATA_FILE_PREFIX}*.csv"):
        if not item.is_file():
            continue
        try:
            item.unlink()
            cleaned_count += 1
        except OSError as e:
            logger.warning(f"無法清理 {item}: {e}")
    if cleaned_count > 0:
        logger.info(f"🧹 已清理資料目錄: 移除 {cleaned_count} 個 CSV 暫存檔")


# ═══════════════════════════════════════════════════════════════════════════════
# 伺服器設定
# ═══════════════════════════════════════════════════════════════════════════════
MCP_HOST = os.getenv("MCP_HOST", "0.0.0.0")
MCP_PORT = int(os.getenv("MCP_PORT", "8000"))

# ═══════════════════════════════════════════════════════════════════════════════
# 輸入限制
# ═══════════════════════════════════════════════════════════════════════════════
MAX_INPUT_LENGTH = int(os.getenv("MCP_MAX_INPUT", "1000000"))
