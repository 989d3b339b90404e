"""
安全與認證模組

處理 API Key 驗證，以及每組 Key 可使用的 tools 與資料庫權限
"""
import fnmatch
import logging
from pathlib import Path

from fastapi import HTTPException, Request, status

from sqlite_babel.config import API_KEYS
from sqlite_babel.schemas import MCPError

logger = logging.getLogger(__name__)

# 用於儲存 request state 的 key
STATE_ALLOWED_TOOLS = "allowed_tools"
STATE_EXCLUDED_TOOLS = "excluded_tools"
STATE_ALLOWED_DATABASES = "allowed_databases"


async def verify_api_key(request: Request) -> list[str]:
    """
    驗證 API Key 並回傳允許的 Tools 清單

    Args:
        request: FastAPI Request 物件

    Returns:
        list[str]: 允許的 tool 名稱列表，若為 ["*"] 表示所有 tools

    Raises:
        HTTPException: 驗證失敗時拋出 401 或 403
    """
    # 若無設定任何 API Key，則跳過認證（開發模式）
    if not API_KEYS:
        request.state.allowed_tools = ["*"]
        return ["*"]

    client_host = request.client.host if request.client else "unknown"
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        logger.warning(f"Authorization Header 缺失: {client_host}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization Header. Expected format: 'Authorization: Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning(f"無效的 Authorization 格式: {client_host}, Header: {auth_header[:20]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization format. Expected 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = parts[1]
    if token not in API_KEYS:
        logger.warning(f"無效的 API Key 嘗試: {client_host}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API Key",
        )

    key_config = API_KEYS[token]
    allowed_tools: list[str] = key_config.get("tools", [])
    request.state.allowed_tools = allowed_tools
    request.state.excluded_tools = key_config.get("exclude_tools", [])
    request.state.allowed_databases = key_config.get("databases", ["*"])
    return allowed_tools


def get_allowed_tools(request: Request) -> list[str]:
    """從 request state 取得允許的 tools 清單"""
    return getattr(request.state, STATE_ALLOWED_TOOLS, ["*"])


def get_excluded_tools(request: Request) -> list[str]:
    """從 request state 取得排除的 tools 清單"""
    return getattr(request.state, STATE_EXCLUDED_TOOLS, [])


def _matches_any(name: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


def is_tool_allowed(request: Request, tool_name: str) -> bool:
    """
    檢查指定的 tool 是否被允許執行

    支援 wildcard 模式匹配，例如 ["sqlite_babel_*"]；
    exclude_tools 排除清單優先於允許清單。
    """
    if _matches_any(tool_name, get_excluded_tools(request)):
        return False

    allowed_tools = get_allowed_tools(request)
    if "*" in allowed_tools:
        return True
    return _matches_any(tool_name, allowed_tools)


def filter_allowed_tools(request: Request, all_tools: list[dict]) -> list[dict]:
    """根據權限過濾 tools 清單"""
    return [tool for tool in all_tools if is_tool_allowed(request, tool.get("name", ""))]


def check_database_access(request: Request, db: str) -> None:
    """
    檢查該 API Key 是否可以使用指定的資料庫檔案

    databases 清單以 wildcard 比對資料庫路徑（原樣與解析後的絕對路徑皆可）。

    Raises:
        MCPError: 資料庫不在允許清單內
    """
    patterns: list[str] = getattr(request.state, STATE_ALLOWED_DATABASES, ["*"])
    if "*" in patterns:
        return

    resolved = str(Path(db).expanduser().resolve())
    if _matches_any(db, patterns) or _matches_any(resolved, patterns):
        return

    logger.warning(f"資料庫 '{db}' 權限不足")
    raise MCPError(
        code=-32603,
        message=f"Permission denied: database '{db}' is not allowed for this API Key",
        data={"db": db},
    )
