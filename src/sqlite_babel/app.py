"""
SQLITE-BABEL-SERVER v1.0.0

以 MCP 協議提供 SQLite 區塊執行服務，Tool 定義位於 tools/ 目錄
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlite_babel.config import API_KEYS, DATA_DIR, DATA_FILE_PREFIX, MCP_HOST, MCP_PORT, SQLITE3_COMMAND
from sqlite_babel.schemas import MCPError, SqliteBabelError
from sqlite_babel.security import filter_allowed_tools, is_tool_allowed, verify_api_key

# ═══════════════════════════════════════════════════════════════════════════════
# 關鍵：載入所有 Tools（透過 tools/__init__.py 自動註冊）
# ═══════════════════════════════════════════════════════════════════════════════
from sqlite_babel.tools import registry  # noqa: E402
from sqlite_babel.utils import format_tool_result, truncate_string  # noqa: E402

logger = logging.getLogger(__name__)

SERVER_NAME = "SQLITE-BABEL-SERVER"
SERVER_VERSION = "1.0.0"
SERVER_FEATURES = [
    "sqlite_block_execution",
    "variable_expansion",
    "table_results",
]


# ═══════════════════════════════════════════════════════════════════════════════
# Lifespan 管理
# ═══════════════════════════════════════════════════════════════════════════════
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI Lifespan 管理器

    啟動時：初始化日誌、清理上次殘留的 CSV 資料檔
    """
    from sqlite_babel.base.logging_config import setup_logging
    from sqlite_babel.config import cleanup_data_directory

    setup_logging()
    logger.info("🚀 MCP 伺服器初始化中...")

    cleanup_data_directory()

    yield  # FastAPI 運行中

    logger.info("🛑 MCP 伺服器已停止")


# ═══════════════════════════════════════════════════════════════════════════════
# FastAPI 應用實例
# ═══════════════════════════════════════════════════════════════════════════════
app = FastAPI(
    title=SERVER_NAME,
    description="MCP Server for executing SQLite source blocks through the sqlite3 CLI",
    version=SERVER_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"]
)

# ═══════════════════════════════════════════════════════════════════════════════
# HTTP 異常處理
# ═══════════════════════════════════════════════════════════════════════════════

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """自定義 HTTP 異常處理，確保 MCP 協議格式"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "jsonrpc": "2.0" if request.url.path == "/mcp" else None,
            "id": None,
            "error": {
                "code": -32000 if exc.status_code == 401 else -32001,
                "message": exc.detail,
                "status_code": exc.status_code
            }
        },
        headers=exc.headers,
    )


@app.exception_handler(MCPError)
async def mcp_exception_handler(request: Request, exc: MCPError):
    """處理 MCPError 異常"""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "jsonrpc": "2.0",
            "id": None,
            "error": {
                "code": exc.code,
                "message": exc.message,
                "data": exc.data
            }
        }
    )


# ═══════════════════════════════════════════════════════════════════════════════
# MCP 端點
# ═══════════════════════════════════════════════════════════════════════════════

@app.post("/mcp")
async def mcp_endpoint(req: Request) -> dict:
    """MCP 協議端點，受 Bearer Token 保護"""
    await verify_api_key(req)

    try:
        body = await req.json()
    except ValueError:
        logger.warning("請求 JSON 解析失敗")
        return {
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": -32700, "message": "Parse error: Invalid JSON"}
        }

    req_id = body.get("id")
    method = body.get("method")

    try:
        if method == "initialize":
            result = _handle_initialize()
        elif method == "tools/list":
            result = _handle_tools_list(req)
        elif method == "tools/call":
            result = await _handle_tools_call(body, req)
        else:
            raise MCPError(-32601, f"Method not found: {method}")

        return {"jsonrpc": "2.0", "id": req_id, "result": result}

    except MCPError as e:
        return {
            "jsonrpc": "2.0",
            "id": req_id,
            "error": {"code": e.code, "message": e.message, "data": e.data}
        }
    except SqliteBabelError as e:
        logger.warning(f"SQLite 區塊錯誤 [{type(e).__name__}]: {truncate_string(str(e), 200)}")
        return {
            "jsonrpc": "2.0",
            "id": req_id,
            "error": {"code": e.code, "message": str(e), "data": {"error_type": type(e).__name__}}
        }
    except ValueError as e:
        logger.exception(f"參數錯誤: {e}")
        return {
            "jsonrpc": "2.0",
            "id": req_id,
            "error": {"code": -32602, "message": f"Invalid params: {str(e)}"}
        }
    except Exception as e:
        logger.exception(f"處理請求失敗: {e}")
        return {
            "jsonrpc": "2.0",
            "id": req_id,
            "error": {"code": -32603, "message": f"Internal error: {str(e)}"}
        }


def _handle_initialize() -> dict:
    """處理 initialize method"""
    return {
        "protocolVersion": "2024-11-05",
        "capabilities": {
            "tools": {},
        },
        "serverInfo": {
            "name": SERVER_NAME,
            "version": SERVER_VERSION,
            "features": SERVER_FEATURES,
        }
    }


def _handle_tools_list(request: Request) -> dict:
    """處理 tools/list method - 從 registry 取得，並根據權限過濾"""
    all_tools = registry.list_tools()
    return {"tools": filter_allowed_tools(request, all_tools)}


async def _handle_tools_call(body: dict, request: Request) -> dict:
    """
    處理 tools/call method - 委派給 registry，並檢查權限

    Raises:
        MCPError: 權限不足或 Tool 不存在
    """
    params = body.get("params", {})
    tool_name = params.get("name")
    args = params.get("arguments", {})

    if not is_tool_allowed(request, tool_name or ""):
        logger.warning(f"Tool '{tool_name}' 權限不足")
        raise MCPError(
            code=-32603,
            message=f"Permission denied: Tool '{tool_name}' is not allowed for this API Key",
            data={"tool": tool_name}
        )

    exec_result = await registry.execute(tool_name, args, request)
    result = format_tool_result(exec_result)

    logger.info(f"✅ Tool {tool_name} 執行完成")

    return result


# ═══════════════════════════════════════════════════════════════════════════════
# 健康檢查端點
# ═══════════════════════════════════════════════════════════════════════════════

@app.get("/mcp")
async def mcp_get(req: Request) -> dict:
    """健康檢查端點，受 Bearer Token 保護。"""
    await verify_api_key(req)

    import shutil

    data_files = len(list(DATA_DIR.glob(f"{DATA_FILE_PREFIX}*.csv"))) if DATA_DIR.exists() else 0

    return {
        "status": "ok",
        "authenticated": True,
        "protocol": "MCP 2024-11-05",
        "version": SERVER_VERSION,
        "features": SERVER_FEATURES,
        "tools_loaded": registry.get_tool_count(),
        "security": {
            "api_key_required": bool(API_KEYS),
            "api_keys_count": len(API_KEYS) if API_KEYS else 0,
            "auth_method": "Authorization: Bearer <token>" if API_KEYS else "None (Development Mode)"
        },
        "sqlite3": {
            "command": SQLITE3_COMMAND,
            "available": shutil.which(SQLITE3_COMMAND) is not None,
        },
        "config": {
            "data_directory": str(DATA_DIR.absolute()),
        },
        "stats": {"data_files": data_files}
    }


# ═══════════════════════════════════════════════════════════════════════════════
# 啟動入口
# ═══════════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn

    logger.info(f"🔧 已載入 {registry.get_tool_count()} 個 Tools")
    uvicorn.run(app, host=MCP_HOST, port=MCP_PORT)
