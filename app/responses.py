from typing import Any

from fastapi.responses import JSONResponse


def api_success(data: Any = None, message: str | None = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": True, "message": message, "data": data},
    )


def api_error(message: str | None, status_code: int, data: Any = None, error: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": False, "message": message, "data": data, "error": error},
    )
