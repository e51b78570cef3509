"""
Turn service payloads into HTTP responses.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse


def service_response(result: dict, status_code: int = 200) -> JSONResponse:
    if result.get("status") == "error":
        body = {"error": result.get("message"), "error_type": result.get("error_type")}
        if result.get("field"):
            body["field"] = result["field"]
        return JSONResponse(status_code=result.get("http_status", 500), content=body)
    return JSONResponse(status_code=status_code, content=result)
