# This file contains the response helpers shared by the routes and the error handlers
# Success and error payloads use the same envelope
from fastapi.responses import JSONResponse

from .errors import DocHubError, NotFound, RetrievalCancelled, StorageFault


def ok(message: str = "OK", data=None, status_code: int = 200):
    return JSONResponse({
        "success": True,
        "message": message,
        "data": data
    }, status_code=status_code)

def bad(status_code: int, code: str, message: str, details=None):
    return JSONResponse({
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "details": details
        }
    }, status_code=status_code)

# This maps a storage layer exception to the error envelope
# Backend details are only given as the failed operation name
def error_response(exc: DocHubError):
    if isinstance(exc, NotFound):
        return bad(404, "NOT_FOUND", str(exc))
    if isinstance(exc, StorageFault):
        return bad(502, "STORAGE_ERROR", "Storage backend failure", exc.operation)
    if isinstance(exc, RetrievalCancelled):
        return bad(503, "CANCELLED", str(exc))
    return bad(500, "SERVER_ERROR", str(exc))
