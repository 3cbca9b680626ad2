# This is the main entry point for the DocHub API
# It sets up the FastAPI application, logging and error handlers
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from . import file_routes
from .config import get_settings
from .errors import DocHubError
from .logger import init_logger
from .utils import ok, bad, error_response

settings = get_settings()
API_PREFIX = settings.api_prefix

# The docs are available at /api/docs (Swagger UI)
app = FastAPI(
    title="DocHub API",
    description="Partitioned document storage on S3 with secure links and bulk zip downloads",
    version="1.0.0",
    openapi_url=f"{API_PREFIX}/openapi.json",
    docs_url=f"{API_PREFIX}/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Missing-Files"],
)

@app.get("/")
def root_redirect():
    return RedirectResponse(url=f"{API_PREFIX}/docs")

# This endpoint provides an overview of all available API routes
@app.get(f"{API_PREFIX}/")
def index():
    return ok("DocHub API", {
        "admin": [
            f"{API_PREFIX}/file/list/{{admin_key}}",
            f"{API_PREFIX}/file/list/{{admin_key}}/{{partition}}",
            f"{API_PREFIX}/file/post/{{admin_key}}",
            f"{API_PREFIX}/file/delete/{{admin_key}}/{{partition}}/{{id}}",
        ],
        "files": [
            f"{API_PREFIX}/file/get/{{partition}}/{{id}}",
            f"{API_PREFIX}/file/link/{{partition}}/{{id}}",
            f"{API_PREFIX}/file/zip/{{partition}}?files=a;b",
        ],
        "docs": f"{API_PREFIX}/docs",
    })

app.include_router(file_routes.router, prefix=API_PREFIX)

@app.on_event("startup")
async def startup_event():
    init_logger(settings.log_level)

# Storage errors are turned into the standard error envelope
@app.exception_handler(DocHubError)
async def on_storage_error(_req: Request, exc: DocHubError):
    return error_response(exc)

# This catches any unhandled exceptions and returns a standardized error response
@app.exception_handler(Exception)
async def on_exception(_req: Request, exc: Exception):
    return bad(500, "SERVER_ERROR", "Something went wrong", str(exc))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("dochub.main:app", host="0.0.0.0", port=settings.port)
