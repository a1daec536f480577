import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse

from family_tree.core.config import settings
from family_tree.core.errors import STATUS_BY_KIND, FamilyTreeError
from family_tree.core.logging import configure_logging
from family_tree.routers import branches, creation_flow, families, health, links, members
from family_tree.schemas.errors import ErrorBody, ErrorResponse

configure_logging()
logger = structlog.get_logger()

app = FastAPI(
    title="Family Tree API",
    version="1.0.0",
    description="API for family trees, mother branches, guided setup and family linking.",
    # Served behind the edge proxy under a prefix; /docs is provided below with the prefixed openapi URL.
    docs_url=None,
    root_path=settings.root_path,
)


@app.get("/docs", include_in_schema=False)
def swagger_ui():
    prefix = (settings.root_path or "").rstrip("/")
    openapi_url = f"{prefix}{app.openapi_url}"
    return get_swagger_ui_html(openapi_url=openapi_url, title=f"{app.title} - Docs")


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FamilyTreeError)
async def family_tree_error_handler(request: Request, exc: FamilyTreeError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logger.warning("request_failed", path=request.url.path, code=exc.code, details=exc.details)
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=ErrorBody(**exc.as_dict())).model_dump())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Unexpected failures are logged with their traceback and reported without one."""
    logger.error("unhandled_exception", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorBody(kind="internal_error", code="INTERNAL_ERROR", message="internal server error", details={})
        ).model_dump(),
    )


app.include_router(health.router)
app.include_router(families.router)
app.include_router(members.router)
app.include_router(branches.router)
app.include_router(creation_flow.router)
app.include_router(links.router)
