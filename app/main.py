from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.database import init_db
from app.logging_config import get_logger, setup_logging
from app.routers import notifications, tickets, webhook

setup_logging()
logger = get_logger("main")

API_PREFIX = "/api/v1"

app = FastAPI(
    title="Notification Service",
    description="Ticket intake over WhatsApp and web, with provider matchmaking",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
# The gateway forwards /api/v1/* unchanged; direct callers use the bare paths
for router in (tickets.router, notifications.router):
    app.include_router(router)
    app.include_router(router, prefix=API_PREFIX)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
        detail = "Not found"
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": f"Invalid request: {', '.join(f for f in fields if f)}"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )


@app.on_event("startup")
def create_tables() -> None:
    init_db()
    if not settings.allowed_senders:
        logger.warning("WHATSAPP_ALLOWED_SENDERS is empty, every WhatsApp sender will be dropped")
    logger.info("Notification service started", extra={"context": {"port": settings.port}})


@app.get("/healthz")
async def healthz():
    return {"ok": True, "service": "notification-service"}


@app.get("/readyz")
async def readyz():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
