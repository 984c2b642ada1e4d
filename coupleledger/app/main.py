from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import structlog

from coupleledger.app.api.v1.router import api_router
from coupleledger.app.config import get_settings
from coupleledger.app.database import create_tables, drop_tables
from coupleledger.app.errors import ValidationError, validation_error_payload
from coupleledger.app.logging_config import configure_logging

logger = structlog.get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    if settings.reset_database_on_startup:
        # WARNING: This will delete all data!
        logger.warning("database_reset")
        drop_tables()
    create_tables()
    logger.info("startup", currency=settings.currency)
    yield
    logger.info("shutdown")

app = FastAPI(title="Couple Ledger", lifespan=lifespan)

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("validation_failed", path=request.url.path, field=exc.field, message=exc.message)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=validation_error_payload([exc]),
    )

# Include all API routes
app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("coupleledger.app.main:app", host="0.0.0.0", port=8000, reload=True)
