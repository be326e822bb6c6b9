import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from stockledger.config import settings
from stockledger.logging_config import configure_logging
from stockledger.schemas import ErrorResponse
from stockledger.services.exceptions import (
    ConflictError,
    NotFoundError,
    StockWriteViolation,
    ValidationError,
)
from stockledger.api.v1 import (
    movements,
    inventory,
    recipes,
    subrecipes,
    sales,
    shifts,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-tenant restaurant inventory ledger and stock reconciliation",
    version="1.0.0",
    debug=settings.DEBUG
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_headers=["*"],
    allow_origins=settings.allowed_origins_list,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
)


# Error handlers
@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(message=exc.message, field=exc.field).model_dump(exclude_none=True)
    )


@app.exception_handler(NotFoundError)
async def handle_not_found(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(message=str(exc)).model_dump(exclude_none=True)
    )


@app.exception_handler(ConflictError)
async def handle_conflict(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=ErrorResponse(message=exc.message, code=exc.code).model_dump(exclude_none=True)
    )


@app.exception_handler(StockWriteViolation)
@app.exception_handler(SQLAlchemyError)
async def handle_internal_error(request: Request, exc: Exception):
    logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            message="The operation could not be completed and was rolled back. Please retry.",
            code="TRANSACTION_FAILED"
        ).model_dump(exclude_none=True)
    )


# Health check
@app.get("/")
def read_root():
    return {
        "app": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}


# Include routers
app.include_router(movements.router, prefix=f"{settings.API_V1_PREFIX}/movements", tags=["Movements"])
app.include_router(inventory.router, prefix=f"{settings.API_V1_PREFIX}/inventory", tags=["Inventory"])
app.include_router(recipes.router, prefix=f"{settings.API_V1_PREFIX}/recipes", tags=["Recipes"])
app.include_router(subrecipes.router, prefix=f"{settings.API_V1_PREFIX}/subrecipes", tags=["Subrecipes"])
app.include_router(sales.router, prefix=f"{settings.API_V1_PREFIX}/sales", tags=["Sales"])
app.include_router(shifts.router, prefix=f"{settings.API_V1_PREFIX}/shifts", tags=["Shifts"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("stockledger.main:app", host="0.0.0.0", port=8000, reload=True)
