"""
Main FastAPI Application Entry Point
Expense Approval Workflow
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import time

from reimbursement.config.settings import settings
from reimbursement.config.database import engine, Base
from reimbursement.utils.exceptions import WorkflowError
from reimbursement.utils.logger import setup_logger
from reimbursement.middleware.logging_middleware import LoggingMiddleware
import reimbursement.models  # noqa: F401  registers every table on Base.metadata

# Import routes
from reimbursement.routes import auth, company, user, approval_rule, expense, approval, reports

# Setup logger
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for application startup and shutdown
    """
    # Startup
    logger.info("Starting Expense Approval Workflow...")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    if settings.ENFORCE_SEQUENTIAL_ORDER:
        logger.info("Strict sequential approval ordering is enabled")

    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Expense Approval Workflow...")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Multi-level expense approval workflow with configurable approval rules",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)


# Exception handlers
@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    """Map typed workflow errors to their HTTP status and error body"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict())
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder({
            "success": False,
            "error": "REQUEST_VALIDATION_ERROR",
            "message": "Validation error",
            "errors": exc.errors()
        })
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "INTERNAL_ERROR",
            "message": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": "Welcome to the Expense Approval Workflow",
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "health": "/health"
    }


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(company.router, prefix="/api/companies", tags=["Companies"])
app.include_router(user.router, prefix="/api/users", tags=["Users"])
app.include_router(approval_rule.router, prefix="/api/approval-rules", tags=["Approval Rules"])
app.include_router(expense.router, prefix="/api/expenses", tags=["Expenses"])
app.include_router(approval.router, prefix="/api/approvals", tags=["Approvals"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "reimbursement.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
