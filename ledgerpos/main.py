from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
import logging

from ledgerpos.core.config import settings
from ledgerpos.database.database import engine, Base

# Import middleware and error handlers
from ledgerpos.common.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from ledgerpos.common.exceptions import request_validation_handler

# Import routers
from ledgerpos.modules.auth.router import router as users_router
from ledgerpos.modules.invoices.router import router as invoices_router
from ledgerpos.modules.supplier_bills.router import router as supplier_bills_router
from ledgerpos.modules.payroll.router import salaries_router, salary_payments_router

# Import models for table creation
import ledgerpos.modules.auth.models
import ledgerpos.modules.customers.models
import ledgerpos.modules.suppliers.models
import ledgerpos.modules.inventory.models
import ledgerpos.modules.invoices.models
import ledgerpos.modules.supplier_bills.models
import ledgerpos.modules.payroll.models

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="LedgerPOS API",
    description="Point-of-sale and back-office API: invoicing, supplier bills and payroll",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, request_validation_handler)

# Include routers
app.include_router(users_router)
app.include_router(invoices_router)
app.include_router(supplier_bills_router)
app.include_router(salaries_router)
app.include_router(salary_payments_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)


@app.get("/health")
def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("LedgerPOS API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Invoice tax rate: {settings.INVOICE_TAX_RATE}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("LedgerPOS API shutting down...")
