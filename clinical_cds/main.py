"""
Clinical CDS - Main FastAPI Application
Clinical decision support rule evaluation with alert lifecycle and audit trail
"""

import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from clinical_cds.config import settings
from clinical_cds.modules.clinical_rules import get_rules_engine
from clinical_cds.modules.cds_history import get_history_manager

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Clinical CDS application...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Storage backend: {settings.storage_backend}")

    engine = get_rules_engine()
    get_history_manager()
    logger.info(f"Rule catalog loaded: {engine.get_rule_stats().enabled} rules enabled")

    yield

    # Shutdown
    logger.info("Shutting down Clinical CDS application...")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Clinical CDS",
    description="Clinical decision support rules engine with alert history and audit trail",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from clinical_cds.routes import history as history_routes, rules as rules_routes
app.include_router(rules_routes.router)
app.include_router(history_routes.router)


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": "1.0.0",
        "environment": settings.environment
    }


# =============================================================================
# Error Handlers
# =============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "timestamp": datetime.now().isoformat()
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An error occurred",
            "timestamp": datetime.now().isoformat()
        }
    )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "clinical_cds.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )
