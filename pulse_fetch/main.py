"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .agents import orchestrator
from .routes import resources, scrape, strategies
from .utils.logger import logger

# Create FastAPI app
app = FastAPI(
    title="Pulse Fetch API",
    description="Adaptive web content retrieval with learned per-site strategies",
    version="1.0.0",
    debug=settings.debug,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(scrape.router)
app.include_router(resources.router)
app.include_router(strategies.router)


def _engine_status() -> dict:
    return {
        "strategies": [s.value for s in orchestrator.configured_strategies],
        "optimize_for": orchestrator.optimize_for.value,
        "extraction": orchestrator.extractor is not None,
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        Health status with the enabled strategies
    """
    return {"status": "healthy", "service": "pulse-fetch", **_engine_status()}


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint.

    Returns:
        Welcome message
    """
    return {
        "message": "Pulse Fetch API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        **_engine_status(),
    }


# Startup event
@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    status = _engine_status()
    logger.info("Starting Pulse Fetch API")
    logger.info(f"Enabled strategies: {', '.join(status['strategies']) or 'none'}")
    logger.info(f"Optimizing for: {status['optimize_for']}")
    logger.info(f"Strategy memory: {settings.strategy_config_file}")
    logger.info(f"Storage path: {settings.storage_path}")
    if not status["strategies"]:
        logger.warning("No scraping strategy is configured; every scrape will fail")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Shutting down Pulse Fetch API")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pulse_fetch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info",
    )
