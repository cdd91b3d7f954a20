"""FastAPI application entry point"""

from typing import Optional
import logging

from fastapi import FastAPI, HTTPException, Query

from adoption_stats.config.settings import settings
from adoption_stats.jobs.stats_sync import run_stats_report
from adoption_stats.orchestrator_stats import StatsPipeline

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Daily npm and jsDelivr download statistics for one package",
    version=settings.APP_VERSION,
)


def build_pipeline() -> StatsPipeline:
    return StatsPipeline(config=settings)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "package": settings.STATS_PACKAGE,
        "status": "running",
        "endpoints": {
            "health": "/api/health",
            "stats": "/api/stats?from=YYYY-MM&to=YYYY-MM",
        }
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint for serverless platforms"""
    return {
        "status": "healthy",
        "service": "adoption-stats",
        "version": settings.APP_VERSION
    }


@app.get("/api/stats")
async def get_stats(
    from_value: Optional[str] = Query(default=None, alias="from"),
    to_value: Optional[str] = Query(default=None, alias="to"),
    versions: bool = True,
):
    """
    Raw and 7-day average daily downloads for both sources

    Query params:
        from: YYYY-MM or YYYY-MM-DD (default: six months back)
        to: YYYY-MM or YYYY-MM-DD (default: end of current month)
        versions: include version publish dates (default: true)
    """
    logger.info(f"Stats requested for {from_value or 'default'}..{to_value or 'default'}")
    try:
        return await run_stats_report(
            pipeline=build_pipeline(),
            from_value=from_value,
            to_value=to_value,
            include_versions=versions,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "adoption_stats.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
