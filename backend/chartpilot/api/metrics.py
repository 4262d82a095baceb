"""
Metrics endpoint for pipeline performance monitoring.
"""
from fastapi import APIRouter
from chartpilot.core.performance import PerformanceMonitor

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """
    Get timing statistics for every tracked pipeline stage and HTTP request.
    """
    return {'performance': PerformanceMonitor.get_all_metrics()}
