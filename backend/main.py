import sys
import logging
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from chartpilot.api.routes import router
from chartpilot.api.metrics import router as metrics_router
from chartpilot.core.config import get_settings
from chartpilot.core.errors import ErrorKinds, get_error_response, status_for_kind
from chartpilot.core.logging import configure_logging
from chartpilot.core.middleware import CorrelationIDMiddleware, TimeoutMiddleware
from chartpilot.services.director import ChartDirector

# Load environment variables
load_dotenv()

# Load and validate configuration
try:
    settings = get_settings()
except Exception as e:
    # Basic logger for startup errors
    logging.basicConfig(level=logging.ERROR)
    logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
    sys.exit(1)

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(
    title="ChartPilot API",
    description="Turns prompts and spreadsheets into chart configurations",
    version="1.0.0"
)

# Shared state for routes: one director serves every request
app.state.limiter = limiter
app.state.settings = settings
app.state.director = ChartDirector.from_settings(settings)


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded with structured error response."""
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    error_info = get_error_response(ErrorKinds.RATE_LIMIT_EXCEEDED)
    error_info['correlation_id'] = correlation_id
    return JSONResponse(
        status_code=status_for_kind(ErrorKinds.RATE_LIMIT_EXCEEDED),
        content=error_info,
        headers={
            "Retry-After": str(exc.retry_after) if hasattr(exc, 'retry_after') else "60",
            "X-Correlation-ID": correlation_id
        }
    )


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# Add middleware in order (last added is first executed)
# 1. Request timeout middleware (innermost)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)

# 2. Compression middleware
app.add_middleware(GZipMiddleware, minimum_size=1000)

# 3. CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID"]
)

# 4. Correlation ID middleware (outermost, so every response carries an id)
app.add_middleware(CorrelationIDMiddleware)

logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "ChartPilot API is running"}


logger.info("Application started successfully")
