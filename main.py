from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from synq.core.config import settings
from synq.routers import optimization
from synq.services.optimization import OptimizationService, get_optimization_service
from synq.core.logging_config import logger

app = FastAPI(
    title="Synq Route Optimization API",
    version="1.0.0",
    redirect_slashes=False  # Disable automatic redirects to prevent POST data loss
)

# Configure CORS for frontend applications
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "https://synq.app"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(optimization.router, prefix="/api/routes", tags=["Route Optimization"])

logger.info(f"Synq route optimizer starting (environment={settings.ENVIRONMENT})")


@app.get("/health")
async def health_check(service: OptimizationService = Depends(get_optimization_service)):
    facade = service.facade
    cache = facade.router.cache
    return {
        "status": "healthy",
        "providers": facade.router.provider_names,
        "cache": {
            "backend": type(cache.storage).__name__ if cache else None,
            "ttl_seconds": cache.ttl_seconds if cache else None,
            "max_entries": cache.max_entries if cache else None,
        },
    }
