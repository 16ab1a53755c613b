"""FastAPI application."""

from fastapi import FastAPI

from backend.extranet.api.routes.activity_wizard import router as activity_router
from backend.extranet.api.routes.health import router as health_router
from backend.extranet.api.routes.metrics import router as metrics_router
from backend.extranet.api.routes.option_wizard import router as option_router
from backend.extranet.api.routes.reference import router as reference_router

app = FastAPI(title="Extranet Activity Wizard API", version="0.1.0")

# Register routes; booking-option paths go before the generic activity step routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(reference_router)
app.include_router(option_router)
app.include_router(activity_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Extranet Activity Wizard API", "version": "0.1.0"}
