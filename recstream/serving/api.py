"""
FastAPI Serving Layer for Recommendations

Query surface, activity tracking, model push receiver and training control.
"""

import argparse
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from ..core.config import Settings
from ..core.exceptions import DataUnavailable, RecstreamError, ValidationError
from ..core.registry import ModelRegistry
from .services import RecommendationService, TrainingService, create_bus, create_store


logger = logging.getLogger(__name__)


# Pydantic models for API
class TrackActivityModel(BaseModel):
    """Request model for activity tracking"""
    user_id: str = Field(..., min_length=1, description="User identifier")
    activity_type: str = Field(..., description="view, add_to_cart, purchase or search")
    product_id: Optional[str] = Field(None, description="Product identifier; omitted for searches")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Activity payload")


class RefreshRequestModel(BaseModel):
    limit: int = Field(10, ge=1, le=100)


class TrainRequestModel(BaseModel):
    """Training request; missing keys use the default training config"""
    config: Dict[str, Any] = Field(default_factory=dict)


def _require(service, name: str):
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return service


def create_app(
    settings: Optional[Settings] = None,
    recommendation: Optional[RecommendationService] = None,
    training: Optional[TrainingService] = None
) -> FastAPI:
    """
    Build the application

    When no service is passed, both are built from ``settings`` (or the
    environment) on startup, sharing one store, bus and registry.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = []
        if app.state.recommendation is None and app.state.training is None:
            app_settings = app.state.settings or Settings.from_env()
            store = create_store(app_settings)
            bus = create_bus(app_settings)
            registry = ModelRegistry()
            app.state.recommendation = RecommendationService(store, bus, app_settings, registry)
            app.state.training = TrainingService(store, bus, app_settings, registry)
            owned = [bus, store]

        logger.info("Starting recommendation API...")
        for service in (app.state.recommendation, app.state.training):
            if service is not None:
                await service.start()
        logger.info("API startup complete")

        yield

        logger.info("Shutting down API...")
        for service in (app.state.training, app.state.recommendation):
            if service is not None:
                await service.stop()
        for resource in owned:
            await resource.close()
        logger.info("API shutdown complete")

    app = FastAPI(
        title="Recommendation Engine",
        description="Recommendations from user activity, with online model updates",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.recommendation = recommendation
    app.state.training = training

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"success": False, **exc.to_dict()})

    @app.exception_handler(DataUnavailable)
    async def unavailable_handler(request: Request, exc: DataUnavailable):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"success": False, **exc.to_dict()})

    @app.exception_handler(RecstreamError)
    async def recstream_error_handler(request: Request, exc: RecstreamError):
        logger.error(f"{request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"success": False, **exc.to_dict()})

    @app.get("/recommendations/{user_id}")
    async def get_recommendations(
        user_id: str,
        limit: int = Query(10, ge=1, le=100),
        refresh: bool = Query(False)
    ):
        """Recommendations for a user, served from cache unless ``refresh`` is set"""
        service = _require(app.state.recommendation, "Recommendation service")
        return await service.get_recommendations(user_id, limit, force_refresh=refresh)

    @app.post("/recommendations/{user_id}/refresh")
    async def refresh_recommendations(user_id: str, request: RefreshRequestModel = Body(default=None)):
        service = _require(app.state.recommendation, "Recommendation service")
        limit = request.limit if request else 10
        return await service.get_recommendations(user_id, limit, force_refresh=True)

    @app.post("/track")
    async def track_activity(activity: TrackActivityModel):
        service = _require(app.state.recommendation, "Recommendation service")
        return await service.track_activity(
            activity.user_id,
            activity.activity_type,
            activity.product_id,
            activity.metadata
        )

    @app.get("/activities/{user_id}")
    async def get_user_activities(user_id: str, limit: int = Query(100, ge=1, le=1000)):
        service = _require(app.state.recommendation, "Recommendation service")
        return await service.get_user_activities(user_id, limit)

    @app.get("/profile/{user_id}")
    async def get_behavior_profile(user_id: str):
        service = _require(app.state.recommendation, "Recommendation service")
        return await service.get_behavior_profile(user_id)

    @app.get("/stats/{user_id}")
    async def get_recommendation_stats(user_id: str, days: int = Query(7, ge=1, le=365)):
        service = _require(app.state.recommendation, "Recommendation service")
        return await service.get_recommendation_stats(user_id, days)

    @app.post("/model/update")
    async def update_model(payload: Dict[str, Any] = Body(...)):
        """Receive a pushed model; a malformed payload leaves the served model unchanged"""
        service = _require(app.state.recommendation, "Recommendation service")
        return service.receive_model(payload)

    @app.get("/model/current")
    async def current_model():
        service = _require(app.state.recommendation, "Recommendation service")
        model = service.registry.current()
        return {
            "version": model.version if model else None,
            "model": model.to_payload() if model else None
        }

    @app.post("/train")
    async def train(request: TrainRequestModel = Body(default=None)):
        service = _require(app.state.training, "Training service")
        return service.train(request.config if request else None)

    @app.get("/status")
    async def training_status():
        service = _require(app.state.training, "Training service")
        return {"success": True, "status": service.status()}

    @app.get("/models")
    async def list_models():
        service = _require(app.state.training, "Training service")
        return await service.models()

    @app.get("/health")
    async def health_check():
        health_status = "healthy"
        components = {}

        recommendation_service = app.state.recommendation
        if recommendation_service is not None:
            processor_health = await recommendation_service.processor.health_check()
            components["event_processor"] = processor_health["status"]
            components["model_version"] = recommendation_service.registry.current_version
            components["cache"] = recommendation_service.cache.get_stats()
            if processor_health["status"] != "healthy":
                health_status = "degraded"
        else:
            components["recommendation_service"] = "not_initialized"

        training_service = app.state.training
        if training_service is not None:
            components["training"] = training_service.status()

        return {
            "status": health_status,
            "timestamp": time.time(),
            "components": components
        }

    return app


app = create_app()


def main():
    """Run the API server"""
    parser = argparse.ArgumentParser(description="Recommendation engine API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--config", help="YAML settings file")

    args = parser.parse_args()

    settings = Settings.from_yaml(args.config) if args.config else Settings.from_env()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
