"""
Transformer inspection backend service.

create_app() is the composition root: it owns the store and the detector
HTTP client and hands them to the components that need them. Run with:

    uvicorn transformer_inspection.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .anomalies.registry import AnomalyRegistry
from .audit.recorder import AuditLogRecorder
from .config import InspectionSettings, load_settings
from .detection.client import DetectorClient
from .detection.pipeline import DetectionImportPipeline
from .identifiers.generator import IdentifierGenerator
from .inspections.service import InspectionService
from .persistence.store import InspectionStore
from .routes import inspections

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[InspectionSettings] = None,
    http_client: Optional[httpx.Client] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Service settings (defaults to load_settings())
        http_client: Client for detector calls; one is created (and closed
            on shutdown) when not supplied

    Returns:
        Configured FastAPI app
    """
    settings = settings or load_settings()
    owns_client = http_client is None
    http_client = http_client or httpx.Client(timeout=settings.detector_timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_client:
            http_client.close()

    app = FastAPI(title="Transformer Inspection Backend", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = InspectionStore(db_path=settings.db_path)
    registry = AnomalyRegistry(recorder=AuditLogRecorder(warn_size=settings.audit_log_warn_size))
    detector = DetectorClient(
        url=settings.detector_url,
        timeout=settings.detector_timeout_seconds,
        client=http_client,
    )
    pipeline = DetectionImportPipeline(
        detector=detector,
        registry=registry,
        default_threshold=settings.detector_threshold,
        default_iou_threshold=settings.detector_iou_threshold,
    )
    number_generator = IdentifierGenerator(
        prefix=settings.inspection_number_prefix,
        exists=store.inspection_number_exists,
        max_attempts=settings.identifier_max_attempts,
    )

    app.state.settings = settings
    app.state.inspection_service = InspectionService(
        store=store,
        registry=registry,
        pipeline=pipeline,
        number_generator=number_generator,
    )

    app.include_router(inspections.router)

    @app.get("/")
    def root():
        return {"service": "transformer-inspection", "status": "running"}

    logger.info(f"Inspection backend ready (db={settings.db_path}, detector={settings.detector_url})")
    return app
