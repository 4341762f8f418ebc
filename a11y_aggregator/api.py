"""
Aggregation API

FastAPI application that triggers aggregation runs and exposes the
snapshots of a site, with webhook registration for run notifications.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, Field

from . import __version__
from .aggregation import (
    AggregationPipeline,
    UnsupportedAuditTypeError,
    get_audit_type,
    get_urls_for_audit,
)
from .aggregation.retention import SnapshotRetentionManager
from .config import AggregatorConfig, configure_logging
from .integration import HookEvent, IntegrationHookManager, WebhookHook
from .storage import ObjectStore
from .storage.keys import snapshot_date


# Pydantic Models for Request/Response

class AggregationRequest(BaseModel):
    """Request model for an aggregation run."""
    site_id: str = Field(..., min_length=1, description="Site identifier")
    audit_type: str = Field("accessibility", description="Registered audit type")
    version: Optional[str] = Field(
        None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Target date (defaults to today, UTC)"
    )
    output_key: Optional[str] = Field(None, description="Snapshot key override")
    max_retries: Optional[int] = Field(None, ge=0, le=10, description="Extra fetch attempts per file")


class AggregationResponse(BaseModel):
    """Response model for an aggregation run."""
    success: bool
    message: str
    stage: str
    reason: Optional[str] = None
    output_key: Optional[str] = None
    processed_count: int = 0
    failed_count: int = 0
    final_result_files: Dict[str, Any]


class SnapshotInfo(BaseModel):
    """One stored snapshot of a site."""
    key: str
    date: str


class WebhookRequest(BaseModel):
    """Request model for webhook registration."""
    name: str = Field(..., description="Unique webhook name")
    url: str = Field(..., description="Webhook URL")
    method: str = Field("POST", description="HTTP method (POST or PUT)")
    headers: Optional[Dict[str, str]] = Field(None, description="Custom headers")
    events: Optional[List[str]] = Field(
        None, description="Event names, e.g. AGGREGATION_COMPLETED (all events if omitted)"
    )
    retry_count: int = Field(3, ge=1, le=10, description="Delivery attempts")
    timeout: int = Field(30, ge=1, le=300, description="Request timeout in seconds")


class AggregationAPI:
    """
    FastAPI application for aggregation runs.

    Runs execute synchronously inside the request; FastAPI hands plain
    `def` endpoints to its worker thread pool, so the event loop stays free.
    """

    def __init__(
        self,
        config: Optional[AggregatorConfig] = None,
        storage: Optional[ObjectStore] = None,
        hook_manager: Optional[IntegrationHookManager] = None,
        enable_webhooks: bool = True
    ):
        """
        Initialize aggregation API.

        Args:
            config: Settings (defaults to AggregatorConfig.load())
            storage: Object store (defaults to config.create_storage())
            hook_manager: Hook manager (created when webhooks are enabled)
            enable_webhooks: Enable webhook registration and run notifications
        """
        self.logger = logging.getLogger(__name__)
        self.config = config or AggregatorConfig.load()
        self.api_key = self.config.api_key
        self.storage = storage or self.config.create_storage()

        self.hook_manager = hook_manager
        if self.hook_manager is None and enable_webhooks:
            self.hook_manager = IntegrationHookManager(async_execution=True)
            self.logger.info("Webhook integration enabled")

        self.app = self._create_app()

    def _verify_api_key(self, x_api_key: Optional[str] = Header(None)):
        """Verify API key if authentication is enabled."""
        if self.api_key and x_api_key != self.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")
        return True

    def _pipeline(self, audit_type: str, max_retries: Optional[int]) -> AggregationPipeline:
        return AggregationPipeline(
            self.storage,
            audit_type=audit_type,
            max_retries=self.config.max_retries if max_retries is None else max_retries,
            retention_count=self.config.retention_count,
            max_concurrency=self.config.max_concurrency,
            hook_manager=self.hook_manager
        )

    def _create_app(self) -> FastAPI:
        app = FastAPI(
            title="Accessibility Aggregation API",
            description="Aggregates per-page accessibility scan results into per-site snapshots",
            version=__version__
        )

        @app.get("/health", tags=["Health"])
        async def health_check():
            return {
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "storage_backend": self.storage.get_storage_info()["backend"],
                "bucket": self.storage.bucket_name,
                "webhooks_enabled": self.hook_manager is not None
            }

        @app.post("/api/aggregations", response_model=AggregationResponse, tags=["Aggregations"])
        def run_aggregation(
            request: AggregationRequest,
            authenticated: bool = Depends(self._verify_api_key)
        ):
            """Aggregate the raw results of a site for one date."""
            try:
                get_audit_type(request.audit_type)
            except UnsupportedAuditTypeError as e:
                raise HTTPException(status_code=400, detail=str(e))

            result = self._pipeline(request.audit_type, request.max_retries).run(
                request.site_id,
                version=request.version,
                output_key=request.output_key
            )
            if result.success:
                self.logger.info(f"Aggregation for site {request.site_id} stored at {result.output_key}")
            return AggregationResponse(**result.to_dict())

        @app.get("/api/sites/{site_id}/snapshots", response_model=List[SnapshotInfo], tags=["Snapshots"])
        def list_snapshots(
            site_id: str,
            audit_type: str = Query("accessibility", description="Registered audit type"),
            authenticated: bool = Depends(self._verify_api_key)
        ):
            """List the stored snapshots of a site, oldest first."""
            try:
                audit = get_audit_type(audit_type)
            except UnsupportedAuditTypeError as e:
                raise HTTPException(status_code=400, detail=str(e))

            retention = SnapshotRetentionManager(self.storage, site_id, audit)
            try:
                keys = retention.list_snapshot_keys()
            except Exception as e:
                self.logger.error(f"Listing snapshots failed for site {site_id}: {e}")
                raise HTTPException(status_code=502, detail=str(e))
            return [SnapshotInfo(key=key, date=snapshot_date(key)) for key in keys]

        @app.get("/api/sites/{site_id}/urls", tags=["Snapshots"])
        def list_urls(
            site_id: str,
            audit_type: str = Query("accessibility", description="Registered audit type"),
            authenticated: bool = Depends(self._verify_api_key)
        ):
            """Pages of the newest snapshot, for scheduling the next scan."""
            try:
                get_audit_type(audit_type)
            except UnsupportedAuditTypeError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"site_id": site_id, "urls": get_urls_for_audit(self.storage, site_id, audit_type)}

        @app.post("/api/webhooks", tags=["Webhooks"])
        async def register_webhook(
            webhook: WebhookRequest,
            authenticated: bool = Depends(self._verify_api_key)
        ):
            """Register a new webhook."""
            if not self.hook_manager:
                raise HTTPException(status_code=501, detail="Webhooks not enabled")

            try:
                events = [HookEvent[name] for name in webhook.events] if webhook.events else None
            except KeyError as e:
                raise HTTPException(status_code=400, detail=f"Unknown event: {e.args[0]}")

            try:
                hook = WebhookHook(
                    name=webhook.name,
                    url=webhook.url,
                    method=webhook.method,
                    headers=webhook.headers,
                    timeout=webhook.timeout,
                    retry_count=webhook.retry_count,
                    events=events
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

            self.hook_manager.register_hook(hook)
            return {"status": "registered", "webhook": webhook.name}

        @app.get("/api/webhooks", tags=["Webhooks"])
        async def list_webhooks(authenticated: bool = Depends(self._verify_api_key)):
            """List registered webhooks and their statistics."""
            if not self.hook_manager:
                raise HTTPException(status_code=501, detail="Webhooks not enabled")
            return {
                "webhooks": self.hook_manager.list_hooks(),
                "statistics": self.hook_manager.get_statistics()
            }

        return app

    def run(self, host: str = "0.0.0.0", port: int = 8000):
        """Serve the API with uvicorn."""
        import uvicorn
        configure_logging(self.config.log_level)
        uvicorn.run(self.app, host=host, port=port, log_level=self.config.log_level.lower())


def create_app(
    config: Optional[AggregatorConfig] = None,
    storage: Optional[ObjectStore] = None,
    enable_webhooks: bool = True
) -> FastAPI:
    """
    Create FastAPI application instance.

    Usage:
        uvicorn a11y_aggregator.api:create_app --factory
    """
    return AggregationAPI(config=config, storage=storage, enable_webhooks=enable_webhooks).app
