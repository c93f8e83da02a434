"""
Health and metrics endpoints for the storefront API.

Response bodies follow the draft "Health Check Response Format for HTTP APIs"
and the split between Kubernetes liveness, readiness and startup probes.
"""

import os
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import psutil
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from .logging_config import get_logger
from .metrics import RequestMetrics

logger = get_logger(__name__)

def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"

class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"

class ServiceHealth:
    """Probe the database, the media directory and the host; report request counters."""

    def __init__(
        self,
        service_name: str,
        version: str,
        engine_provider: Callable[[], Engine],
        media_root: Optional[str] = None,
        request_metrics: Optional[RequestMetrics] = None,
    ):
        self.service_name = service_name
        self.version = version
        self.engine_provider = engine_provider
        self.media_root = media_root
        self.request_metrics = request_metrics
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time: Optional[float] = None

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        def health_check() -> Dict[str, Any]:
            """Liveness probe used by load balancers."""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            checks = self.readiness_checks()
            overall = self.overall_status(checks)
            code = status.HTTP_503_SERVICE_UNAVAILABLE if overall == HealthStatus.FAIL else status.HTTP_200_OK
            return JSONResponse(status_code=code, content={
                "status": overall,
                "version": self.version,
                "serviceId": self.service_name,
                "description": f"{self.service_name} API",
                "checks": checks,
                "timestamp": _now()
            })

        @router.get("/health/startup")
        def startup():
            checks = {"database:migrations": self._check_migrations()}
            if self.overall_status(checks) == HealthStatus.FAIL:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks}
                )
            return {"status": "started", "checks": checks}

        @router.get("/metrics")
        def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads()
                },
                "http": self.request_metrics.snapshot() if self.request_metrics else None,
            }

        return router

    def readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()

        checks = {"database:connectivity": self._check_database()}
        if self.media_root:
            checks["storage:media"] = self._check_media()
        checks["system:memory"] = self._check_memory()
        return checks

    def _check_database(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            with self.engine_provider().connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "observedValue": f"{(time.time() - start_time) * 1000:.2f}",
                "observedUnit": "ms",
                "time": _now()
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": HealthStatus.FAIL, "componentType": "datastore", "output": str(e), "time": _now()}

    def _check_media(self) -> Dict[str, Any]:
        root = Path(self.media_root)
        if root.is_dir() and os.access(root, os.W_OK):
            free_gb = psutil.disk_usage(str(root)).free / (1024 ** 3)
            status_val = HealthStatus.WARN if free_gb < 1 else HealthStatus.PASS
            return {
                "status": status_val,
                "componentType": "storage",
                "observedValue": f"{free_gb:.2f}",
                "observedUnit": "GB",
                "time": _now()
            }
        return {
            "status": HealthStatus.WARN,
            "componentType": "storage",
            "output": f"Media directory {root} is missing or read-only",
            "time": _now()
        }

    def _check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        if available_mb < 100:
            status_val = HealthStatus.FAIL
        elif available_mb < 500:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{available_mb:.2f}",
            "observedUnit": "MB",
            "time": _now()
        }

    def _check_migrations(self) -> Dict[str, Any]:
        try:
            applied = inspect(self.engine_provider()).has_table("alembic_version")
        except Exception as e:
            return {"status": HealthStatus.FAIL, "componentType": "datastore", "output": str(e), "time": _now()}
        if applied:
            return {"status": HealthStatus.PASS, "componentType": "datastore", "time": _now()}
        return {
            "status": HealthStatus.WARN,
            "componentType": "datastore",
            "output": "Migrations table not found",
            "time": _now()
        }

    @staticmethod
    def overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
