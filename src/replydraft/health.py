"""Health and readiness endpoints for container orchestration.

Provides two top-level routes:

- ``GET /health`` -- Liveness probe.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when the audit DB
  connection is functional, the confirmation protocol (staging store) is
  wired, and both the Gmail client and the draft generator are
  initialized.  Returns 503 with per-check details otherwise.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def _present(services: dict[str, Any], key: str) -> str:
    return "ok" if services.get(key) is not None else "fail"


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks the audit DB and every draft collaborator."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        audit_conn = services.get("audit_conn")
        if audit_conn is not None:
            try:
                await asyncio.to_thread(audit_conn.execute, "SELECT 1")
                checks["audit_db"] = "ok"
            except Exception:
                checks["audit_db"] = "fail"
        else:
            checks["audit_db"] = "fail"

        checks["staging"] = _present(services, "protocol")
        checks["gmail"] = _present(services, "gmail_client")
        checks["generator"] = _present(services, "draft_generator")

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
