"""HTTP surface for the prepare / confirm / cancel workflow.

A conversational front-end calls these endpoints; every route delegates to
the ``ConfirmationProtocol`` stored in ``app.state.services["protocol"]``.

Status codes:

- ``POST /drafts/prepare`` -- 201 staged; 404 thread not found; 409
  ambiguous target (with candidates); 502 generation failure.
- ``GET /drafts/{token}`` -- 200 live draft; 404 miss.
- ``POST /drafts/{token}/confirm`` -- 200 created; 410 expired; 404 unknown
  or already used; 502 mail creation failed (with ``retryable``).
- ``POST /drafts/{token}/cancel`` -- 200 with ``{"cancelled": bool}``.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from replydraft.confirmation.protocol import ConfirmationProtocol
from replydraft.domain.errors import (
    AmbiguousTargetError,
    FatalGatherError,
    GenerationError,
    ThreadNotFoundError,
)
from replydraft.domain.models import DraftRecord
from replydraft.domain.types import ConfirmErrorCode

logger = structlog.get_logger()

router = APIRouter(prefix="/drafts", tags=["drafts"])

_CONFIRM_ERROR_STATUS: dict[ConfirmErrorCode, int] = {
    ConfirmErrorCode.EXPIRED: 410,
    ConfirmErrorCode.NOT_FOUND: 404,
    ConfirmErrorCode.MAIL_CREATION_FAILED: 502,
}


class PrepareRequest(BaseModel):
    """Body of ``POST /drafts/prepare``."""

    instructions: str = Field(min_length=1)
    thread_id: str | None = None
    talking_points: list[str] = Field(default_factory=list)


class ConfirmRequest(BaseModel):
    """Body of ``POST /drafts/{token}/confirm``.  Blank ``edited_body`` keeps the draft."""

    edited_body: str | None = None


def _get_protocol(request: Request) -> ConfirmationProtocol:
    protocol: ConfirmationProtocol | None = request.app.state.services.get("protocol")
    if protocol is None:
        raise HTTPException(status_code=503, detail="Draft workflow is not configured")
    return protocol


def _draft_payload(record: DraftRecord) -> dict[str, Any]:
    return {
        "thread_id": record.thread_id,
        "to": list(record.to),
        "subject": record.subject,
        "body": record.body,
        "in_reply_to": record.headers.in_reply_to,
        "references": record.headers.references,
        "expires_at": record.expires_at.isoformat(),
    }


@router.post("/prepare", status_code=201)
async def prepare_draft(payload: PrepareRequest, request: Request) -> dict[str, Any]:
    """Gather context, generate a draft, and stage it for confirmation."""
    protocol = _get_protocol(request)
    try:
        result = await protocol.prepare(
            payload.instructions,
            thread_hint=payload.thread_id,
            talking_points=payload.talking_points or None,
        )
    except ThreadNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AmbiguousTargetError as exc:
        raise HTTPException(
            status_code=409,
            detail={
                "message": str(exc),
                "candidates": [c.model_dump(mode="json") for c in exc.candidates],
            },
        ) from exc
    except FatalGatherError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return {
        "token": result.token,
        "preview": result.preview_text,
        "warnings": [w.model_dump(mode="json") for w in result.partial_warnings],
        "parse_confidence": result.parse_confidence.value,
        "expires_at": result.draft.expires_at.isoformat(),
        "draft": _draft_payload(result.draft),
    }


@router.get("/{token}")
async def get_draft(token: str, request: Request) -> dict[str, Any]:
    """Return the staged draft for *token* without consuming it."""
    protocol = _get_protocol(request)
    record = protocol.get_draft(token)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No live draft for token '{token}'")
    preview = protocol.preview(token) or ""
    return {"token": token, "preview": preview, "draft": _draft_payload(record)}


@router.post("/{token}/confirm")
async def confirm_draft(
    token: str, request: Request, payload: ConfirmRequest | None = None
) -> JSONResponse:
    """Create the staged draft in the mailbox."""
    protocol = _get_protocol(request)
    edited_body = payload.edited_body if payload is not None else None
    result = await protocol.confirm(token, edited_body=edited_body)

    status_code = 200
    if not result.success:
        status_code = _CONFIRM_ERROR_STATUS[result.error] if result.error else 400
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


@router.post("/{token}/cancel")
async def cancel_draft(token: str, request: Request) -> dict[str, bool]:
    """Discard the staged draft for *token*."""
    protocol = _get_protocol(request)
    return {"cancelled": protocol.cancel(token)}
