"""
murmur API v1 — HTTP surface for voting and integrity operations.

Router prefix: /api/v1
  GET  /health                   — Liveness + scheduler status
  POST /votes                    — Cast a vote
  GET  /votes/preview            — Weight / bonus preview for a prospective vote
  POST /integrity/commitments    — Trigger the hourly commitment (admin)
  GET  /integrity/commitments    — Commitment history, newest first
  POST /integrity/violations     — Check current scores against commitments
  POST /integrity/revert         — Revert a claim to a committed score (admin)
  POST /integrity/verify         — Verify one claim against one commitment
  GET  /integrity/report         — Integrity health summary
  GET  /integrity/audit          — Hash-chained audit entries (admin)

Errors are returned as {"detail": {"code": ..., "message": ...}}.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field
from slowapi import Limiter

from murmur import __version__
from murmur.audit import AuditEventType
from murmur.config import Settings
from murmur.engine import TrustEngine
from murmur.integrity import CommitmentScheduler
from murmur.rate_limiter import VoterRateLimiter
from murmur.scoring.constants import DEFAULT_REPUTATION_SCORE
from murmur.security import apply_security, create_limiter, require_admin_key, setup_structured_logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------

class VoteRequest(BaseModel):
    claim_id: str = Field(..., min_length=1, max_length=128)
    voter_id: str = Field(..., min_length=1, max_length=64)
    vote_value: bool
    # Whole-number and range checks happen in the scoring engine (InvalidCredits)
    credits_spent: float
    predicted_consensus: Optional[bool] = None


class ViolationCheckRequest(BaseModel):
    claim_id: Optional[str] = Field(None, max_length=128)
    hours_back: int = Field(24, ge=1, le=720)


class ClaimCommitmentRequest(BaseModel):
    claim_id: str = Field(..., min_length=1, max_length=128)
    commitment_id: str = Field(..., min_length=1, max_length=64)


class SchedulerStatus(BaseModel):
    is_running: bool
    next_run: Optional[str] = None
    last_run: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__
    scheduler: SchedulerStatus
    audit_entries: int = 0


class CommitmentSummary(BaseModel):
    commitment_id: str
    hour_key: str
    timestamp: str
    root_hash: str
    rumor_count: int
    verified: bool
    signature: Optional[str] = None


class TriggerResponse(BaseModel):
    success: bool
    commitment: Optional[CommitmentSummary] = None


def _summary(commitment) -> CommitmentSummary:
    d = commitment.to_dict()
    return CommitmentSummary(**{k: d[k] for k in CommitmentSummary.model_fields})


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_engine(request: Request) -> TrustEngine:
    return request.app.state.engine


def get_scheduler(request: Request) -> CommitmentScheduler:
    return request.app.state.scheduler


def get_rate_limiter(request: Request) -> VoterRateLimiter:
    return request.app.state.rate_limiter


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------

def build_router(limiter: Limiter) -> APIRouter:
    """Routes bound to a per-app slowapi limiter."""
    router = APIRouter(prefix="/api/v1", tags=["v1"])

    @router.get("/health", response_model=HealthResponse)
    async def health(request: Request,
                     engine: TrustEngine = Depends(get_engine),
                     scheduler: CommitmentScheduler = Depends(get_scheduler)):
        return HealthResponse(
            scheduler=SchedulerStatus(**scheduler.status()),
            audit_entries=engine.audit.size,
        )

    @router.post("/votes")
    @limiter.limit("120/minute")
    def cast_vote(request: Request, body: VoteRequest,
                  engine: TrustEngine = Depends(get_engine),
                  voter_limiter: VoterRateLimiter = Depends(get_rate_limiter)):
        voter = engine.store.get_voter(body.voter_id)
        reputation = voter.reputation if voter else DEFAULT_REPUTATION_SCORE
        check = voter_limiter.check(body.voter_id, reputation)
        if not check.allowed:
            raise HTTPException(
                status_code=429,
                detail={
                    "code": "VoteRateLimited",
                    "message": f"Too many votes for tier {check.tier.label}",
                    "retry_after": check.retry_after,
                },
                headers={"Retry-After": str(max(1, round(check.retry_after)))},
            )

        result = engine.votes.cast_vote(
            claim_id=body.claim_id,
            voter_id=body.voter_id,
            vote_value=body.vote_value,
            credits_spent=body.credits_spent,
            predicted_consensus=body.predicted_consensus,
        )
        return {"success": True, **result.to_dict()}

    @router.get("/votes/preview")
    @limiter.limit("240/minute")
    def preview_vote(request: Request,
                     claim_id: str = Query(..., min_length=1, max_length=128),
                     credits: int = Query(...),
                     voter_id: Optional[str] = Query(None),
                     vote_value: Optional[bool] = Query(None),
                     predicted_consensus: Optional[bool] = Query(None),
                     engine: TrustEngine = Depends(get_engine)):
        return engine.votes.preview_vote(
            claim_id, credits, voter_id=voter_id,
            vote_value=vote_value, predicted_consensus=predicted_consensus,
        )

    @router.post("/integrity/commitments", response_model=TriggerResponse)
    async def trigger_commitment(request: Request,
                                 _admin: bool = Depends(require_admin_key),
                                 scheduler: CommitmentScheduler = Depends(get_scheduler)):
        commitment = await scheduler.trigger_now()
        if commitment is None:
            return TriggerResponse(success=False, commitment=None)
        return TriggerResponse(success=True, commitment=_summary(commitment))

    @router.get("/integrity/commitments")
    def commitment_history(request: Request,
                           limit: int = Query(24, ge=1, le=168),
                           engine: TrustEngine = Depends(get_engine)):
        commitments = engine.commitments.get_commitment_history(limit)
        return {
            "commitments": [_summary(c).model_dump() for c in commitments],
            "count": len(commitments),
        }

    @router.post("/integrity/violations")
    @limiter.limit("30/minute")
    def check_violations(request: Request, body: ViolationCheckRequest,
                         engine: TrustEngine = Depends(get_engine)):
        violations = engine.detector.check_violations(
            claim_id=body.claim_id, hours_back=body.hours_back
        )
        return {
            "violations": [v.to_dict() for v in violations],
            "count": len(violations),
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }

    @router.post("/integrity/revert")
    def revert_state(request: Request, body: ClaimCommitmentRequest,
                     _admin: bool = Depends(require_admin_key),
                     engine: TrustEngine = Depends(get_engine)):
        return engine.reverter.revert_to_committed_state(body.claim_id, body.commitment_id).to_dict()

    @router.post("/integrity/verify")
    def verify_claim(request: Request, body: ClaimCommitmentRequest,
                     engine: TrustEngine = Depends(get_engine)):
        return engine.detector.verify_claim_integrity(body.claim_id, body.commitment_id).to_dict()

    @router.get("/integrity/report")
    def integrity_report(request: Request,
                         hours_back: int = Query(24, ge=1, le=720),
                         engine: TrustEngine = Depends(get_engine)):
        return engine.detector.integrity_report(hours_back=hours_back)

    @router.get("/integrity/audit")
    def audit_log(request: Request,
                  subject_id: Optional[str] = Query(None, max_length=128),
                  event_type: Optional[AuditEventType] = Query(None),
                  limit: int = Query(100, ge=1, le=1000),
                  _admin: bool = Depends(require_admin_key),
                  engine: TrustEngine = Depends(get_engine)):
        engine.audit.refresh()
        entries = engine.audit.query(subject_id=subject_id, event_type=event_type, limit=limit)
        return {
            "entries": [e.to_dict() for e in entries],
            "count": len(entries),
            "summary": engine.audit.summary(),
        }

    return router


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the commitment scheduler when enabled; stop it on shutdown."""
    scheduler: CommitmentScheduler = app.state.scheduler
    if app.state.settings.enable_scheduler:
        await scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()
        await asyncio.to_thread(app.state.engine.close)


def create_app(engine: Optional[TrustEngine] = None, *,
               settings: Optional[Settings] = None,
               rate_limiter: Optional[VoterRateLimiter] = None,
               scheduler: Optional[CommitmentScheduler] = None,
               limiter: Optional[Limiter] = None,
               use_lifespan: bool = True) -> FastAPI:
    """Create a FastAPI app around an engine (built from settings if omitted)."""
    if settings is None:
        settings = engine.settings if engine is not None else Settings.from_env()
    setup_structured_logging(settings.log_level)
    engine = engine or TrustEngine.from_settings(settings)
    limiter = limiter or create_limiter()

    app = FastAPI(
        title="murmur API",
        description="Rumor trust scoring and state integrity — v1 API",
        version=__version__,
        lifespan=lifespan if use_lifespan else None,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.rate_limiter = rate_limiter or VoterRateLimiter()
    app.state.scheduler = scheduler or engine.make_scheduler()

    apply_security(app, limiter, settings.allowed_origins)
    app.include_router(build_router(limiter))
    return app


__all__ = ["create_app", "build_router", "lifespan"]
