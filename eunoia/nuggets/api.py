# -*- coding: utf-8 -*-
"""Learning nugget endpoints (rolling refill)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..auth.security import get_current_user, require_admin
from .models import (
    GenerateRequest,
    GenerateResponse,
    InitializeRequest,
    InitializeResponse,
    LLMProvider,
    MarkJournalResponse,
    MarkSeenResponse,
    MigrationReport,
    NuggetResponse,
    ProgressResponse,
    SeenSetResponse,
    StatisticsResponse,
    parse_category,
)
from .service import NuggetService, get_nugget_service

router = APIRouter(prefix="/api/nuggets", tags=["Nuggets"])
admin_router = APIRouter(prefix="/api/admin/nuggets", tags=["Nuggets admin"])


@router.get("/stats", response_model=StatisticsResponse, summary="Nugget counts per category")
def get_statistics(
    user: dict = Depends(get_current_user),
    service: NuggetService = Depends(get_nugget_service),
):
    counts = service.statistics()
    return StatisticsResponse(counts=counts, total=sum(counts.values()))


@router.get("/progress", response_model=ProgressResponse, summary="Seen counts of the current user")
def get_progress(
    user: dict = Depends(get_current_user),
    service: NuggetService = Depends(get_nugget_service),
):
    return ProgressResponse(seen_counts=service.progress_counts(user["id"]))


@router.get("/{category}/next", response_model=NuggetResponse, summary="Deliver the next unseen nugget")
def fetch_next_nugget(
    category: str,
    provider: LLMProvider | None = Query(default=None, description="openai | deepseek"),
    user: dict = Depends(get_current_user),
    service: NuggetService = Depends(get_nugget_service),
):
    nugget = service.fetch_nugget(parse_category(category), user["id"], provider)
    return NuggetResponse(**nugget.model_dump())


@router.get("/{category}/seen", response_model=SeenSetResponse, summary="Seen nugget ids of the current user")
def get_seen(
    category: str,
    user: dict = Depends(get_current_user),
    service: NuggetService = Depends(get_nugget_service),
):
    parsed = parse_category(category)
    seen = sorted(service.get_seen_set(user["id"], parsed))
    return SeenSetResponse(category=parsed, seen_nugget_ids=seen, count=len(seen))


@router.post("/{nugget_id}/seen", response_model=MarkSeenResponse, summary="Mark a nugget as seen")
def mark_seen(
    nugget_id: str,
    user: dict = Depends(get_current_user),
    service: NuggetService = Depends(get_nugget_service),
):
    nugget, added = service.mark_nugget_seen(nugget_id, user["id"])
    return MarkSeenResponse(nugget_id=nugget.id, category=nugget.category, newly_seen=added)


@router.post("/{nugget_id}/journal", response_model=MarkJournalResponse, summary="Flag a delivered nugget as added to the journal")
def mark_added_to_journal(
    nugget_id: str,
    user: dict = Depends(get_current_user),
    service: NuggetService = Depends(get_nugget_service),
):
    nugget, added = service.mark_nugget_added_to_journal(nugget_id, user["id"])
    return MarkJournalResponse(nugget_id=nugget.id, category=nugget.category, newly_added=added)


@admin_router.post("/initialize", response_model=InitializeResponse, summary="Seed empty categories")
def initialize(
    request: InitializeRequest | None = None,
    user: dict = Depends(require_admin),
    service: NuggetService = Depends(get_nugget_service),
):
    request = request or InitializeRequest()
    generated, failed = service.initialize_database(count=request.count, provider=request.provider)
    return InitializeResponse(generated=generated, failed=failed, total=sum(generated.values()))


@admin_router.post("/migrate", response_model=MigrationReport, summary="Migrate legacy per-user nuggets")
def migrate(
    user: dict = Depends(require_admin),
    service: NuggetService = Depends(get_nugget_service),
):
    return service.migrate_existing_nuggets()


@admin_router.post("/{category}/generate", response_model=GenerateResponse, summary="Generate one batch for a category")
def generate(
    category: str,
    request: GenerateRequest | None = None,
    user: dict = Depends(require_admin),
    service: NuggetService = Depends(get_nugget_service),
):
    request = request or GenerateRequest()
    parsed = parse_category(category)
    stored = service.generate_nuggets(parsed, count=request.count, provider=request.provider)
    return GenerateResponse(category=parsed, generated=len(stored), nugget_ids=[n.id for n in stored])
