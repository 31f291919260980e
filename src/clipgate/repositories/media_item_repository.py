"""Persistence layer for media items and their moderation history."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.db_models import MediaItemModel, ModerationDecisionModel
from ..domain.models import (
    APPEAL_TRANSITIONS,
    PIPELINE_TRANSITIONS,
    AudioStatus,
    ErrorCategory,
    ItemKind,
    ItemStatus,
    MediaItem,
    ModerationDecision,
)
from ..exceptions import ensure_found, handle_sqlalchemy_errors
from ..ingest.ingest_errors import InvalidTransitionError

_MUTABLE_FIELDS = frozenset(
    {
        "normalized_path",
        "staging_uri",
        "public_url",
        "thumbnail_url",
        "cdn_asset_id",
        "quarantine_ref",
        "failure_reason",
        "error_category",
        "user_message",
    }
)


def utcnow() -> datetime:
    """Naive UTC timestamp matching the ``DateTime`` columns."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


class MediaItemRepository:
    """Narrow state store contract used by the pipeline.

    Every status change is one transaction: the transition is validated
    against the lifecycle table, the item columns are updated and the
    decision (if any) is appended to the history table.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow

    def create(self, item: MediaItem) -> MediaItem:
        now = self._clock()
        with handle_sqlalchemy_errors(entity="media_item", identifier=item.id), self._session_factory() as session:
            model = MediaItemModel(
                id=item.id,
                kind=item.kind.value,
                status=ItemStatus.UPLOADING.value,
                source_path=str(item.source_path),
                declared_duration=item.declared_duration,
                title=item.title,
                category=item.category,
                attempts=0,
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.commit()
            return _to_domain(model, decision=None)

    def get_item(self, item_id: str) -> MediaItem:
        with self._session_factory() as session:
            model = self._load(session, item_id)
            return _to_domain(model, decision=_latest_decision(model))

    def update_status(
        self,
        item_id: str,
        status: ItemStatus,
        *,
        decision: ModerationDecision | None = None,
        **changes: Any,
    ) -> MediaItem:
        """Move ``item_id`` to ``status`` inside a single transaction."""

        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported media_item fields: {sorted(unknown)}")

        with handle_sqlalchemy_errors(entity="media_item", identifier=item_id), self._session_factory() as session:
            model = self._load(session, item_id)
            current = ItemStatus(model.status)
            _ensure_transition(item_id, current, status, PIPELINE_TRANSITIONS)
            self._apply(session, model, status, decision=decision, changes=changes)
            session.commit()
            return _to_domain(model, decision=_latest_decision(model))

    def record_attempt(self, item_id: str) -> MediaItem:
        """Count a pipeline run and refresh ``updated_at``."""

        with handle_sqlalchemy_errors(entity="media_item", identifier=item_id), self._session_factory() as session:
            model = self._load(session, item_id)
            model.attempts += 1
            model.updated_at = self._clock()
            session.commit()
            return _to_domain(model, decision=_latest_decision(model))

    def open_appeal(self, item_id: str) -> MediaItem:
        """Reserved entry point of the external appeal workflow."""

        return self._appeal_transition(item_id, ItemStatus.UNDER_APPEAL, {})

    def resolve_appeal(
        self,
        item_id: str,
        status: ItemStatus,
        **changes: Any,
    ) -> MediaItem:
        return self._appeal_transition(item_id, status, changes)

    def list_stale(
        self,
        *,
        statuses: Iterable[ItemStatus],
        updated_before: datetime,
        limit: int,
    ) -> list[MediaItem]:
        """Return in-flight items untouched since ``updated_before``, oldest first."""

        values = [status.value for status in statuses]
        with self._session_factory() as session:
            rows = session.scalars(
                select(MediaItemModel)
                .where(MediaItemModel.status.in_(values))
                .where(MediaItemModel.updated_at < updated_before)
                .order_by(MediaItemModel.updated_at)
                .limit(limit)
            ).all()
            return [_to_domain(row, decision=None) for row in rows]

    def decision_history(self, item_id: str) -> list[ModerationDecision]:
        with self._session_factory() as session:
            model = self._load(session, item_id)
            return [_decision_to_domain(row) for row in model.decisions]

    # ------------------------------------------------------------------
    def _appeal_transition(
        self, item_id: str, status: ItemStatus, changes: dict[str, Any]
    ) -> MediaItem:
        with handle_sqlalchemy_errors(entity="media_item", identifier=item_id), self._session_factory() as session:
            model = self._load(session, item_id)
            current = ItemStatus(model.status)
            _ensure_transition(item_id, current, status, APPEAL_TRANSITIONS)
            self._apply(session, model, status, decision=None, changes=changes)
            session.commit()
            return _to_domain(model, decision=_latest_decision(model))

    def _apply(
        self,
        session: Session,
        model: MediaItemModel,
        status: ItemStatus,
        *,
        decision: ModerationDecision | None,
        changes: dict[str, Any],
    ) -> None:
        for name, value in changes.items():
            if isinstance(value, Path):
                value = str(value)
            elif isinstance(value, ErrorCategory):
                value = value.value
            setattr(model, name, value)

        public_url = model.public_url
        if status is ItemStatus.APPROVED and not public_url:
            raise InvalidTransitionError(
                f"Item '{model.id}' cannot be approved without a confirmed public URL"
            )
        if status is not ItemStatus.APPROVED and public_url:
            # Public URLs exist only for approved items.
            model.public_url = None
            model.thumbnail_url = None

        now = self._clock()
        model.status = status.value
        model.updated_at = now
        if decision is not None:
            session.add(
                ModerationDecisionModel(
                    item_id=model.id,
                    approved=decision.approved,
                    visual_passed=decision.visual_passed,
                    audio_status=decision.audio_status.value,
                    reason=decision.reason,
                    transcript=decision.transcript,
                    keywords_json=json.dumps(list(decision.keywords)),
                    decided_at=decision.decided_at or now,
                )
            )
            session.flush()
            session.refresh(model)

    @staticmethod
    def _load(session: Session, item_id: str) -> MediaItemModel:
        model = session.get(MediaItemModel, item_id)
        ensure_found(model, entity="Media item", identifier=item_id)
        return model


def _ensure_transition(
    item_id: str,
    current: ItemStatus,
    target: ItemStatus,
    table: dict[ItemStatus, frozenset[ItemStatus]] | Any,
) -> None:
    if current is target and not current.is_terminal and current in PIPELINE_TRANSITIONS:
        return
    allowed = table.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Item '{item_id}' cannot move from {current.value} to {target.value}"
        )


def _latest_decision(model: MediaItemModel) -> ModerationDecision | None:
    if not model.decisions:
        return None
    return _decision_to_domain(model.decisions[-1])


def _decision_to_domain(row: ModerationDecisionModel) -> ModerationDecision:
    return ModerationDecision(
        approved=row.approved,
        visual_passed=row.visual_passed,
        audio_status=AudioStatus(row.audio_status),
        reason=row.reason,
        transcript=row.transcript,
        keywords=tuple(json.loads(row.keywords_json or "[]")),
        decided_at=row.decided_at,
    )


def _to_domain(
    model: MediaItemModel, *, decision: ModerationDecision | None
) -> MediaItem:
    return MediaItem(
        id=model.id,
        source_path=Path(model.source_path),
        kind=ItemKind(model.kind),
        status=ItemStatus(model.status),
        declared_duration=model.declared_duration,
        title=model.title,
        category=model.category,
        normalized_path=Path(model.normalized_path) if model.normalized_path else None,
        staging_uri=model.staging_uri,
        decision=decision,
        public_url=model.public_url,
        thumbnail_url=model.thumbnail_url,
        cdn_asset_id=model.cdn_asset_id,
        quarantine_ref=model.quarantine_ref,
        failure_reason=model.failure_reason,
        error_category=ErrorCategory(model.error_category) if model.error_category else None,
        user_message=model.user_message,
        attempts=model.attempts,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
