"""
StockRequestSelector -- read-only queries over stock requests.

Responsibility:
    Listings (filtered, paginated, newest first) and the dashboard
    projection: counts by status and urgency, the estimated cost still at
    risk in open requests, and the most recent requests.

Architecture position:
    Modules > Selectors.  Read-only; takes no locks.  Results reflect the
    committed state visible to the caller's transaction, which may trail
    in-flight writes.

Invariants enforced:
    - Every status and urgency key is present in the stats, zero when
      there are no matching rows.  An empty table is not an error.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from pharmacy_kernel.db.types import round_money
from pharmacy_kernel.selectors.base import BaseSelector
from pharmacy_modules.replenishment.models import (
    OPEN_STATUSES,
    StockRequest,
    StockRequestPage,
    StockRequestStats,
    StockRequestStatus,
    UrgencyLevel,
)
from pharmacy_modules.replenishment.orm import StockRequestModel

_OPEN_VALUES = tuple(sorted(s.value for s in OPEN_STATUSES))


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class StockRequestSelector(BaseSelector[StockRequestModel]):
    """Read-side access to stock requests, returning DTOs only."""

    def get(self, request_id: UUID) -> StockRequest | None:
        model = self.session.execute(
            select(StockRequestModel)
            .where(StockRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list(
        self,
        *,
        status: StockRequestStatus | None = None,
        urgency_level: UrgencyLevel | None = None,
        requested_by_id: UUID | None = None,
        search: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> StockRequestPage:
        """
        One page of requests, newest first.

        ``search`` matches any part of the request number.  ``start`` is
        inclusive and ``end`` exclusive, both on ``created_at``.
        """
        conditions = []
        if status is not None:
            conditions.append(StockRequestModel.status == StockRequestStatus(status).value)
        if urgency_level is not None:
            conditions.append(
                StockRequestModel.urgency_level == UrgencyLevel(urgency_level).value
            )
        if requested_by_id is not None:
            conditions.append(StockRequestModel.requested_by_id == requested_by_id)
        if search:
            conditions.append(
                StockRequestModel.request_number.contains(
                    search.strip().upper(), autoescape=True
                )
            )
        if start is not None:
            conditions.append(StockRequestModel.created_at >= _utc(start))
        if end is not None:
            conditions.append(StockRequestModel.created_at < _utc(end))

        total_count = self.session.execute(
            select(func.count(StockRequestModel.id)).where(*conditions)
        ).scalar_one()

        models = self.session.execute(
            select(StockRequestModel)
            .where(*conditions)
            .order_by(
                StockRequestModel.created_at.desc(),
                StockRequestModel.request_number.desc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        ).scalars().all()

        return StockRequestPage(
            items=tuple(m.to_dto() for m in models),
            total_count=int(total_count),
            page=page,
            page_size=page_size,
        )

    def stats(self, recent_limit: int = 5) -> StockRequestStats:
        counts_by_status = {s: 0 for s in StockRequestStatus}
        for status, count in self.session.execute(
            select(StockRequestModel.status, func.count(StockRequestModel.id))
            .group_by(StockRequestModel.status)
        ):
            counts_by_status[StockRequestStatus(status)] = int(count)

        counts_by_urgency = {u: 0 for u in UrgencyLevel}
        for urgency, count in self.session.execute(
            select(StockRequestModel.urgency_level, func.count(StockRequestModel.id))
            .group_by(StockRequestModel.urgency_level)
        ):
            counts_by_urgency[UrgencyLevel(urgency)] = int(count)

        at_risk = self.session.execute(
            select(func.sum(StockRequestModel.estimated_cost))
            .where(StockRequestModel.status.in_(_OPEN_VALUES))
        ).scalar_one()

        critical_open = self.session.execute(
            select(func.count(StockRequestModel.id)).where(
                StockRequestModel.status.in_(_OPEN_VALUES),
                StockRequestModel.urgency_level == UrgencyLevel.CRITICAL.value,
            )
        ).scalar_one()

        recent: tuple[StockRequest, ...] = ()
        if recent_limit > 0:
            recent = self.list(page=1, page_size=recent_limit).items

        return StockRequestStats(
            counts_by_status=counts_by_status,
            counts_by_urgency=counts_by_urgency,
            estimated_cost_at_risk=round_money(Decimal(at_risk or 0)),
            critical_open=int(critical_open),
            total=sum(counts_by_status.values()),
            recent=recent,
        )
