"""Admin check-in listing.

One primary selector drives the query, chosen by precedence
date range > kiosk > product type > everything else; the remaining fields
narrow the result set on top of it.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple

from sqlalchemy.orm import Query, Session

from fieldclock.models.checkin import CheckIn
from fieldclock.models.kiosk import Kiosk


class PrimarySelector(str, Enum):
    DATE_RANGE = "date_range"
    KIOSK = "kiosk"
    PRODUCT_TYPE = "product_type"
    ALL = "all"


@dataclass
class CheckInFilter:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    kiosk_id: Optional[str] = None
    product_type: Optional[str] = None
    user_name: Optional[str] = None
    check_in_type: Optional[str] = None
    status: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    hub_id: Optional[int] = None

    @property
    def primary(self) -> PrimarySelector:
        if self.start_date or self.end_date:
            return PrimarySelector.DATE_RANGE
        if self.kiosk_id:
            return PrimarySelector.KIOSK
        if self.product_type:
            return PrimarySelector.PRODUCT_TYPE
        return PrimarySelector.ALL


def _apply_primary(query: Query, flt: CheckInFilter, primary: PrimarySelector) -> Query:
    if primary == PrimarySelector.DATE_RANGE:
        if flt.start_date:
            query = query.filter(CheckIn.work_date >= flt.start_date)
        if flt.end_date:
            query = query.filter(CheckIn.work_date <= flt.end_date)
    elif primary == PrimarySelector.KIOSK:
        query = query.filter(CheckIn.kiosk_id == flt.kiosk_id)
    elif primary == PrimarySelector.PRODUCT_TYPE:
        query = query.filter(CheckIn.product_type == flt.product_type)
    return query


def build_check_in_query(db: Session, flt: CheckInFilter) -> Tuple[PrimarySelector, Query]:
    primary = flt.primary
    query = _apply_primary(db.query(CheckIn), flt, primary)

    # Lower-precedence selectors still apply as secondary filters
    if primary == PrimarySelector.DATE_RANGE and flt.kiosk_id:
        query = query.filter(CheckIn.kiosk_id == flt.kiosk_id)
    if primary in (PrimarySelector.DATE_RANGE, PrimarySelector.KIOSK) and flt.product_type:
        query = query.filter(CheckIn.product_type == flt.product_type)

    if flt.user_name:
        query = query.filter(CheckIn.user_name.ilike(f"%{flt.user_name}%"))
    if flt.check_in_type:
        query = query.filter(CheckIn.type == flt.check_in_type)
    if flt.status:
        query = query.filter(CheckIn.status == flt.status)

    if flt.state or flt.city or flt.hub_id is not None:
        query = query.join(Kiosk, Kiosk.id == CheckIn.kiosk_id)
        if flt.state:
            query = query.filter(Kiosk.state == flt.state)
        if flt.city:
            query = query.filter(Kiosk.city == flt.city)
        if flt.hub_id is not None:
            query = query.filter(Kiosk.hub_id == flt.hub_id)

    return primary, query.order_by(CheckIn.timestamp.desc())
