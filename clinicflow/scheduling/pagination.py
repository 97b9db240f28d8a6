"""Pagination helpers for appointment listings."""

import math
from datetime import datetime

from clinicflow.schemas.appointments import PaginationMeta


def page_offset(page: int, limit: int) -> int:
    """Row offset of a 1-based page."""
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total_count: int) -> PaginationMeta:
    total_pages = math.ceil(total_count / limit) if limit else 0
    return PaginationMeta(
        page=page,
        limit=limit,
        total_count=total_count,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def duration_minutes(start: datetime, end: datetime) -> int:
    """Length of an appointment in whole minutes, rounding half up."""
    return math.floor((end - start).total_seconds() / 60 + 0.5)
