"""Read-only impact statistics over listings and users."""

import calendar
from datetime import datetime

from sqlalchemy import case, extract, func, select
from sqlalchemy.orm import Session

from . import models, schemas
from .core import get_settings

ADOPTED = models.AnimalStatus.ADOPTED.value
AVAILABLE = models.AnimalStatus.AVAILABLE.value


def months_ago(moment: datetime, months: int) -> datetime:
    """Shift ``moment`` back by whole calendar months, clamping the day."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def adoption_rate(adopted: int, total: int) -> float:
    """Percentage of adopted listings, rounded to one decimal."""
    if total == 0:
        return 0
    return round(adopted / total * 100, 1)


def _count(db: Session, *conditions) -> int:
    return db.scalar(
        select(func.count()).select_from(models.Animal).where(*conditions)
    )


def overview(db: Session) -> schemas.Overview:
    total_animals = _count(db)
    total_adoptions = _count(db, models.Animal.status == ADOPTED)
    return schemas.Overview(
        total_animals=total_animals,
        total_adoptions=total_adoptions,
        total_users=db.scalar(select(func.count()).select_from(models.User)),
        available_animals=_count(db, models.Animal.status == AVAILABLE),
        urgent_animals=_count(
            db, models.Animal.urgent.is_(True), models.Animal.status == AVAILABLE
        ),
        adoption_rate=adoption_rate(total_adoptions, total_animals),
    )


def adoptions_by_month(
    db: Session, months: int | None = None, now: datetime | None = None
) -> list[schemas.MonthlyAdoptions]:
    """
    Count adoptions per calendar month over a trailing window.

    Args:
        db (Session): Database session.
        months (int | None): Window length, ``STATS_MONTHS`` by default.
        now (datetime | None): End of the window, current time by default.

    Returns:
        list[MonthlyAdoptions]: Non-empty months in chronological order.
    """
    months = months or get_settings().STATS_MONTHS
    since = months_ago(now or datetime.utcnow(), months)
    year = extract("year", models.Animal.adoption_date)
    month = extract("month", models.Animal.adoption_date)
    rows = db.execute(
        select(year.label("year"), month.label("month"), func.count().label("count"))
        .where(
            models.Animal.status == ADOPTED,
            models.Animal.adoption_date >= since,
        )
        .group_by(year, month)
        .order_by(year, month)
    ).all()
    return [
        schemas.MonthlyAdoptions(year=int(row.year), month=int(row.month), count=row.count)
        for row in rows
    ]


def animals_by_type(db: Session) -> list[schemas.TypeBreakdown]:
    adopted = func.sum(case((models.Animal.status == ADOPTED, 1), else_=0))
    rows = db.execute(
        select(
            models.Animal.type,
            func.count().label("total"),
            adopted.label("adopted"),
        )
        .group_by(models.Animal.type)
        .order_by(models.Animal.type)
    ).all()
    return [
        schemas.TypeBreakdown(type=row.type, total=row.total, adopted=row.adopted or 0)
        for row in rows
    ]


def top_cities(db: Session, limit: int | None = None) -> list[schemas.CityCount]:
    """Cities with the most listings, busiest first."""
    limit = limit or get_settings().TOP_CITIES_LIMIT
    count = func.count().label("count")
    rows = db.execute(
        select(models.Animal.location_city, count)
        .where(models.Animal.location_city.is_not(None), models.Animal.location_city != "")
        .group_by(models.Animal.location_city)
        .order_by(count.desc())
        .limit(limit)
    ).all()
    return [schemas.CityCount(city=row.location_city, count=row.count) for row in rows]


def platform_stats(db: Session) -> schemas.StatsOut:
    return schemas.StatsOut(
        overview=overview(db),
        charts=schemas.Charts(
            adoptions_by_month=adoptions_by_month(db),
            animals_by_type=animals_by_type(db),
            top_cities=top_cities(db),
        ),
    )


def map_view(
    db: Session,
    status: str | None = None,
    type: str | None = None,
    limit: int | None = None,
) -> list[models.Animal]:
    """Listings for the map, bounded by ``MAP_MAX_ANIMALS``."""
    limit = limit or get_settings().MAP_MAX_ANIMALS
    conditions = []
    if status:
        conditions.append(models.Animal.status == status)
    if type:
        conditions.append(models.Animal.type == type)
    return db.scalars(
        select(models.Animal).where(*conditions).order_by(models.Animal.id).limit(limit)
    ).all()


def user_dashboard(db: Session, user_id: int) -> dict:
    """Counters and recent activity shown on the user's dashboard."""
    posted = models.Animal.poster_id == user_id
    adopted = (models.Animal.adopter_id == user_id, models.Animal.status == ADOPTED)

    recent_rescues = db.scalars(
        select(models.Animal)
        .where(posted)
        .order_by(models.Animal.created_at.desc(), models.Animal.id.desc())
        .limit(5)
    ).all()
    recent_adoptions = db.scalars(
        select(models.Animal)
        .where(*adopted)
        .order_by(models.Animal.adoption_date.desc(), models.Animal.id.desc())
        .limit(5)
    ).all()
    return {
        "stats": {
            "rescues": _count(db, posted),
            "adoptions": _count(db, *adopted),
            "pending": _count(db, posted, models.Animal.status == AVAILABLE),
        },
        "recent_activity": {
            "rescues": recent_rescues,
            "adoptions": recent_adoptions,
        },
    }
