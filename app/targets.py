"""Ids are looked up as tour packages first, then as hiking trails."""
import logging
from typing import List, NamedTuple, Optional, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session

import errors
import models_sqlalchemy as models
import models_pydantic as schemas

logger = logging.getLogger(__name__)


class ResolvedTarget(NamedTuple):
    ref: Union[schemas.TourPackageRef, schemas.HikingRef]
    record: Union[models.TourPackage, models.HikingTrail]
    view: schemas.TargetView


def _package_view(p: models.TourPackage) -> schemas.TargetView:
    return schemas.TargetView(
        id=p.id,
        title=p.title,
        description=p.description,
        location=p.location,
        duration=p.duration,
        image_url=p.image_url or "",
        gallery=p.gallery or [],
        stars=p.stars,
        reviews=p.reviews or 0,
        price=p.price,
        featured=p.featured
    )


def _hiking_view(h: models.HikingTrail) -> schemas.TargetView:
    return schemas.TargetView(
        id=h.id,
        title=h.title,
        description=h.description,
        location=h.location,
        duration=h.duration,
        image_url=h.image_url or "",
        gallery=h.gallery if isinstance(h.gallery, list) else [],
        stars=h.stars or 5,
        reviews=h.reviews or 0,
        price=h.price if isinstance(h.price, (int, float)) else 0,
        featured=bool(h.featured),
        is_hiking=True
    )


def _resolved(record) -> ResolvedTarget:
    if isinstance(record, models.TourPackage):
        return ResolvedTarget(schemas.TourPackageRef(id=record.id), record, _package_view(record))
    return ResolvedTarget(schemas.HikingRef(id=record.id), record, _hiking_view(record))


def catalog_model(ref):
    if isinstance(ref, schemas.TourPackageRef):
        return models.TourPackage
    return models.HikingTrail


def resolve_target(db: Session, target_id: str) -> ResolvedTarget:
    record = db.get(models.TourPackage, target_id)
    if record is None:
        record = db.get(models.HikingTrail, target_id)
    if record is None:
        raise errors.NotFound("Target", target_id)
    return _resolved(record)


def resolve_ref(db: Session, ref) -> ResolvedTarget:
    record = db.get(catalog_model(ref), ref.id)
    if record is None:
        raise errors.NotFound("Tour package" if ref.kind == "package" else "Hiking trail", ref.id)
    return _resolved(record)


def resolve_requested_target(db: Session, tour_package_id: Optional[str],
                             hiking_id: Optional[str]) -> ResolvedTarget:
    """Resolve an explicitly typed id pair; the tour package id wins if both are set."""
    if tour_package_id is not None:
        return resolve_ref(db, schemas.TourPackageRef(id=tour_package_id))
    if hiking_id is not None:
        return resolve_ref(db, schemas.HikingRef(id=hiking_id))
    raise errors.ValidationError("tour_package_id or hiking_id is required")


def related_targets(db: Session, resolved: ResolvedTarget, limit: int = 4) -> List[schemas.RelatedTarget]:
    model = type(resolved.record)
    rows = (
        db.query(model)
        .filter(
            model.id != resolved.record.id,
            model.active.is_(True),
            or_(model.location == resolved.record.location, model.featured.is_(True))
        )
        .order_by(model.featured.desc(), model.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        schemas.RelatedTarget(
            id=r.id,
            title=r.title,
            location=r.location,
            price=r.price if isinstance(r.price, (int, float)) else 0,
            image_url=r.image_url or "",
            featured=bool(r.featured),
            stars=r.stars or 5
        )
        for r in rows
    ]


def target_summary(db: Session, ref) -> Optional[schemas.TargetSummary]:
    if ref is None:
        return None
    record = db.get(catalog_model(ref), ref.id)
    if record is None:
        # Soft reference: the admin panel may have removed the catalog entry
        logger.warning("Referenced %s %s no longer exists", ref.kind, ref.id)
        return None
    return schemas.TargetSummary(
        target=ref,
        title=record.title,
        location=record.location,
        image_url=record.image_url or "",
        price=record.price or 0
    )
