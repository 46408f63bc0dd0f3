"""
The stored stars/reviews aggregate is recomputed from all reviews on every
write and is eventually consistent: concurrent reviews of one target can
race until the next write.
"""
import logging

import pydantic
from pydantic import EmailStr
from sqlalchemy import or_
from sqlalchemy.orm import Session

import errors
import models_sqlalchemy as models
import models_pydantic as schemas
from targets import catalog_model, resolve_target

logger = logging.getLogger(__name__)

_email_adapter = pydantic.TypeAdapter(EmailStr)
TITLE_MAX = 100
COMMENT_MAX = 500


def round_half_up_mean(ratings):
    total, count = sum(ratings), len(ratings)
    return (2 * total + count) // (2 * count)


def recompute_aggregate(db: Session, ref):
    """
    Write the rounded mean rating and the review count onto the target.

    Flushes but does not commit. With no reviews the count becomes 0 and
    stars keep their current value.
    """
    model = catalog_model(ref)
    column = models.Review.tour_package_id if ref.kind == "package" else models.Review.hiking_id
    ratings = [r for (r,) in db.query(models.Review.rating).filter(column == ref.id).all()]
    record = db.get(model, ref.id)
    if record is None:
        raise errors.NotFound("Target", ref.id)
    record.reviews = len(ratings)
    if ratings:
        record.stars = round_half_up_mean(ratings)
    db.flush()
    logger.info("Aggregate for %s %s: stars=%s reviews=%s", ref.kind, ref.id, record.stars, record.reviews)
    return record


def create_review(db: Session, user: models.User, request: schemas.ReviewCreate) -> models.Review:
    target_id = request.tour_package_id if request.tour_package_id is not None else request.hiking_id
    author_email = request.user_email or user.email
    if target_id is None or not author_email or request.rating is None:
        raise errors.ValidationError("Target id (package or hiking), email, and rating are required")
    try:
        _email_adapter.validate_python(author_email)
    except pydantic.ValidationError:
        raise errors.ValidationError("Please enter a valid email address")
    if request.rating < 1 or request.rating > 5:
        raise errors.ValidationError("Rating must be between 1 and 5")
    title = request.title or "Review"
    comment = request.comment or "No comment provided"
    if len(title) > TITLE_MAX:
        raise errors.ValidationError(f"title must be at most {TITLE_MAX} characters")
    if len(comment) > COMMENT_MAX:
        raise errors.ValidationError(f"comment must be at most {COMMENT_MAX} characters")

    resolved = resolve_target(db, target_id)
    review = models.Review(
        target=resolved.ref,
        user_id=user.id,
        user_name=user.full_name or request.user_name or "Anonymous",
        user_email=user.email or author_email,
        rating=request.rating,
        title=title,
        comment=comment
    )
    db.add(review)
    db.flush()
    recompute_aggregate(db, resolved.ref)
    db.commit()
    db.refresh(review)
    logger.info("Review %s saved for %s %s", review.id, resolved.ref.kind, resolved.ref.id)
    return review


def list_reviews(db: Session, target_id: str, limit=None):
    query = (
        db.query(models.Review)
        .filter(or_(models.Review.tour_package_id == target_id, models.Review.hiking_id == target_id))
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()
