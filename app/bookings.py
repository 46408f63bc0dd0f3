import logging
from datetime import date, datetime, time
from typing import Optional, Tuple, Union

import pydantic
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import errors
import models_sqlalchemy as models
import models_pydantic as schemas
from booking_numbers import generate_booking_number
from targets import ResolvedTarget, resolve_requested_target, target_summary
from utils import to_naive_utc

logger = logging.getLogger(__name__)

_datetime_adapter = pydantic.TypeAdapter(Union[datetime, date])


def _to_datetime(value) -> datetime:
    # Bare dates mean midnight UTC
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return to_naive_utc(value)


def parse_travel_dates(travel_info: schemas.TravelInfoCreate) -> Tuple[datetime, datetime]:
    try:
        departure = _to_datetime(_datetime_adapter.validate_python(travel_info.departure_date))
        returning = _to_datetime(_datetime_adapter.validate_python(travel_info.return_date))
    except pydantic.ValidationError:
        logger.warning("Invalid travel dates: %s / %s", travel_info.departure_date, travel_info.return_date)
        raise errors.ValidationError("Invalid date format for departure_date or return_date")
    if departure >= returning:
        raise errors.ValidationError("return_date must be after departure_date")
    return departure, returning


def build_booking(user: models.User, resolved: ResolvedTarget, customer_info: schemas.CustomerInfo,
                  travel_info: schemas.TravelInfoCreate, amount: float, currency: str,
                  payment_intent_id: Optional[str], charge_id: Optional[str],
                  payment_status: str, booking_status: str) -> models.Booking:
    """Validate travel dates and build an unsaved Booking with a fresh booking number."""
    departure, returning = parse_travel_dates(travel_info)
    booking_number = generate_booking_number()
    logger.info("Generated booking number %s", booking_number)
    return models.Booking(
        user_id=user.id,
        target=resolved.ref,
        booking_number=booking_number,
        first_name=customer_info.first_name,
        last_name=customer_info.last_name,
        email=customer_info.email,
        phone=customer_info.phone,
        nationality=customer_info.nationality,
        emergency_contact=(
            customer_info.emergency_contact.model_dump() if customer_info.emergency_contact else None
        ),
        departure_date=departure,
        return_date=returning,
        number_of_travelers=travel_info.number_of_travelers,
        special_requests=travel_info.special_requests,
        amount=amount,
        currency=currency,
        payment_intent_id=payment_intent_id,
        charge_id=charge_id,
        payment_status=payment_status,
        booking_status=booking_status
    )


def persist(db: Session, *records, booking_number: Optional[str] = None):
    """Commit records as one unit; a booking number clash becomes DuplicateBookingNumber."""
    db.add_all(records)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if "booking_number" in str(exc.orig):
            logger.warning("Booking number collision on %s", booking_number)
            raise errors.DuplicateBookingNumber(booking_number) from exc
        raise
    for record in records:
        db.refresh(record)


def create_booking(db: Session, user: models.User, request: schemas.BookingCreate):
    """
    Direct booking path. The payment is treated as already settled, so the
    booking is stored confirmed with a completed payment.

    Returns (booking, target_summary).
    """
    missing = [
        name for name in ("customer_info", "travel_info", "payment_info")
        if getattr(request, name) is None
    ]
    if request.tour_package_id is None and request.hiking_id is None:
        missing.insert(0, "tour_package_id or hiking_id")
    if missing:
        raise errors.ValidationError("Missing required booking information: " + ", ".join(missing))

    resolved = resolve_requested_target(db, request.tour_package_id, request.hiking_id)
    booking = build_booking(
        user,
        resolved,
        request.customer_info,
        request.travel_info,
        amount=request.payment_info.amount,
        currency=request.payment_info.currency,
        payment_intent_id=request.payment_info.payment_intent_id,
        charge_id=request.payment_info.charge_id,
        payment_status="completed",
        booking_status="confirmed"
    )
    persist(db, booking, booking_number=booking.booking_number)
    logger.info("Booking %s saved as %s for user %s", booking.booking_number, booking.id, user.id)
    return booking, target_summary(db, booking.target)


def list_bookings(db: Session, user: models.User, since: Optional[datetime] = None):
    query = db.query(models.Booking).filter(models.Booking.user_id == user.id)
    if since is not None:
        query = query.filter(models.Booking.updated_at >= to_naive_utc(since))
    return query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()


def get_booking(db: Session, user: models.User, booking_id: str) -> models.Booking:
    booking = db.get(models.Booking, booking_id)
    if booking is None:
        raise errors.NotFound("Booking", booking_id)
    if booking.user_id != user.id and user.role != "admin":
        raise errors.Forbidden()
    return booking
