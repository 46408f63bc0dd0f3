"""Manual (offline) payment requests, optionally with a pending booking."""
import logging
from datetime import datetime
from typing import Callable, Optional

import pydantic
from sqlalchemy.orm import Session

import errors
import models_sqlalchemy as models
import models_pydantic as schemas
from bookings import build_booking, persist
from targets import resolve_requested_target
from utils import to_naive_utc

logger = logging.getLogger(__name__)

MANUAL_PAYMENT_REFERENCE = "manual_payment"


def parse_form_section(name: str, raw: Optional[str], model):
    """Parse a JSON-encoded form field into `model`; blank means absent."""
    if raw is None or raw.strip() == "":
        return None
    try:
        return model.model_validate_json(raw)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(p) for p in first.get("loc", ()))
        field = f"{name}.{location}" if location else name
        raise errors.ValidationError(f"Invalid {field}: {first.get('msg')}")


def build_submission(**fields) -> schemas.ManualPaymentSubmission:
    try:
        return schemas.ManualPaymentSubmission(**fields)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise errors.ValidationError(f"Invalid {field}: {first.get('msg')}")


def submit_manual_payment(db: Session, user: models.User, submission: schemas.ManualPaymentSubmission,
                          save_proof: Optional[Callable[[], str]] = None,
                          discard_proof: Optional[Callable[[str], None]] = None):
    """
    Record a manual payment claim.

    `save_proof` stores the uploaded screenshot and returns its public path;
    it runs only once the submission has been validated. `discard_proof`
    removes that file again if the commit fails. The booking and the request
    are committed together or not at all.

    Returns (payment_request, booking_or_None).
    """
    if submission.amount is None:
        raise errors.ValidationError("amount is required")

    resolved = None
    if submission.tour_package_id is not None or submission.hiking_id is not None:
        resolved = resolve_requested_target(db, submission.tour_package_id, submission.hiking_id)

    booking = None
    if submission.customer_info is not None and submission.travel_info is not None:
        if resolved is None:
            raise errors.ValidationError("tour_package_id or hiking_id is required to reserve travel dates")
        booking = build_booking(
            user,
            resolved,
            submission.customer_info,
            submission.travel_info,
            amount=submission.amount,
            currency=submission.currency,
            payment_intent_id=MANUAL_PAYMENT_REFERENCE,
            charge_id=MANUAL_PAYMENT_REFERENCE,
            payment_status="pending",
            booking_status="pending"
        )

    proof_image_url = ""
    if save_proof is not None:
        proof_image_url = save_proof()
        logger.info("Payment screenshot stored at %s", proof_image_url)
    else:
        logger.info("No payment screenshot uploaded")

    request = models.PaymentRequest(
        user_id=user.id,
        user_email=user.email or user.username or "unknown@user",
        user_name=user.full_name or user.username or "",
        target=resolved.ref if resolved else None,
        booking=booking,
        amount=submission.amount,
        currency=submission.currency,
        payment_method=submission.payment_method,
        transaction_id=submission.transaction_id or "",
        proof_image_url=proof_image_url,
        notes=submission.notes or "",
        status="pending"
    )
    try:
        persist(db, request, booking_number=booking.booking_number if booking else None)
    except Exception:
        if proof_image_url and discard_proof is not None:
            discard_proof(proof_image_url)
        raise
    logger.info(
        "Payment request %s saved (booking %s, proof %r)",
        request.id, request.booking_id, request.proof_image_url
    )
    return request, booking


def list_payment_requests(db: Session, user: models.User, since: Optional[datetime] = None):
    query = db.query(models.PaymentRequest).filter(models.PaymentRequest.user_id == user.id)
    if since is not None:
        query = query.filter(models.PaymentRequest.updated_at >= to_naive_utc(since))
    return query.order_by(models.PaymentRequest.created_at.desc(), models.PaymentRequest.id.desc()).all()


def get_payment_settings(db: Session) -> schemas.PaymentSettingResponse:
    setting = db.query(models.PaymentSetting).order_by(models.PaymentSetting.id).first()
    if setting is None:
        return schemas.PaymentSettingResponse()
    return schemas.PaymentSettingResponse.model_validate(setting)
