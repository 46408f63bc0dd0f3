import io
import os
import re
from datetime import datetime, timedelta

import pytest
from fastapi import UploadFile
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from starlette.datastructures import Headers

import booking_numbers
import bookings
import errors
import models_sqlalchemy as models
import models_pydantic as schemas
import payments
import reviews
import targets
import uploads
import users
from test_helpers import create_booking_dict, create_customer_dict, create_travel_dict, create_user_dict

# ---------- BOOKING NUMBERS ----------

def test_booking_number_format():
    assert booking_numbers.generate_booking_number(now_ms=1700000123456, draw=7, prefix="MTT") == "MTT123456007"
    assert booking_numbers.generate_booking_number(now_ms=1700000000042, draw=999, prefix="MTT") == "MTT000042999"
    assert re.fullmatch(r"MTT\d{9}", booking_numbers.generate_booking_number())

# ---------- TARGET RESOLUTION ----------

def test_resolve_hiking_trail_is_idempotent(db_session, make_hiking):
    h = make_hiking(gallery=[{"url": "/uploads/a.jpg"}])
    first = targets.resolve_target(db_session, h.id)
    db_session.expunge_all()
    second = targets.resolve_target(db_session, h.id)
    assert first.view == second.view
    assert first.view.is_hiking is True
    assert first.view.gallery[0].caption == ""
    assert first.ref == schemas.HikingRef(id=h.id)

def test_resolve_prefers_tour_package(db_session, make_package):
    p = make_package()
    resolved = targets.resolve_target(db_session, p.id)
    assert resolved.ref == schemas.TourPackageRef(id=p.id)
    assert resolved.view.is_hiking is False

def test_resolve_unknown_target_uses_two_queries(db_session, engine):
    statements = []

    def count(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", count)
    try:
        with pytest.raises(errors.NotFound):
            targets.resolve_target(db_session, "nowhere")
    finally:
        event.remove(engine, "before_cursor_execute", count)
    selects = [s for s in statements if s.lstrip().upper().startswith("SELECT")]
    assert len(selects) <= 2

def test_resolve_requested_target_prefers_tour_id(db_session, make_package, make_hiking):
    p = make_package()
    h = make_hiking()
    assert targets.resolve_requested_target(db_session, p.id, h.id).ref.kind == "package"
    assert targets.resolve_requested_target(db_session, None, h.id).ref.kind == "hiking"
    with pytest.raises(errors.ValidationError):
        targets.resolve_requested_target(db_session, None, None)

def test_related_targets(db_session, make_package, make_hiking):
    base = datetime(2025, 1, 1)
    p = make_package(location="Hunza")
    for i in range(5):
        make_package(title=f"Hunza {i}", location="Hunza", created_at=base + timedelta(days=i))
    featured = make_package(title="Featured", location="Lahore", featured=True, created_at=base)
    make_package(title="Inactive", location="Hunza", active=False)
    make_hiking(location="Hunza", featured=True)

    related = targets.related_targets(db_session, targets.resolve_target(db_session, p.id))
    assert len(related) == 4
    assert related[0].id == featured.id
    assert [r.title for r in related[1:]] == ["Hunza 4", "Hunza 3", "Hunza 2"]

# ---------- BOOKINGS ----------

@pytest.mark.parametrize("departure,ret", [
    ("2025-01-01", "2025-01-02"),
    ("2025-06-30T08:00:00", "2025-06-30T09:00:00"),
    ("2025-12-31T23:00:00+05:00", "2025-12-31T19:00:00Z"),
])
def test_valid_dates_create_confirmed_booking(db_session, user, make_package, departure, ret):
    p = make_package()
    request = schemas.BookingCreate(**create_booking_dict(tour_package_id=p.id, departure=departure, ret=ret))
    booking, summary = bookings.create_booking(db_session, user, request)
    assert booking.booking_status == "confirmed"
    assert booking.payment_status == "completed"
    assert booking.departure_date < booking.return_date
    assert summary.title == p.title

@pytest.mark.parametrize("departure,ret", [
    ("2025-01-02", "2025-01-01"),
    ("2025-01-01", "2025-01-01"),
    ("2025-01-01T10:00:00Z", "2025-01-01T14:00:00+05:00"),
])
def test_invalid_date_ranges_persist_nothing(db_session, user, make_package, departure, ret):
    p = make_package()
    request = schemas.BookingCreate(**create_booking_dict(tour_package_id=p.id, departure=departure, ret=ret))
    with pytest.raises(errors.ValidationError):
        bookings.create_booking(db_session, user, request)
    assert db_session.query(models.Booking).count() == 0

def test_booking_checks_target_before_dates(db_session, user):
    request = schemas.BookingCreate(
        **create_booking_dict(hiking_id="missing", departure="2025-01-05", ret="2025-01-01")
    )
    with pytest.raises(errors.NotFound):
        bookings.create_booking(db_session, user, request)

def test_duplicate_booking_number_keeps_first(db_session, user, make_package, monkeypatch):
    p = make_package()
    monkeypatch.setattr(
        bookings, "generate_booking_number",
        lambda: booking_numbers.generate_booking_number(now_ms=1700000123456, draw=7, prefix="MTT")
    )
    request = schemas.BookingCreate(**create_booking_dict(tour_package_id=p.id))
    first, _ = bookings.create_booking(db_session, user, request)
    with pytest.raises(errors.DuplicateBookingNumber) as excinfo:
        bookings.create_booking(db_session, user, request)
    assert excinfo.value.booking_number == "MTT123456007"
    rows = db_session.query(models.Booking).all()
    assert [b.id for b in rows] == [first.id]
    assert rows[0].booking_status == "confirmed"

# ---------- MANUAL PAYMENTS ----------

def test_standalone_manual_payment(db_session, user):
    submission = schemas.ManualPaymentSubmission(amount=250, currency="USD")
    request, booking = payments.submit_manual_payment(db_session, user, submission)
    assert booking is None
    assert request.status == "pending"
    assert request.booking_id is None
    assert request.target is None
    assert db_session.query(models.PaymentRequest).count() == 1
    assert db_session.query(models.Booking).count() == 0

def test_manual_payment_with_travel_info_creates_pending_booking(db_session, user, make_hiking):
    h = make_hiking()
    submission = schemas.ManualPaymentSubmission(
        hiking_id=h.id,
        amount=250,
        customer_info=create_customer_dict(),
        travel_info=create_travel_dict(),
    )
    request, booking = payments.submit_manual_payment(
        db_session, user, submission, save_proof=lambda: "/uploads/proof.png"
    )
    assert booking.booking_status == "pending"
    assert booking.payment_status == "pending"
    assert booking.target == schemas.HikingRef(id=h.id)
    assert request.booking_id == booking.id
    assert request.proof_image_url == "/uploads/proof.png"
    assert db_session.query(models.Booking).count() == 1
    assert db_session.query(models.PaymentRequest).count() == 1

def test_manual_payment_requires_amount(db_session, user):
    with pytest.raises(errors.ValidationError):
        payments.submit_manual_payment(db_session, user, schemas.ManualPaymentSubmission())

def test_manual_payment_booking_clash_persists_neither(db_session, user, make_package, monkeypatch):
    p = make_package()
    monkeypatch.setattr(bookings, "generate_booking_number", lambda: "MTT111111111")
    bookings.create_booking(db_session, user, schemas.BookingCreate(**create_booking_dict(tour_package_id=p.id)))
    submission = schemas.ManualPaymentSubmission(
        tour_package_id=p.id,
        amount=100,
        customer_info=create_customer_dict(),
        travel_info=create_travel_dict(),
    )
    with pytest.raises(errors.DuplicateBookingNumber):
        payments.submit_manual_payment(db_session, user, submission)
    assert db_session.query(models.PaymentRequest).count() == 0
    assert db_session.query(models.Booking).count() == 1

def test_manual_payment_does_not_store_proof_for_invalid_submission(db_session, user, make_package):
    p = make_package()
    stored = []
    submission = schemas.ManualPaymentSubmission(
        tour_package_id=p.id,
        amount=100,
        customer_info=create_customer_dict(),
        travel_info=create_travel_dict(departure="2025-01-05", ret="2025-01-01"),
    )
    with pytest.raises(errors.ValidationError):
        payments.submit_manual_payment(db_session, user, submission, save_proof=lambda: stored.append(1))
    assert stored == []

def test_manual_payment_discards_proof_when_commit_fails(db_session, user, make_package, monkeypatch):
    p = make_package()
    monkeypatch.setattr(bookings, "generate_booking_number", lambda: "MTT222222222")
    bookings.create_booking(db_session, user, schemas.BookingCreate(**create_booking_dict(tour_package_id=p.id)))
    discarded = []
    submission = schemas.ManualPaymentSubmission(
        tour_package_id=p.id,
        amount=100,
        customer_info=create_customer_dict(),
        travel_info=create_travel_dict(),
    )
    with pytest.raises(errors.DuplicateBookingNumber):
        payments.submit_manual_payment(
            db_session, user, submission,
            save_proof=lambda: "/uploads/proof.png", discard_proof=discarded.append
        )
    assert discarded == ["/uploads/proof.png"]

    request, _ = payments.submit_manual_payment(
        db_session, user, schemas.ManualPaymentSubmission(amount=5),
        save_proof=lambda: "/uploads/kept.png", discard_proof=discarded.append
    )
    assert request.proof_image_url == "/uploads/kept.png"
    assert discarded == ["/uploads/proof.png"]

# ---------- UPLOADS ----------

def test_save_and_delete_proof_image(test_settings):
    upload = UploadFile(
        file=io.BytesIO(b"GIF89a"), filename="shot.exe", headers=Headers({"content-type": "image/gif"})
    )
    public_path = uploads.save_proof_image(upload, test_settings)
    assert public_path.startswith("/uploads/paymentScreenshot-")
    assert public_path.endswith(".gif")
    stored = os.path.join(test_settings.upload_dir, public_path.rsplit("/", 1)[1])
    assert os.path.exists(stored)

    uploads.delete_proof_image(public_path, test_settings)
    assert not os.path.exists(stored)
    # Already gone is fine
    uploads.delete_proof_image(public_path, test_settings)

def test_parse_form_section():
    assert payments.parse_form_section("travel_info", "", schemas.TravelInfoCreate) is None
    parsed = payments.parse_form_section(
        "travel_info", '{"departure_date": "2025-01-01", "return_date": "2025-01-02", "number_of_travelers": 1}',
        schemas.TravelInfoCreate
    )
    assert parsed.number_of_travelers == 1
    with pytest.raises(errors.ValidationError) as excinfo:
        payments.parse_form_section(
            "travel_info", '{"departure_date": "2025-01-01", "return_date": "2025-01-02", "number_of_travelers": 0}',
            schemas.TravelInfoCreate
        )
    assert "travel_info.number_of_travelers" in excinfo.value.detail

# ---------- REVIEWS AND AGGREGATES ----------

@pytest.mark.parametrize("ratings,expected_stars", [
    ([3], 3),
    ([1, 2], 2),
    ([2, 3, 3], 3),
    ([5, 4, 4, 4], 4),
    ([1, 1, 2, 2], 2),
    ([5, 5, 5, 1, 1], 3),
])
def test_sequential_reviews_aggregate(db_session, user, make_package, ratings, expected_stars):
    p = make_package(stars=1)
    for rating in ratings:
        reviews.create_review(
            db_session, user, schemas.ReviewCreate(tour_package_id=p.id, user_email="alice@example.com", rating=rating)
        )
    db_session.refresh(p)
    assert p.stars == expected_stars
    assert p.reviews == len(ratings)

def test_review_rating_validation(db_session, user, make_package):
    p = make_package(stars=2)
    with pytest.raises(errors.ValidationError):
        reviews.create_review(db_session, user, schemas.ReviewCreate(tour_package_id=p.id, rating=6))
    with pytest.raises(errors.ValidationError):
        reviews.create_review(db_session, user, schemas.ReviewCreate(tour_package_id=p.id, rating=0))
    assert db_session.query(models.Review).count() == 0

    review = reviews.create_review(db_session, user, schemas.ReviewCreate(tour_package_id=p.id, rating=3))
    assert review.user_email == "alice@example.com"
    db_session.refresh(p)
    assert (p.stars, p.reviews) == (3, 1)

def test_review_resolves_hiking_by_id(db_session, user, make_hiking):
    h = make_hiking()
    # The id is resolved across both catalogs, whichever field carried it
    review = reviews.create_review(db_session, user, schemas.ReviewCreate(tour_package_id=h.id, rating=4))
    assert review.target == schemas.HikingRef(id=h.id)
    assert review.tour_package_id is None

def test_recompute_without_reviews_keeps_stars(db_session, make_hiking):
    h = make_hiking(stars=4, reviews=7)
    reviews.recompute_aggregate(db_session, schemas.HikingRef(id=h.id))
    db_session.commit()
    db_session.refresh(h)
    assert (h.stars, h.reviews) == (4, 0)

def test_review_needs_exactly_one_target(db_session, user, make_package, make_hiking):
    p = make_package()
    h = make_hiking()
    db_session.add(models.Review(
        tour_package_id=p.id, hiking_id=h.id, user_id=user.id, user_name="A", user_email="a@b.co",
        rating=3, title="t", comment="c"
    ))
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()

def test_list_reviews_matches_either_key(db_session, user, make_package, make_hiking):
    p = make_package()
    h = make_hiking()
    reviews.create_review(db_session, user, schemas.ReviewCreate(tour_package_id=p.id, rating=5))
    reviews.create_review(db_session, user, schemas.ReviewCreate(hiking_id=h.id, rating=2))
    assert [r.rating for r in reviews.list_reviews(db_session, p.id)] == [5]
    assert [r.rating for r in reviews.list_reviews(db_session, h.id)] == [2]

# ---------- USERS ----------

def test_hash_password_is_salted():
    h1, salt = users.hash_password("secret123")
    assert users.hash_password("secret123", salt) == (h1, salt)
    assert users.hash_password("secret123")[0] != h1

def test_authenticate(db_session, user):
    assert users.authenticate(db_session, "Alice@Example.com", "secret123").id == user.id
    with pytest.raises(errors.Unauthorized):
        users.authenticate(db_session, "alice@example.com", "nope")
    with pytest.raises(errors.Unauthorized):
        users.authenticate(db_session, "nobody@example.com", "secret123")

def test_register_taken_email(db_session, user):
    with pytest.raises(errors.AlreadyExists) as excinfo:
        users.register_user(db_session, schemas.UserCreate(**create_user_dict(username="someone-else")))
    assert excinfo.value.status_code == 400
