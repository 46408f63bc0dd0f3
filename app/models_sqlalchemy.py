from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Text, Boolean, JSON, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship

from models_pydantic import TourPackageRef, HikingRef
from utils import new_id, utcnow

Base = declarative_base()


class TargetRefMixin:
    """Exposes the tour_package_id / hiking_id column pair as one Target value."""

    @property
    def target(self):
        if self.tour_package_id is not None:
            return TourPackageRef(id=self.tour_package_id)
        if self.hiking_id is not None:
            return HikingRef(id=self.hiking_id)
        return None

    @target.setter
    def target(self, ref):
        self.tour_package_id = ref.id if isinstance(ref, TourPackageRef) else None
        self.hiking_id = ref.id if isinstance(ref, HikingRef) else None


class User(Base):
    __tablename__ = "Users"
    id = Column(String(32), primary_key=True, default=new_id)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(16), nullable=False, default="user")
    password_hash = Column(String(128), nullable=False)
    password_salt = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class TourPackage(Base):
    __tablename__ = "TourPackages"
    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    image_url = Column(String(512), nullable=False, default="")
    gallery = Column(JSON, nullable=False, default=list)
    stars = Column(Integer, nullable=False, default=5)
    reviews = Column(Integer, nullable=False, default=0)
    price = Column(Float, nullable=False, default=0)
    duration = Column(String(100), nullable=True)
    location = Column(String(255), nullable=True, index=True)
    max_group_size = Column(Integer, nullable=True)
    highlights = Column(Text, nullable=True)  # comma-separated
    featured = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("stars BETWEEN 1 AND 5", name="ck_tour_packages_stars"),
    )


class HikingTrail(Base):
    __tablename__ = "HikingTrails"
    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    image_url = Column(String(512), nullable=True, default="")
    gallery = Column(JSON, nullable=True, default=list)
    stars = Column(Integer, nullable=True, default=5)
    reviews = Column(Integer, nullable=True, default=0)
    price = Column(Float, nullable=True, default=0)
    duration = Column(String(100), nullable=True)
    location = Column(String(255), nullable=False, index=True)
    difficulty = Column(String(16), nullable=False, default="moderate")
    activity = Column(String(32), nullable=False, default="hiking")
    distance = Column(String(64), nullable=True)
    elevation = Column(String(64), nullable=True)
    best_time = Column(String(100), nullable=True)
    features = Column(Text, nullable=True)  # comma-separated
    featured = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Review(TargetRefMixin, Base):
    __tablename__ = "Reviews"
    id = Column(String(32), primary_key=True, default=new_id)
    tour_package_id = Column(String(32), ForeignKey("TourPackages.id"), nullable=True, index=True)
    hiking_id = Column(String(32), ForeignKey("HikingTrails.id"), nullable=True, index=True)
    user_id = Column(String(32), ForeignKey("Users.id"), nullable=False)
    user_name = Column(String(255), nullable=False)
    user_email = Column(String(255), nullable=False)
    rating = Column(Integer, nullable=False)
    title = Column(String(100), nullable=False)
    comment = Column(String(500), nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    helpful = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
        CheckConstraint(
            "(tour_package_id IS NULL) <> (hiking_id IS NULL)", name="ck_reviews_one_target"
        ),
    )


class Booking(TargetRefMixin, Base):
    __tablename__ = "Bookings"
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("Users.id"), nullable=False, index=True)
    tour_package_id = Column(String(32), ForeignKey("TourPackages.id"), nullable=True)
    hiking_id = Column(String(32), ForeignKey("HikingTrails.id"), nullable=True)
    booking_number = Column(String(32), nullable=False, unique=True)

    # customer info
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False)
    nationality = Column(String(100), nullable=False)
    emergency_contact = Column(JSON, nullable=True)

    # travel info
    departure_date = Column(DateTime, nullable=False)
    return_date = Column(DateTime, nullable=False)
    number_of_travelers = Column(Integer, nullable=False)
    special_requests = Column(Text, nullable=False, default="")

    # payment info
    amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    payment_intent_id = Column(String(255), nullable=True)
    charge_id = Column(String(255), nullable=True)
    payment_status = Column(String(16), nullable=False, default="pending")
    payment_date = Column(DateTime, nullable=False, default=utcnow)

    booking_status = Column(String(16), nullable=False, default="pending")
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("departure_date < return_date", name="ck_bookings_dates"),
        CheckConstraint("number_of_travelers >= 1", name="ck_bookings_travelers"),
        CheckConstraint(
            "tour_package_id IS NULL OR hiking_id IS NULL", name="ck_bookings_one_target"
        ),
    )


class PaymentRequest(TargetRefMixin, Base):
    __tablename__ = "PaymentRequests"
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("Users.id"), nullable=True, index=True)
    user_email = Column(String(255), nullable=False)
    user_name = Column(String(255), nullable=False, default="")
    tour_package_id = Column(String(32), ForeignKey("TourPackages.id"), nullable=True)
    hiking_id = Column(String(32), ForeignKey("HikingTrails.id"), nullable=True)
    # Soft link: no cascade in either direction
    booking_id = Column(String(32), ForeignKey("Bookings.id"), nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    payment_method = Column(String(64), nullable=False, default="bank_transfer")
    transaction_id = Column(String(255), nullable=False, default="")
    proof_image_url = Column(String(512), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    booking = relationship("Booking")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_requests_amount"),
        CheckConstraint(
            "tour_package_id IS NULL OR hiking_id IS NULL", name="ck_payment_requests_one_target"
        ),
    )


class PaymentSetting(Base):
    __tablename__ = "PaymentSettings"
    id = Column(String(32), primary_key=True, default=new_id)
    qr_image_url = Column(String(512), nullable=False, default="")
    bank_name = Column(String(255), nullable=False, default="")
    account_name = Column(String(255), nullable=False, default="")
    account_number = Column(String(64), nullable=False, default="")
    iban = Column(String(64), nullable=False, default="")
    swift = Column(String(32), nullable=False, default="")
    instructions = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
