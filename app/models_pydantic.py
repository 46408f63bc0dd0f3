from typing import Optional, List, Literal, Union
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from utils import comma_string_to_list

# ---------- Target references ----------

class TourPackageRef(BaseModel):
    kind: Literal["package"] = "package"
    id: str

class HikingRef(BaseModel):
    kind: Literal["hiking"] = "hiking"
    id: str

# Variants are told apart by their literal `kind`
Target = Union[TourPackageRef, HikingRef]

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]
PaymentRequestStatus = Literal["pending", "approved", "rejected"]

# ---------- Users ----------

class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    password: str
    confirm_password: str

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    id: str
    username: str
    email: EmailStr
    full_name: Optional[str] = None
    role: str

    model_config = ConfigDict(from_attributes=True)

# ---------- Catalog ----------

class GalleryItem(BaseModel):
    url: str
    caption: str = ""
    alt: str = ""

class TourPackageResponse(BaseModel):
    id: str
    title: str
    description: str
    location: Optional[str] = None
    duration: Optional[str] = None
    image_url: str = ""
    gallery: List[GalleryItem] = []
    stars: int
    reviews: int = 0
    price: float
    max_group_size: Optional[int] = None
    highlights: List[str] = []
    featured: bool

    model_config = ConfigDict(from_attributes=True)

    @field_validator("highlights", mode="before")
    @classmethod
    def split_highlights(cls, v):
        return comma_string_to_list(v) if not isinstance(v, list) else v

class HikingTrailResponse(BaseModel):
    id: str
    title: str
    description: str
    location: str
    duration: Optional[str] = None
    image_url: Optional[str] = ""
    gallery: List[GalleryItem] = []
    stars: Optional[int] = None
    reviews: Optional[int] = 0
    price: Optional[float] = 0
    difficulty: str
    activity: str
    distance: Optional[str] = None
    elevation: Optional[str] = None
    best_time: Optional[str] = None
    features: List[str] = []
    featured: bool

    model_config = ConfigDict(from_attributes=True)

    @field_validator("features", mode="before")
    @classmethod
    def split_features(cls, v):
        return comma_string_to_list(v) if not isinstance(v, list) else v

class TargetView(BaseModel):
    """Package-shaped view of either catalog entry."""
    id: str
    title: str
    description: str
    location: Optional[str] = None
    duration: Optional[str] = None
    image_url: str = ""
    gallery: List[GalleryItem] = []
    stars: int
    reviews: int
    price: float
    featured: bool
    is_hiking: bool = False

class RelatedTarget(BaseModel):
    id: str
    title: str
    location: Optional[str] = None
    price: float
    image_url: str = ""
    featured: bool
    stars: int

class TargetSummary(BaseModel):
    target: Target
    title: str
    location: Optional[str] = None
    image_url: str = ""
    price: float

# ---------- Reviews ----------

class ReviewCreate(BaseModel):
    tour_package_id: Optional[str] = None
    hiking_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    rating: Optional[int] = None
    title: Optional[str] = None
    comment: Optional[str] = None

class ReviewResponse(BaseModel):
    id: str
    target: Target
    user_id: str
    user_name: str
    user_email: str
    rating: int
    title: str
    comment: str
    verified: bool
    helpful: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class TargetDetailResponse(BaseModel):
    target: TargetView
    related: List[RelatedTarget]
    reviews: List[ReviewResponse]

# ---------- Bookings ----------

class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None

class CustomerInfo(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    nationality: str = Field(..., min_length=1, max_length=100)
    emergency_contact: Optional[EmergencyContact] = None

class TravelInfoCreate(BaseModel):
    # Dates stay raw here; bookings.parse_travel_dates owns the parsing rules
    departure_date: str
    return_date: str
    number_of_travelers: int = Field(..., ge=1)
    special_requests: str = ""

class PaymentInfoCreate(BaseModel):
    amount: float = Field(..., ge=0)
    currency: str = "USD"
    payment_intent_id: Optional[str] = None
    charge_id: Optional[str] = None

class BookingCreate(BaseModel):
    tour_package_id: Optional[str] = None
    hiking_id: Optional[str] = None
    customer_info: Optional[CustomerInfo] = None
    travel_info: Optional[TravelInfoCreate] = None
    payment_info: Optional[PaymentInfoCreate] = None

class TravelInfoResponse(BaseModel):
    departure_date: datetime
    return_date: datetime
    number_of_travelers: int
    special_requests: str

class PaymentInfoResponse(BaseModel):
    amount: float
    currency: str
    payment_intent_id: Optional[str] = None
    charge_id: Optional[str] = None
    payment_status: PaymentStatus
    payment_date: datetime

class BookingResponse(BaseModel):
    id: str
    booking_number: str
    user_id: str
    target: Optional[Target] = None
    target_detail: Optional[TargetSummary] = None
    customer_info: CustomerInfo
    travel_info: TravelInfoResponse
    payment_info: PaymentInfoResponse
    booking_status: BookingStatus
    notes: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, b, target_detail=None):
        return cls(
            id=b.id,
            booking_number=b.booking_number,
            user_id=b.user_id,
            target=b.target,
            target_detail=target_detail,
            customer_info=CustomerInfo(
                first_name=b.first_name,
                last_name=b.last_name,
                email=b.email,
                phone=b.phone,
                nationality=b.nationality,
                emergency_contact=b.emergency_contact
            ),
            travel_info=TravelInfoResponse(
                departure_date=b.departure_date,
                return_date=b.return_date,
                number_of_travelers=b.number_of_travelers,
                special_requests=b.special_requests
            ),
            payment_info=PaymentInfoResponse(
                amount=b.amount,
                currency=b.currency,
                payment_intent_id=b.payment_intent_id,
                charge_id=b.charge_id,
                payment_status=b.payment_status,
                payment_date=b.payment_date
            ),
            booking_status=b.booking_status,
            notes=b.notes,
            created_at=b.created_at,
            updated_at=b.updated_at
        )

# ---------- Manual payments ----------

class ManualPaymentSubmission(BaseModel):
    tour_package_id: Optional[str] = None
    hiking_id: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    currency: str = "USD"
    payment_method: str = "bank_transfer"
    transaction_id: str = ""
    notes: str = ""
    customer_info: Optional[CustomerInfo] = None
    travel_info: Optional[TravelInfoCreate] = None

class ManualPaymentResponse(BaseModel):
    success: bool = True
    request_id: str
    booking_id: Optional[str] = None

class PaymentRequestResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    user_email: str
    user_name: str
    target: Optional[Target] = None
    booking_id: Optional[str] = None
    amount: float
    currency: str
    payment_method: str
    transaction_id: str
    proof_image_url: str
    notes: str
    status: PaymentRequestStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class PaymentSettingResponse(BaseModel):
    qr_image_url: str = ""
    bank_name: str = ""
    account_name: str = ""
    account_number: str = ""
    iban: str = ""
    swift: str = ""
    instructions: str = ""

    model_config = ConfigDict(from_attributes=True)
