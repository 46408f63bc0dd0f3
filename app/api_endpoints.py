import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from starlette.middleware.sessions import SessionMiddleware

import bookings
import errors
import models_sqlalchemy as models
import models_pydantic as schemas
import payments
import reviews
import targets
import uploads
import users
from config import Settings, get_settings

settings = get_settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    models.Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret, same_site="lax")

# Payment screenshots are served from the shared upload directory
app.mount(
    settings.upload_url_prefix,
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)


@app.exception_handler(errors.TourismError)
def handle_tourism_error(request: Request, exc: errors.TourismError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Dependency to get a DB session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> models.User:
    user_id = request.session.get("user_id")
    if user_id is None:
        raise errors.Unauthorized()
    user = users.get_user(db, user_id)
    if user is None:
        request.session.clear()
        raise errors.Unauthorized()
    return user


# ---------- Auth Endpoints ----------
@app.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.UserCreate, request: Request, db: Session = Depends(get_db)):
    user = users.register_user(db, payload)
    request.session["user_id"] = user.id
    return user

@app.post("/login", response_model=schemas.UserResponse)
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    user = users.authenticate(db, payload.email, payload.password)
    request.session["user_id"] = user.id
    return user

@app.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(request: Request):
    request.session.clear()
    return

@app.get("/users/me", response_model=schemas.UserResponse)
def read_current_user(user: models.User = Depends(get_current_user)):
    return user


# ---------- Catalog Endpoints ----------
@app.get("/tour-packages/", response_model=List[schemas.TourPackageResponse])
def list_tour_packages(limit: Optional[int] = Query(None, ge=1), db: Session = Depends(get_db)):
    query = (
        db.query(models.TourPackage)
        .filter(models.TourPackage.active.is_(True))
        .order_by(models.TourPackage.featured.desc(), models.TourPackage.created_at.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()

@app.get("/hiking/", response_model=List[schemas.HikingTrailResponse])
def list_hiking_trails(location: Optional[str] = None, activity: Optional[str] = None,
                       db: Session = Depends(get_db)):
    query = db.query(models.HikingTrail).filter(models.HikingTrail.active.is_(True))
    if location and location.strip():
        query = query.filter(models.HikingTrail.location.ilike(f"%{location.strip()}%"))
    if activity and activity.strip():
        query = query.filter(models.HikingTrail.activity == activity.strip())
    trails = query.order_by(models.HikingTrail.featured.desc(), models.HikingTrail.created_at.desc()).all()
    logger.info("Found %d hiking trails matching location=%r activity=%r", len(trails), location, activity)
    return trails

@app.get("/targets/{target_id}", response_model=schemas.TargetDetailResponse)
def get_target(target_id: str, db: Session = Depends(get_db)):
    resolved = targets.resolve_target(db, target_id)
    return schemas.TargetDetailResponse(
        target=resolved.view,
        related=targets.related_targets(db, resolved),
        reviews=[
            schemas.ReviewResponse.model_validate(r)
            for r in reviews.list_reviews(db, target_id, limit=10)
        ]
    )


# ---------- Review Endpoints ----------
@app.post("/reviews/", response_model=schemas.ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(payload: schemas.ReviewCreate, user: models.User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    return reviews.create_review(db, user, payload)

@app.get("/reviews/{target_id}", response_model=List[schemas.ReviewResponse])
def list_reviews(target_id: str, db: Session = Depends(get_db)):
    return reviews.list_reviews(db, target_id)


# ---------- Booking Endpoints ----------
@app.post("/bookings/", response_model=schemas.BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(payload: schemas.BookingCreate, user: models.User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    booking, summary = bookings.create_booking(db, user, payload)
    return schemas.BookingResponse.from_record(booking, summary)

@app.get("/bookings/", response_model=List[schemas.BookingResponse])
def list_bookings(since: Optional[datetime] = None, user: models.User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    return [
        schemas.BookingResponse.from_record(b, targets.target_summary(db, b.target))
        for b in bookings.list_bookings(db, user, since)
    ]

@app.get("/bookings/{booking_id}", response_model=schemas.BookingResponse)
def get_booking(booking_id: str, user: models.User = Depends(get_current_user),
                db: Session = Depends(get_db)):
    b = bookings.get_booking(db, user, booking_id)
    return schemas.BookingResponse.from_record(b, targets.target_summary(db, b.target))


# ---------- Payment Endpoints ----------
@app.post("/manual-payment", response_model=schemas.ManualPaymentResponse, status_code=status.HTTP_201_CREATED)
def submit_manual_payment(
    tour_package_id: Optional[str] = Form(None),
    hiking_id: Optional[str] = Form(None),
    amount: Optional[str] = Form(None),
    currency: str = Form("USD"),
    payment_method: str = Form("bank_transfer"),
    transaction_id: str = Form(""),
    notes: str = Form(""),
    customer_info: Optional[str] = Form(None),
    travel_info: Optional[str] = Form(None),
    payment_screenshot: Optional[UploadFile] = File(None),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_settings),
):
    submission = payments.build_submission(
        tour_package_id=tour_package_id or None,
        hiking_id=hiking_id or None,
        amount=amount or None,
        currency=currency,
        payment_method=payment_method,
        transaction_id=transaction_id,
        notes=notes,
        customer_info=payments.parse_form_section("customer_info", customer_info, schemas.CustomerInfo),
        travel_info=payments.parse_form_section("travel_info", travel_info, schemas.TravelInfoCreate),
    )
    save_proof = None
    if payment_screenshot is not None and payment_screenshot.filename:
        def save_proof():
            return uploads.save_proof_image(payment_screenshot, app_settings)

    def discard_proof(public_path):
        uploads.delete_proof_image(public_path, app_settings)

    request, booking = payments.submit_manual_payment(db, user, submission, save_proof, discard_proof)
    return schemas.ManualPaymentResponse(
        request_id=request.id,
        booking_id=booking.id if booking is not None else None
    )

@app.get("/payment-requests/", response_model=List[schemas.PaymentRequestResponse])
def list_payment_requests(since: Optional[datetime] = None, user: models.User = Depends(get_current_user),
                          db: Session = Depends(get_db)):
    return payments.list_payment_requests(db, user, since)

@app.get("/payment-settings", response_model=schemas.PaymentSettingResponse)
def get_payment_settings(db: Session = Depends(get_db)):
    return payments.get_payment_settings(db)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
