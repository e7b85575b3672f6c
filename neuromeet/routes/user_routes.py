import logging
import re
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from neuromeet.auth import jwt_handler
from neuromeet.auth.dependencies import get_current_user, get_current_user_any_status, require_admin
from neuromeet.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from neuromeet.core.schemas import CamelModel
from neuromeet.database import get_db
from neuromeet.models.user import User
from neuromeet.routes.common import database_unavailable, ensure_database_ready

logger = logging.getLogger(__name__)

router = APIRouter(tags=['users'])

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PENDING_MESSAGE = 'Your account is awaiting approval. Some features are unavailable until an administrator approves it.'


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError('Please enter a valid email address.')
    return normalized


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class RegisterCustomerRequest(CamelModel):
    name: str
    email: str
    password: str
    phone: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
        return value


class RegisterTherapistRequest(RegisterCustomerRequest):
    specialty: str | None = None
    license_number: str | None = None
    education_background: str | None = None
    years_of_experience: int | None = Field(default=None, ge=0)
    bio: str | None = None
    session_fee: float | None = Field(default=None, ge=0)


class UpdateProfileRequest(CamelModel):
    name: str | None = None
    phone: str | None = None
    specialty: str | None = None
    license_number: str | None = None
    education_background: str | None = None
    years_of_experience: int | None = Field(default=None, ge=0)
    bio: str | None = None
    session_fee: float | None = Field(default=None, ge=0)


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str
    status: str
    phone: str | None = None
    created_at: datetime | None = None
    last_login: datetime | None = None
    specialty: str | None = None
    license_number: str | None = None
    education_background: str | None = None
    years_of_experience: int | None = None
    bio: str | None = None
    session_fee: float | None = None


class AuthResponse(UserResponse):
    token: str
    is_pending: bool = False
    message: str | None = None


class TherapistSummary(CamelModel):
    id: int
    name: str
    email: str
    status: str
    phone: str | None = None
    specialty: str | None = None
    license_number: str | None = None
    years_of_experience: int | None = None
    session_fee: float | None = None


class ModerationResponse(CamelModel):
    message: str
    therapist: TherapistSummary


THERAPIST_FIELDS = (
    'specialty',
    'license_number',
    'education_background',
    'years_of_experience',
    'bio',
    'session_fee',
)


def serialize_user(user: User) -> UserResponse:
    response = UserResponse.model_validate(user)
    if not user.is_therapist:
        response = response.model_copy(update={field: None for field in THERAPIST_FIELDS})
    return response


def build_auth_response(user: User, message: str | None = None) -> AuthResponse:
    is_pending = user.is_therapist and user.status == 'pending'
    return AuthResponse(
        **serialize_user(user).model_dump(),
        token=jwt_handler.create_access_token(user.id),
        is_pending=is_pending,
        message=message or (PENDING_MESSAGE if is_pending else None),
    )


def _register(db: Session, user: User) -> User:
    if db.query(User).filter(User.email == user.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='A user with this email address already exists.',
        )

    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info('Registered %s %s (id=%s)', user.role, user.email, user.id)
    return user


@router.post('/login', response_model=AuthResponse, response_model_exclude_none=True)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        user = db.query(User).filter(User.email == data.email).first()
        if user is None or not verify_password(data.password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail='Invalid email or password.',
            )

        user.last_login = datetime.now()
        db.commit()
        db.refresh(user)
        return build_auth_response(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.post(
    '/register-customer',
    response_model=AuthResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register_customer(data: RegisterCustomerRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        user = _register(
            db,
            User(
                name=data.name,
                email=data.email,
                hashed_password=hash_password(data.password),
                phone=data.phone,
                role='customer',
                status='active',
            ),
        )
        return build_auth_response(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.post(
    '/register-therapist',
    response_model=AuthResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register_therapist(data: RegisterTherapistRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        user = _register(
            db,
            User(
                name=data.name,
                email=data.email,
                hashed_password=hash_password(data.password),
                phone=data.phone,
                role='therapist',
                status='pending',
                specialty=data.specialty,
                license_number=data.license_number,
                education_background=data.education_background,
                years_of_experience=data.years_of_experience,
                bio=data.bio,
                session_fee=data.session_fee,
            ),
        )
        return build_auth_response(
            user,
            message='Your therapist registration was received and is awaiting administrator approval.',
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/profile', response_model=UserResponse, response_model_exclude_none=True)
def get_profile(current_user: User = Depends(get_current_user_any_status)):
    return serialize_user(current_user)


@router.put('/profile', response_model=UserResponse, response_model_exclude_none=True)
def update_profile(
    data: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = data.model_dump(exclude_unset=True)
    if 'name' in changes and not (changes['name'] or '').strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Name cannot be empty.')

    if not current_user.is_therapist:
        changes = {key: value for key, value in changes.items() if key not in THERAPIST_FIELDS}

    try:
        user = db.get(User, current_user.id)
        for field, value in changes.items():
            setattr(user, field, value.strip() if isinstance(value, str) else value)
        db.commit()
        db.refresh(user)
        return serialize_user(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('', response_model=list[UserResponse], response_model_exclude_none=True)
def list_users(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return [serialize_user(user) for user in db.query(User).order_by(User.id.asc()).all()]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/pending-therapists', response_model=list[TherapistSummary])
def list_pending_therapists(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return db.query(User).filter(
            User.role == 'therapist',
            User.status == 'pending',
        ).order_by(User.created_at.asc(), User.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


def _moderate(user_id: int, new_status: str, message: str, db: Session) -> ModerationResponse:
    try:
        therapist = db.query(User).filter(
            User.id == user_id,
            User.role == 'therapist',
            User.status == 'pending',
        ).first()

        if therapist is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Pending therapist not found.',
            )

        therapist.status = new_status
        db.commit()
        db.refresh(therapist)
        logger.info('Therapist %s moved to %s', therapist.id, new_status)
        return ModerationResponse(message=message, therapist=TherapistSummary.model_validate(therapist))
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.post('/{user_id}/approve', response_model=ModerationResponse)
def approve_therapist(user_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _moderate(user_id, 'active', 'Therapist approved.', db)


@router.post('/{user_id}/reject', response_model=ModerationResponse)
def reject_therapist(user_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _moderate(user_id, 'inactive', 'Therapist application rejected.', db)
