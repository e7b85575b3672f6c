import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from neuromeet.auth.dependencies import get_current_user
from neuromeet.core.schemas import CamelModel
from neuromeet.database import get_db
from neuromeet.models.favorite import Favorite
from neuromeet.models.user import User
from neuromeet.routes.common import database_unavailable, forbid_unless_self_or_admin
from neuromeet.routes.therapist_routes import TherapistResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=['favorites'])

ALREADY_FAVORITE_DETAIL = 'This therapist is already in your favorites.'


class AddFavoriteRequest(CamelModel):
    therapist_id: int


class FavoriteResponse(CamelModel):
    id: int
    user_id: int
    therapist_id: int
    created_at: datetime | None = None


class FavoriteTherapistResponse(CamelModel):
    id: int
    therapist_id: int
    created_at: datetime | None = None
    therapist: TherapistResponse


class FavoriteCountResponse(CamelModel):
    count: int


def forbid_unless_self(current_user: User, user_id: int) -> None:
    if current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You can only change your own favorites.',
        )


def get_therapist_or_404(therapist_id: int, db: Session) -> User:
    therapist = db.get(User, therapist_id)
    if therapist is None or not therapist.is_therapist:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Therapist not found.')
    return therapist


@router.post('/users/{user_id}/favorite', response_model=FavoriteResponse, status_code=status.HTTP_201_CREATED)
def add_favorite(
    user_id: int,
    data: AddFavoriteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    forbid_unless_self(current_user, user_id)

    try:
        get_therapist_or_404(data.therapist_id, db)

        existing = db.query(Favorite.id).filter(
            Favorite.user_id == user_id,
            Favorite.therapist_id == data.therapist_id,
        ).first()
        if existing:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ALREADY_FAVORITE_DETAIL)

        favorite = Favorite(user_id=user_id, therapist_id=data.therapist_id)
        db.add(favorite)
        db.commit()
        db.refresh(favorite)
        logger.info('User %s added therapist %s to favorites', user_id, data.therapist_id)
        return favorite
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ALREADY_FAVORITE_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/users/{user_id}/favorite/{therapist_id}')
def remove_favorite(
    user_id: int,
    therapist_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    forbid_unless_self(current_user, user_id)

    try:
        favorite = db.query(Favorite).filter(
            Favorite.user_id == user_id,
            Favorite.therapist_id == therapist_id,
        ).first()
        if favorite is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Favorite not found.')

        db.delete(favorite)
        db.commit()
        return {'message': 'Therapist removed from favorites.'}
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/users/{user_id}/favorites', response_model=list[FavoriteTherapistResponse])
def list_favorites(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    forbid_unless_self_or_admin(current_user, user_id)

    try:
        rows = db.query(Favorite, User).join(
            User, User.id == Favorite.therapist_id,
        ).filter(
            Favorite.user_id == user_id,
        ).order_by(Favorite.created_at.desc(), Favorite.id.desc()).all()

        return [
            FavoriteTherapistResponse(
                id=favorite.id,
                therapist_id=favorite.therapist_id,
                created_at=favorite.created_at,
                therapist=TherapistResponse.model_validate(therapist),
            )
            for favorite, therapist in rows
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/therapists/{therapist_id}/favorites/count', response_model=FavoriteCountResponse)
def count_favorites(therapist_id: int, db: Session = Depends(get_db)):
    try:
        get_therapist_or_404(therapist_id, db)
        count = db.query(func.count(Favorite.id)).filter(Favorite.therapist_id == therapist_id).scalar()
        return FavoriteCountResponse(count=count or 0)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc
