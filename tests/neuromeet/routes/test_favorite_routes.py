import pytest
from fastapi import HTTPException

from neuromeet.models.favorite import Favorite
from neuromeet.routes.favorite_routes import (
    AddFavoriteRequest,
    add_favorite,
    count_favorites,
    list_favorites,
    remove_favorite,
)


@pytest.fixture
def people(make_user):
    return make_user(), make_user(role='therapist', name='Dr. Grace', specialty='Anxiety')


def test_add_and_list_favorites(db, people) -> None:
    customer, therapist = people

    favorite = add_favorite(customer.id, AddFavoriteRequest(therapist_id=therapist.id), current_user=customer, db=db)

    assert favorite.user_id == customer.id
    favorites = list_favorites(customer.id, current_user=customer, db=db)
    assert [item.therapist.name for item in favorites] == ['Dr. Grace']
    assert favorites[0].therapist_id == therapist.id


def test_add_favorite_rejects_duplicates(db, people) -> None:
    customer, therapist = people
    add_favorite(customer.id, AddFavoriteRequest(therapist_id=therapist.id), current_user=customer, db=db)

    with pytest.raises(HTTPException) as exception_info:
        add_favorite(customer.id, AddFavoriteRequest(therapist_id=therapist.id), current_user=customer, db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'This therapist is already in your favorites.'
    assert db.query(Favorite).count() == 1


def test_add_favorite_requires_a_therapist(db, people, make_user) -> None:
    customer, _ = people

    with pytest.raises(HTTPException) as exception_info:
        add_favorite(customer.id, AddFavoriteRequest(therapist_id=make_user().id), current_user=customer, db=db)

    assert exception_info.value.status_code == 404


def test_favorites_belong_to_their_owner(db, people, make_user) -> None:
    customer, therapist = people
    stranger = make_user()
    admin = make_user(role='admin')
    add_favorite(customer.id, AddFavoriteRequest(therapist_id=therapist.id), current_user=customer, db=db)

    with pytest.raises(HTTPException) as adding:
        add_favorite(customer.id, AddFavoriteRequest(therapist_id=therapist.id), current_user=stranger, db=db)
    assert adding.value.status_code == 403

    with pytest.raises(HTTPException) as listing:
        list_favorites(customer.id, current_user=stranger, db=db)
    assert listing.value.status_code == 403

    assert len(list_favorites(customer.id, current_user=admin, db=db)) == 1


def test_remove_favorite_and_count(db, people, make_user) -> None:
    customer, therapist = people
    other = make_user()
    add_favorite(customer.id, AddFavoriteRequest(therapist_id=therapist.id), current_user=customer, db=db)
    add_favorite(other.id, AddFavoriteRequest(therapist_id=therapist.id), current_user=other, db=db)

    assert count_favorites(therapist.id, db=db).count == 2

    assert remove_favorite(customer.id, therapist.id, current_user=customer, db=db) == {
        'message': 'Therapist removed from favorites.'
    }
    assert count_favorites(therapist.id, db=db).count == 1

    with pytest.raises(HTTPException) as missing:
        remove_favorite(customer.id, therapist.id, current_user=customer, db=db)
    assert missing.value.status_code == 404


def test_count_favorites_rejects_non_therapists(db, people) -> None:
    customer, _ = people

    with pytest.raises(HTTPException) as exception_info:
        count_favorites(customer.id, db=db)

    assert exception_info.value.status_code == 404
