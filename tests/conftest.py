import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from neuromeet.auth.passwords import hash_password  # noqa: E402
from neuromeet.database import Base  # noqa: E402
from neuromeet.models.availability import Availability  # noqa: E402
from neuromeet.models.booking import Booking  # noqa: E402,F401
from neuromeet.models.favorite import Favorite  # noqa: E402,F401
from neuromeet.models.rating import Rating  # noqa: E402,F401
from neuromeet.models.user import User  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def _make_user(role: str = 'customer', status: str = 'active', password: str = 'secret123', **fields) -> User:
        counter['value'] += 1
        user = User(
            name=fields.pop('name', f'{role.title()} {counter["value"]}'),
            email=fields.pop('email', f'{role}{counter["value"]}@example.com'),
            hashed_password=hash_password(password),
            role=role,
            status=status,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_slot(db):
    def _make_slot(
        therapist: User,
        day_of_week: str = 'monday',
        start: time = time(9, 0),
        end: time = time(10, 0),
        is_available: bool = True,
    ) -> Availability:
        slot = Availability(
            user_id=therapist.id,
            day_of_week=day_of_week,
            is_weekday=day_of_week not in ('saturday', 'sunday'),
            start_time=start,
            end_time=end,
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return _make_slot
