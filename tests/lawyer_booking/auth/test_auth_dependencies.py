import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from lawyer_booking.auth.actor import Actor, ActorRole
from lawyer_booking.auth.dependencies import get_current_actor, require_role
from lawyer_booking.auth.jwt_handler import create_access_token, decode_access_token
from lawyer_booking.models.user import User


@pytest.fixture
def users_db(db_session):
    db_session.add_all([
        User(id=1, email='lawyer@firm.test', role='professional'),
        User(id=100, email='client@mail.test', role=' Client '),
        User(id=200, email='intern@firm.test', role='intern'),
    ])
    db_session.commit()
    return db_session


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trip() -> None:
    payload = decode_access_token(create_access_token(42, 'client'))

    assert payload['sub'] == '42'
    assert payload['role'] == 'client'


def test_get_current_actor_resolves_user_role(users_db) -> None:
    professional = get_current_actor(credentials=_bearer(create_access_token(1, 'professional')), db=users_db)
    client = get_current_actor(credentials=_bearer(create_access_token(100, 'client')), db=users_db)

    assert professional == Actor(id=1, role=ActorRole.PROFESSIONAL)
    assert client == Actor(id=100, role=ActorRole.CLIENT)


@pytest.mark.parametrize(
    ('token', 'status_code', 'detail'),
    [
        ('not-a-jwt', 401, 'Invalid token'),
        (create_access_token('someone@mail.test', 'client'), 401, 'Invalid token subject'),
        (create_access_token(999, 'client'), 401, 'User not found'),
        (create_access_token(200, 'client'), 403, 'Unknown user role'),
    ],
)
def test_get_current_actor_rejects_bad_credentials(users_db, token: str, status_code: int, detail: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_actor(credentials=_bearer(token), db=users_db)

    assert exception_info.value.status_code == status_code
    assert exception_info.value.detail == detail


def test_require_role_allows_listed_roles() -> None:
    actor = Actor(id=1, role=ActorRole.PROFESSIONAL)

    assert require_role(ActorRole.PROFESSIONAL, ActorRole.ADMIN)(actor=actor) is actor


def test_require_role_rejects_other_roles() -> None:
    with pytest.raises(HTTPException) as exception_info:
        require_role(ActorRole.PROFESSIONAL)(actor=Actor(id=100, role=ActorRole.CLIENT))

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'You are not allowed to perform this action.'
