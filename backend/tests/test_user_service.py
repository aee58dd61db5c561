import pytest

from mango.core.exceptions import DuplicateEmailError, InvalidCredentialsError
from mango.core.security import decode_access_token, verify_password
from mango.models.security import RefreshToken
from mango.models.user import Role, User
from mango.schemas.user import LoginRequest, RegisterRequest
from mango.services.token_service import TokenService
from mango.services.user_service import UserService


@pytest.fixture
def service(clock):
    return UserService(tokens=TokenService(clock=clock), clock=clock)


def _register(service, db, email="a@x.com", password="Passw0rd!"):
    return service.register(
        db,
        RegisterRequest(email=email, password=password, name="Ann", phone_number="+15551234567"),
    )


def test_register_creates_one_user_and_one_refresh_token(service, db):
    result = _register(service, db)

    users = db.query(User).all()
    tokens = db.query(RefreshToken).all()
    assert len(users) == 1
    assert len(tokens) == 1

    user = users[0]
    assert result.user_id == user.id
    assert result.email == "a@x.com"
    assert result.name == "Ann"
    assert result.token and result.refresh_token
    assert user.role == Role.CUSTOMER
    assert user.is_active is True
    assert user.email_confirmed is False
    assert user.phone_number == "+15551234567"
    assert tokens[0].token == result.refresh_token
    assert tokens[0].user_id == user.id


def test_register_stores_salted_hash_not_password(service, db):
    _register(service, db)
    user = db.query(User).one()
    assert "Passw0rd!" not in user.password_hash
    assert user.salt
    assert user.password_hash.endswith("." + user.salt)
    assert verify_password("Passw0rd!", user.password_hash, user.salt)


def test_register_duplicate_email_conflicts(service, db):
    _register(service, db)
    with pytest.raises(DuplicateEmailError) as exc_info:
        _register(service, db, password="Another1!")
    assert exc_info.value.status_code == 409
    assert db.query(User).count() == 1
    assert db.query(RefreshToken).count() == 1


def test_register_conflict_at_the_unique_constraint(service, db, monkeypatch):
    _register(service, db)
    # the existence check ran before the other registration committed
    monkeypatch.setattr(service, "get_user_by_email", lambda session, email: None)

    with pytest.raises(DuplicateEmailError) as exc_info:
        _register(service, db, password="Another1!")
    assert exc_info.value.status_code == 409
    assert db.query(User).count() == 1


def test_email_uniqueness_is_exact_match(service, db):
    _register(service, db, email="a@x.com")
    _register(service, db, email="A@x.com")
    assert db.query(User).count() == 2


def test_register_then_login_returns_same_user(service, db):
    registered = _register(service, db)
    logged_in = service.login(db, LoginRequest(email="a@x.com", password="Passw0rd!"))

    assert logged_in.user_id == registered.user_id
    assert logged_in.token
    assert logged_in.refresh_token
    assert logged_in.refresh_token != registered.refresh_token


def test_login_with_wrong_password_is_unauthorized(service, db):
    _register(service, db)
    with pytest.raises(InvalidCredentialsError) as exc_info:
        service.login(db, LoginRequest(email="a@x.com", password="wrong"))
    assert exc_info.value.status_code == 401


def test_login_failures_are_indistinguishable(service, db):
    _register(service, db)
    _register(service, db, email="inactive@x.com")
    inactive = service.get_user_by_email(db, "inactive@x.com")
    inactive.is_active = False
    db.commit()

    messages = set()
    for email, password in [
        ("nobody@x.com", "Passw0rd!"),
        ("a@x.com", "wrong"),
        ("inactive@x.com", "Passw0rd!"),
    ]:
        with pytest.raises(InvalidCredentialsError) as exc_info:
            service.login(db, LoginRequest(email=email, password=password))
        messages.add((type(exc_info.value), exc_info.value.message, exc_info.value.status_code))

    assert len(messages) == 1


def test_login_keeps_existing_sessions_live(service, db):
    _register(service, db)
    service.login(db, LoginRequest(email="a@x.com", password="Passw0rd!"))
    service.login(db, LoginRequest(email="a@x.com", password="Passw0rd!"))

    tokens = db.query(RefreshToken).all()
    assert len(tokens) == 3
    assert not any(t.is_used or t.is_revoked for t in tokens)


def test_access_token_carries_identity_claims(service, db):
    result = _register(service, db)
    payload = decode_access_token(result.token)
    stored = db.query(RefreshToken).one()

    assert payload["sub"] == result.user_id
    assert payload["email"] == "a@x.com"
    assert payload["role"] == Role.CUSTOMER
    assert payload["name"] == "Ann"
    assert payload["jti"] == stored.jwt_id
