import uuid

import pytest

from fee_engine.auth.schemas import CurrentUser
from fee_engine.auth.security import InvalidTokenError, create_access_token, decode_access_token


def test_round_trip_claims() -> None:
    tenant_id, user_id = uuid.uuid4(), uuid.uuid4()
    token = create_access_token(
        subject={
            "user_id": str(user_id),
            "tenant_id": str(tenant_id),
            "role": "ACCOUNTANT",
            "permissions": {"fees": {"read": True}},
        }
    )
    claims = decode_access_token(token)
    assert claims.user_id == user_id
    assert claims.tenant_id == tenant_id
    assert claims.permissions == {"fees": {"read": True}}


def test_sub_is_accepted_as_user_id() -> None:
    user_id = uuid.uuid4()
    token = create_access_token(subject={"sub": str(user_id), "tenant_id": str(uuid.uuid4()), "role": "ADMIN"})
    assert decode_access_token(token).user_id == user_id


@pytest.mark.parametrize(
    "subject",
    [
        {"user_id": str(uuid.uuid4()), "role": "ADMIN"},
        {"user_id": str(uuid.uuid4()), "tenant_id": "not-a-uuid", "role": "ADMIN"},
        {"tenant_id": str(uuid.uuid4()), "role": "ADMIN"},
        {"user_id": str(uuid.uuid4()), "tenant_id": str(uuid.uuid4()), "role": ""},
    ],
)
def test_incomplete_claims_are_rejected(subject: dict) -> None:
    with pytest.raises(InvalidTokenError):
        decode_access_token(create_access_token(subject=subject))


def test_expired_token_is_rejected() -> None:
    token = create_access_token(
        subject={"user_id": str(uuid.uuid4()), "tenant_id": str(uuid.uuid4()), "role": "ADMIN"},
        expires_minutes=-1,
    )
    with pytest.raises(InvalidTokenError):
        decode_access_token(token)


def test_permission_checks() -> None:
    user = CurrentUser(id=uuid.uuid4(), tenant_id=uuid.uuid4(), role="ACCOUNTANT", permissions={"fees": {"read": True}})
    assert user.can("fees", "read")
    assert not user.can("fees", "update")
    assert not user.can("scholarships", "read")
    admin = user.model_copy(update={"role": "SUPER_ADMIN", "permissions": {}})
    assert admin.can("scholarships", "delete")
