import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from braidbook.auth import jwt_handler
from braidbook.auth.dependencies import get_current_admin, get_current_provider, get_token_payload


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_token_round_trip_carries_subject_and_role() -> None:
    token = jwt_handler.create_access_token('ana@braids.pt', role=jwt_handler.ADMIN_ROLE)

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'ana@braids.pt'
    assert payload['role'] == 'admin'


def test_get_token_payload_rejects_garbage() -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_token_payload(_credentials('not-a-jwt'))

    assert exception_info.value.status_code == 401


def test_get_current_provider_resolves_by_email(db, provider) -> None:
    assert get_current_provider(payload={'sub': 'ANA@braids.pt'}, db=db).id == provider.id


def test_get_current_provider_rejects_unknown_subject(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(payload={'sub': 'ghost@braids.pt'}, db=db)

    assert exception_info.value.status_code == 401


def test_get_current_provider_requires_subject(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(payload={}, db=db)

    assert exception_info.value.detail == 'Invalid token subject'


def test_get_current_provider_rejects_deactivated(db, seed) -> None:
    seed.provider(db, email='gone@braids.pt', is_active=False)

    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(payload={'sub': 'gone@braids.pt'}, db=db)

    assert exception_info.value.status_code == 403


def test_get_current_admin_requires_admin_role() -> None:
    assert get_current_admin(payload={'sub': 'ops@braids.pt', 'role': 'admin'})['role'] == 'admin'

    with pytest.raises(HTTPException) as exception_info:
        get_current_admin(payload={'sub': 'ana@braids.pt', 'role': 'provider'})

    assert exception_info.value.status_code == 403
