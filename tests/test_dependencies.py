from datetime import datetime, timedelta, timezone

from fastapi import status
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from app.config import settings
from app.dependencies import AdminPrincipal, get_token_principal_optional


def _encode(claims: dict) -> str:
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_token_principal_success():
    """A valid token yields its subject and role."""
    token = _encode(
        {"sub": "admin-7", "role": "admin", "exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    )
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)

    principal = get_token_principal_optional(credentials)
    assert principal == AdminPrincipal(subject="admin-7", role="admin")


def test_token_principal_optional_none():
    """No credentials means no principal."""
    assert get_token_principal_optional(None) is None


def test_token_principal_optional_invalid_token():
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="invalid_token")
    assert get_token_principal_optional(credentials) is None


def test_token_principal_rejects_refresh_tokens():
    token = _encode(
        {
            "sub": "admin-7",
            "role": "admin",
            "type": "refresh",
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        }
    )
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
    assert get_token_principal_optional(credentials) is None


def test_token_principal_requires_subject():
    token = _encode({"role": "admin", "exp": datetime.now(timezone.utc) + timedelta(hours=1)})
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
    assert get_token_principal_optional(credentials) is None


def test_admin_endpoint_without_token(client):
    """Test admin endpoint without token."""
    response = client.get("/api/admin/cards")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert "authenticated" in response.json()["detail"].lower()
    assert response.headers["www-authenticate"] == "Bearer"


def test_admin_endpoint_invalid_token(client):
    response = client.get(
        "/api/admin/cards",
        headers={"Authorization": "Bearer invalid_token_here"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_admin_endpoint_expired_token(client):
    """Test admin endpoint with expired token."""
    expired_token = _encode(
        {
            "sub": "admin-1",
            "role": "admin",
            "exp": datetime.now(timezone.utc) - timedelta(hours=1),  # Expired
        }
    )

    response = client.get(
        "/api/admin/cards",
        headers={"Authorization": f"Bearer {expired_token}"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_admin_endpoint_wrong_secret(client):
    token = jwt.encode(
        {"sub": "admin-1", "role": "admin", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret",
        algorithm=settings.JWT_ALGORITHM,
    )
    response = client.get("/api/admin/cards", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_admin_endpoint_requires_admin_role(client, operator_headers):
    """A valid token without the admin role is forbidden, not unauthenticated."""
    response = client.get("/api/admin/cards", headers=operator_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Admin access required"


def test_admin_endpoint_with_admin_token(client, admin_headers):
    response = client.get("/api/admin/cards", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
