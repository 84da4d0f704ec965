"""
Tenant isolation tests across every workspace route.

CRITICAL: A member of workspace A gets the same generic 403 from every
workspace B route, whatever the method and whether B exists, and never
sees B's data.
"""

import pytest

from src.models.sku import SKU
from src.tests.fixtures import create_skus, csrf_headers, login

WORKSPACE_ROUTES = [
    ("GET", "/skus", None),
    ("POST", "/skus", {"title": "X", "sku": "X-1", "cost": "1.00", "current_price": "2.00"}),
    ("DELETE", "/skus/any-id", None),
    ("GET", "/competitors", None),
    ("POST", "/competitors", {"name": "Rival"}),
    ("POST", "/memberships", {"email": "owner@a.example"}),
    ("GET", "/billing/plan", None),
    ("POST", "/import/snapshots/commit", {"row_count": 1}),
]

FORBIDDEN_BODY = {"ok": False, "error": {"code": "FORBIDDEN", "message": "Forbidden", "details": {}}}


@pytest.mark.parametrize("method,suffix,payload", WORKSPACE_ROUTES)
def test_foreign_workspace_is_forbidden(client, tenant, method, suffix, payload):
    login(client, "owner@a.example")

    response = client.request(
        method,
        f"/api/workspaces/{tenant.workspace_b.id}{suffix}",
        json=payload,
        headers=csrf_headers(client),
    )

    assert response.status_code == 403
    assert response.json() == FORBIDDEN_BODY


@pytest.mark.parametrize("method,suffix,payload", WORKSPACE_ROUTES)
def test_unknown_workspace_is_identical(client, tenant, method, suffix, payload):
    login(client, "owner@a.example")

    response = client.request(
        method,
        f"/api/workspaces/ws-that-does-not-exist{suffix}",
        json=payload,
        headers=csrf_headers(client),
    )

    assert response.status_code == 403
    assert response.json() == FORBIDDEN_BODY


@pytest.mark.parametrize("method,suffix,payload", WORKSPACE_ROUTES)
def test_anonymous_is_unauthorized(client, tenant, method, suffix, payload):
    # A CSRF pair without a session: passes CSRF, fails authentication
    response = client.request(
        method,
        f"/api/workspaces/{tenant.workspace_a.id}{suffix}",
        json=payload,
        headers={"x-pharos-csrf": "anon-token", "Cookie": "pharos_csrf=anon-token"},
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_foreign_rows_untouched(client, tenant, db_session):
    create_skus(db_session, tenant.workspace_b, 2)
    login(client, "owner@a.example")

    client.request(
        "DELETE",
        f"/api/workspaces/{tenant.workspace_b.id}/skus/any-id",
        headers=csrf_headers(client),
    )

    assert db_session.query(SKU).filter_by(workspace_id=tenant.workspace_b.id).count() == 2
