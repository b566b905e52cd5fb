import pytest

from repairdesk.auth.jwt import issue_actor_token
from repairdesk.config import settings


@pytest.fixture
def auth_headers():
    def _headers(role: str, sub: str) -> dict[str, str]:
        token = issue_actor_token(sub, role, settings.jwt_secret)
        return {"Authorization": f"Bearer {token}"}

    return {
        "customer": _headers("CUSTOMER", "cust-1"),
        "other_customer": _headers("CUSTOMER", "cust-2"),
        "technician": _headers("TECHNICIAN", "tech-1"),
        "other_technician": _headers("TECHNICIAN", "tech-2"),
    }


@pytest.fixture
def submitted_order(client, auth_headers):
    response = client.post(
        "/api/v1/orders",
        json={
            "location": "Dorm 3, Room 214",
            "contact_phone": "13800000000",
            "description": "Leaking tap in the bathroom",
        },
        headers=auth_headers["customer"],
    )
    assert response.status_code == 201
    return response.json()
