from sqlalchemy.exc import SQLAlchemyError


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readiness_check_reports_schema_revisions(client):
    response = client.get("/ready")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["dependencies"] == [{"name": "database", "status": "ok"}]
    assert body["schema_head"] == "20261019_0001"
    # tests build the schema with create_all, so nothing is stamped
    assert body["schema_revision"] is None


def test_readiness_check_degraded_when_database_unavailable(client, monkeypatch):
    from repairdesk.db import session as db_session

    class BrokenSession:
        def __enter__(self):
            raise SQLAlchemyError("database down")

        def __exit__(self, *_args):
            return False

    monkeypatch.setattr(db_session, "SessionLocal", lambda: BrokenSession())

    response = client.get("/ready")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "degraded"
    assert body["dependencies"] == [{"name": "database", "status": "error"}]


def test_health_endpoints_expose_explicit_response_schema(client):
    payload = client.get("/openapi.json").json()

    health_get = payload["paths"]["/health"]["get"]
    ready_get = payload["paths"]["/ready"]["get"]
    assert health_get["responses"]["200"]["content"]["application/json"]["schema"]["$ref"] == (
        "#/components/schemas/HealthResponse"
    )
    assert ready_get["responses"]["503"]["content"]["application/json"]["schema"]["$ref"] == (
        "#/components/schemas/ReadinessResponse"
    )
