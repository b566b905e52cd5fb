def test_order_endpoints_expose_response_schemas(client):
    openapi = client.get("/openapi.json")
    assert openapi.status_code == 200

    paths = openapi.json()["paths"]

    submit_post = paths["/api/v1/orders"]["post"]
    logs_get = paths["/api/v1/orders/{order_id}/logs"]["get"]
    list_get = paths["/api/v1/orders"]["get"]

    assert submit_post["responses"]["201"]["content"]["application/json"]["schema"]["$ref"] == (
        "#/components/schemas/OrderResponse"
    )
    assert logs_get["responses"]["200"]["content"]["application/json"]["schema"]["$ref"] == (
        "#/components/schemas/OrderLogListResponse"
    )
    assert list_get["responses"]["200"]["content"]["application/json"]["schema"]["$ref"] == (
        "#/components/schemas/OrderListResponse"
    )


def test_rate_request_schema_in_openapi(client):
    paths = client.get("/openapi.json").json()["paths"]

    rate_post = paths["/api/v1/orders/{order_id}/rate"]["post"]
    assert rate_post["requestBody"]["content"]["application/json"]["schema"]["$ref"] == (
        "#/components/schemas/OrderRating"
    )


def test_openapi_advertises_bearer_auth(client):
    payload = client.get("/openapi.json").json()

    assert payload["components"]["securitySchemes"]["BearerAuth"]["scheme"] == "bearer"
    assert payload["security"] == [{"BearerAuth": []}]
