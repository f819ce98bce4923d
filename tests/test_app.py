async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


async def test_unknown_route_uses_envelope(client):
    response = await client.get("/api/v1/nowhere")

    assert response.status_code == 404
    assert response.json() == {"status": 404, "success": False, "message": "Not Found", "data": None}


async def test_validation_error_names_the_field(client):
    response = await client.post("/api/v1/auth/otp/verify", json={"phone_number": "9876543210"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"].startswith("otp:")
    assert body["data"]["errors"][0]["loc"] == ["body", "otp"]


async def test_unauthorized_keeps_bearer_challenge(client):
    response = await client.get("/api/v1/auth/profile")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
