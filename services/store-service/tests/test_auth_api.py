def login(client, email, password, remember_me=False):
    return client.post("/api/auth/login", json={"email": email, "password": password, "rememberMe": remember_me})


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == "1.0.0"
    assert body["timestamp"]


def test_login_returns_bearer_token(client, users):
    response = login(client, "admin@test.com", "Admin123!")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert body["email"] == "admin@test.com"
    assert body["tokenType"] == "bearer"
    assert body["token"]
    assert body["expiresAt"]


def test_login_failure_is_400(client, users):
    response = login(client, "admin@test.com", "wrong")

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid email or password"}


def test_register_then_login_then_me(client, db):
    response = client.post("/api/auth/register", json={
        "firstName": "Linus",
        "lastName": "Torvalds",
        "email": "linus@example.com",
        "password": "penguin1",
        "confirmPassword": "penguin1",
    })
    assert response.status_code == 200
    assert response.json() == {"message": "Registration successful", "email": "linus@example.com"}

    token = login(client, "linus@example.com", "penguin1").json()["token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert me.status_code == 200
    assert me.json()["firstName"] == "Linus"
    assert me.json()["roles"] == ["User"]
    assert me.json()["lastLoginAt"] is not None


def test_register_duplicate_email(client, users):
    response = client.post("/api/auth/register", json={
        "firstName": "Other",
        "lastName": "Person",
        "email": "shopper@test.com",
        "password": "secret1",
        "confirmPassword": "secret1",
    })

    assert response.status_code == 400
    assert response.json()["errors"]["email"] == ["Email 'shopper@test.com' is already taken."]


def test_snake_case_input_is_accepted(client, users):
    response = client.post("/api/auth/login", json={
        "email": "shopper@test.com", "password": "Shopper123!", "remember_me": True
    })

    assert response.status_code == 200


def test_logout_invalidates_token(client, shopper_headers):
    response = client.post("/api/auth/logout", headers=shopper_headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}
    assert client.get("/api/auth/me", headers=shopper_headers).status_code == 401


def test_me_requires_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json() == {"message": "Missing authorization header"}
