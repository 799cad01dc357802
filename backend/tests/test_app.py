def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_routes_montees_sous_api(client):
    routes = {r["path"]: r["methods"] for r in client.get("/routes").json()}
    assert "/api/auth/login" in routes
    assert "/api/rapports/rje" in routes
    assert "/api/saisiehrms/jour" in routes
    assert routes["/api/auth/login"] == ["POST"]
    assert routes["/api/engins/{engin_id}"] == ["DELETE", "GET", "PATCH"]


def test_redirection_docs(client):
    r = client.get("/", follow_redirects=False)
    assert r.status_code in (302, 307)
    assert r.headers["location"] == "/docs"
