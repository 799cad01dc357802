from gmao.settings import settings

from .conftest import ADMIN_EMAIL, ADMIN_PASSWORD, auth_headers


def _login(client, email, password):
    return client.post("/api/auth/login", data={"username": email, "password": password})


def test_login_ok(client, admin):
    r = _login(client, ADMIN_EMAIL.upper(), ADMIN_PASSWORD)
    assert r.status_code == 200
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["user"]["is_super_admin"] is True
    assert "super admin" in body["user"]["roles"]
    assert "read:engin" in body["user"]["permissions"]


def test_login_mauvais_mot_de_passe(client, admin):
    r = _login(client, ADMIN_EMAIL, "mauvais")
    assert r.status_code == 401
    assert r.json()["detail"] == "Identifiants invalides"


def test_me(client, admin):
    token = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD).json()["access_token"]
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["user"]["email"] == ADMIN_EMAIL


def test_inscription_cree_un_compte_inactif(client):
    r = client.post(
        "/api/auth/register",
        json={"name": "Nouveau", "email": "nouveau@gmao.fr", "password": "motdepasse"},
    )
    assert r.status_code == 201
    assert r.json()["active"] is False

    r = _login(client, "nouveau@gmao.fr", "motdepasse")
    assert r.status_code == 403


def test_inscription_email_deja_pris(client, admin):
    r = client.post(
        "/api/auth/register",
        json={"email": ADMIN_EMAIL, "password": "motdepasse"},
    )
    assert r.status_code == 400


def test_token_compte_desactive(client, db, admin):
    headers = auth_headers(admin)
    admin.active = False
    db.commit()
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_bootstrap_idempotent(client):
    r = client.post("/api/auth/bootstrap")
    assert r.status_code == 200
    assert r.json()["message"] == "Super admin créé avec succès"

    r = client.post("/api/auth/bootstrap")
    assert r.json()["message"] == "Super admin est déjà créé"

    r = _login(client, settings.super_admin_email, settings.super_admin_password)
    assert r.status_code == 200


# -------------------------------------------------
# 👤 Profil de l'utilisateur connecté
# -------------------------------------------------
def test_modifier_son_profil(client, admin, reader, reader_headers):
    r = client.patch("/api/auth/me", json={"name": " Lecteur Principal ", "email": "Lect@gmao.fr"},
                     headers=reader_headers)
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "Lecteur Principal"
    assert r.json()["user"]["email"] == "lect@gmao.fr"

    r = client.patch("/api/auth/me", json={"email": ADMIN_EMAIL}, headers=reader_headers)
    assert r.status_code == 400


def test_changer_son_mot_de_passe(client, reader, reader_headers):
    r = client.put(
        "/api/auth/me/password",
        json={"current_password": "faux", "new_password": "nouveau123"},
        headers=reader_headers,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Mot de passe actuel incorrect"

    r = client.put(
        "/api/auth/me/password",
        json={"current_password": "lecteur123", "new_password": "court"},
        headers=reader_headers,
    )
    assert r.status_code == 422

    r = client.put(
        "/api/auth/me/password",
        json={"current_password": "lecteur123", "new_password": "nouveau123"},
        headers=reader_headers,
    )
    assert r.status_code == 200
    assert _login(client, "lecteur@gmao.fr", "lecteur123").status_code == 401
    assert _login(client, "lecteur@gmao.fr", "nouveau123").status_code == 200


def test_profil_sans_token(client):
    assert client.patch("/api/auth/me", json={"name": "x"}).status_code == 401
