from gmao import models
from gmao.security import hash_password

from .conftest import auth_headers


def _perm_id(db, action, resource):
    return (
        db.query(models.Permission)
        .filter(models.Permission.action == action, models.Permission.resource == resource)
        .one()
        .id
    )


# -------------------------------------------------
# 🔑 Permissions
# -------------------------------------------------
def test_permission_en_double(client, admin_headers):
    r = client.post("/api/permissions", json={"resource": "engin", "action": "read"}, headers=admin_headers)
    assert r.status_code == 409


def test_permission_creation(client, admin_headers):
    r = client.post("/api/permissions", json={"resource": "Rapport_Pdf", "action": "read"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["resource"] == "rapport_pdf"
    assert r.json()["name"] == "read:rapport_pdf"

    r = client.post("/api/permissions", json={"resource": "x", "action": "lire"}, headers=admin_headers)
    assert r.status_code == 422


def test_attribution_au_role(client, admin_headers, db):
    role = models.Role(name="technicien")
    db.add(role)
    db.commit()
    pid = _perm_id(db, "read", "engin")

    r = client.post(f"/api/permissions/{pid}/roles/{role.id}", headers=admin_headers)
    assert r.json()["message"] == "Permission attribuée au rôle"
    r = client.post(f"/api/permissions/{pid}/roles/{role.id}", headers=admin_headers)
    assert r.json()["message"] == "Permission déjà attribuée à ce rôle"

    r = client.delete(f"/api/permissions/{pid}/roles/{role.id}", headers=admin_headers)
    assert r.status_code == 200
    r = client.delete(f"/api/permissions/{pid}/roles/{role.id}", headers=admin_headers)
    assert r.status_code == 404


# -------------------------------------------------
# 👥 Rôles
# -------------------------------------------------
def test_roles_crud(client, admin_headers, db):
    read_engin = _perm_id(db, "read", "engin")
    read_site = _perm_id(db, "read", "site")
    create_site = _perm_id(db, "create", "site")

    r = client.post(
        "/api/roles",
        json={"name": "chef de site", "permission_ids": [read_engin, read_site]},
        headers=admin_headers,
    )
    assert r.status_code == 201
    role_id = r.json()["id"]

    r = client.patch(
        f"/api/roles/{role_id}", json={"permission_ids": [read_site, create_site]}, headers=admin_headers
    )
    assert r.status_code == 200
    assert {p["id"] for p in r.json()["permissions"]} == {read_site, create_site}

    r = client.post("/api/roles", json={"name": "vide", "permission_ids": []}, headers=admin_headers)
    assert r.status_code == 422

    r = client.post("/api/roles", json={"name": "x2", "permission_ids": [9999]}, headers=admin_headers)
    assert r.status_code == 404

    assert client.delete(f"/api/roles/{role_id}", headers=admin_headers).status_code == 200


def test_role_super_admin_non_supprimable(client, admin_headers, db):
    role = db.query(models.Role).filter(models.Role.name == "super admin").one()
    r = client.delete(f"/api/roles/{role.id}", headers=admin_headers)
    assert r.status_code == 400


# -------------------------------------------------
# 👤 Utilisateurs
# -------------------------------------------------
def test_utilisateurs(client, admin_headers, db):
    admin_role = db.query(models.Role).filter(models.Role.name == "admin").one()
    payload = {"name": "Tech", "email": "Tech@gmao.fr", "password": "tech1234", "role_ids": [admin_role.id]}

    r = client.post("/api/users", json=payload, headers=admin_headers)
    assert r.status_code == 201
    user = r.json()
    assert user["email"] == "tech@gmao.fr"
    assert [role["name"] for role in user["roles"]] == ["admin"]

    r = client.post("/api/users", json=payload, headers=admin_headers)
    assert r.status_code == 400

    r = client.post("/api/users", json={**payload, "email": "autre@gmao.fr", "role_ids": [999]}, headers=admin_headers)
    assert r.status_code == 404

    r = client.patch(f"/api/users/{user['id']}", json={"active": False}, headers=admin_headers)
    assert r.json()["active"] is False

    r = client.post("/api/auth/login", data={"username": "tech@gmao.fr", "password": "tech1234"})
    assert r.status_code == 403


# -------------------------------------------------
# 👑 Rôle super admin réservé
# -------------------------------------------------
def _gestionnaire(db):
    """Utilisateur avec tous les droits sur user et role, sans être super admin."""
    perms = db.query(models.Permission).filter(models.Permission.resource.in_(["user", "role"])).all()
    user = models.User(
        name="Gestionnaire",
        email="gestion@gmao.fr",
        hashed_password=hash_password("gestion123"),
        active=True,
        roles=[models.Role(name="gestionnaire", permissions=perms)],
    )
    db.add(user)
    db.commit()
    return user


def test_attribution_super_admin_reservee(client, db, admin, admin_headers):
    gestionnaire = _gestionnaire(db)
    headers = auth_headers(gestionnaire)
    super_role = db.query(models.Role).filter(models.Role.name == "super admin").one()
    admin_role = db.query(models.Role).filter(models.Role.name == "admin").one()

    r = client.patch(f"/api/users/{gestionnaire.id}", json={"role_ids": [super_role.id]}, headers=headers)
    assert r.status_code == 403

    payload = {"email": "autre@gmao.fr", "password": "autre123", "role_ids": [super_role.id]}
    assert client.post("/api/users", json=payload, headers=headers).status_code == 403

    # le compte super admin n'est pas modifiable ni supprimable
    assert client.patch(f"/api/users/{admin.id}", json={"password": "pirate123"}, headers=headers).status_code == 403
    assert client.delete(f"/api/users/{admin.id}", headers=headers).status_code == 403

    # les autres rôles restent attribuables
    r = client.post("/api/users", json={**payload, "role_ids": [admin_role.id]}, headers=headers)
    assert r.status_code == 201

    # le super admin, lui, peut attribuer le rôle
    r = client.post(
        "/api/users", json={**payload, "email": "second@gmao.fr"}, headers=admin_headers
    )
    assert r.status_code == 201


def test_renommage_super_admin_reserve(client, db, admin, admin_headers):
    headers = auth_headers(_gestionnaire(db))
    super_role = db.query(models.Role).filter(models.Role.name == "super admin").one()
    admin_role = db.query(models.Role).filter(models.Role.name == "admin").one()

    r = client.patch(f"/api/roles/{super_role.id}", json={"name": "ancien"}, headers=headers)
    assert r.status_code == 403
    r = client.patch(f"/api/roles/{admin_role.id}", json={"name": "super admin"}, headers=headers)
    assert r.status_code == 403

    # la description reste modifiable
    r = client.patch(f"/api/roles/{super_role.id}", json={"description": "Tous les droits"}, headers=headers)
    assert r.status_code == 200

    r = client.patch(f"/api/roles/{super_role.id}", json={"name": "ancien"}, headers=admin_headers)
    assert r.status_code == 200
