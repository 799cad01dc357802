from gmao.models import Permission, Role, User
from gmao.rbac import (
    check_multiple_permissions,
    get_user_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
)


def _user(*perms, role_name="technicien", active=True):
    role = Role(
        name=role_name,
        permissions=[Permission(action=a, resource=r) for a, r in perms],
    )
    return User(email="u@gmao.fr", hashed_password="x", active=active, roles=[role])


def test_permissions_union_des_roles():
    user = _user(("read", "engin"), ("create", "saisiehrm"))
    assert get_user_permissions(user) == {"read:engin", "create:saisiehrm"}
    assert has_permission(user, "read", "engin")
    assert not has_permission(user, "delete", "engin")


def test_permission_incomplete_ignoree():
    user = _user(("read", "engin"), ("", "site"))
    assert get_user_permissions(user) == {"read:engin"}


def test_super_admin_passe_tout():
    user = _user(role_name="super admin")
    assert has_permission(user, "delete", "role")


def test_compte_inactif_refuse():
    user = _user(("read", "engin"), role_name="super admin", active=False)
    assert not has_permission(user, "read", "engin")


def test_verifications_multiples():
    user = _user(("read", "engin"))
    checks = [("read", "engin"), ("update", "engin")]
    assert check_multiple_permissions(user, checks) == {"read:engin": True, "update:engin": False}
    assert has_any_permission(user, checks)
    assert not has_all_permissions(user, checks)


def test_api_sans_token(client):
    assert client.get("/api/engins").status_code == 401


def test_api_token_invalide(client):
    r = client.get("/api/engins", headers={"Authorization": "Bearer pas-un-jwt"})
    assert r.status_code == 401


def test_api_lecteur(client, reader_headers, ref):
    assert client.get("/api/engins", headers=reader_headers).status_code == 200

    r = client.post(
        "/api/engins",
        json={"name": "CH-950-02", "parc_id": ref.parc.id, "site_id": ref.site.id},
        headers=reader_headers,
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Permission refusée (create:engin)"
