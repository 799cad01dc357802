from gmao import models
from gmao.rbac import ACTIONS, RESOURCES
from gmao.seed import ensure_permissions, ensure_super_admin, seed_demo


def test_permissions_idempotentes(db):
    assert ensure_permissions(db) == len(ACTIONS) * len(RESOURCES)
    assert ensure_permissions(db) == 0


def test_super_admin(db):
    user, created = ensure_super_admin(db, email="Chef@gmao.fr", password="chef1234")
    assert created
    assert user.email == "chef@gmao.fr"
    _, created = ensure_super_admin(db, email="chef@gmao.fr")
    assert not created

    admin_role = db.query(models.Role).filter(models.Role.name == "admin").one()
    assert len(admin_role.permissions) == len(ACTIONS) * len(RESOURCES)


def test_jeu_de_demo(db):
    seed_demo(db, days=3)
    db.commit()
    assert db.query(models.Site).count() == 2
    assert db.query(models.Engin).count() == 6
    assert db.query(models.Saisiehrm).count() == 18
    assert db.query(models.Objectif).count() == 6

    # base déjà remplie : rien n'est ajouté
    seed_demo(db, days=3)
    assert db.query(models.Engin).count() == 6
