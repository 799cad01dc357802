"""
Fixtures communes : base SQLite en mémoire, client FastAPI,
comptes (super admin / lecteur) et un petit référentiel.
"""

from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gmao import models
from gmao.db import Base, _enable_sqlite_fk, get_db
from gmao.main import app
from gmao.seed import ensure_permissions, ensure_super_admin
from gmao.security import create_access_token, hash_password

ADMIN_EMAIL = "admin@gmao.fr"
ADMIN_PASSWORD = "secret123"


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(eng, "connect", _enable_sqlite_fk)
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: models.User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin(db):
    user, _ = ensure_super_admin(db, email=ADMIN_EMAIL, password=ADMIN_PASSWORD, name="Admin")
    db.commit()
    return user


@pytest.fixture()
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture()
def reader(db):
    """Utilisateur actif avec uniquement les permissions de lecture."""
    ensure_permissions(db)
    role = models.Role(
        name="lecteur",
        permissions=db.query(models.Permission).filter(models.Permission.action == "read").all(),
    )
    user = models.User(
        name="Lecteur",
        email="lecteur@gmao.fr",
        hashed_password=hash_password("lecteur123"),
        active=True,
        roles=[role],
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def reader_headers(reader):
    return auth_headers(reader)


@pytest.fixture()
def ref(db):
    """Site, typeparc, parc (avec son type de panne), engin et panne."""
    site = models.Site(name="Site Nord")
    typeparc = models.Typeparc(name="Chargeuses")
    typepanne = models.Typepanne(name="Mécanique")
    panne = models.Panne(name="Moteur", description="Casse moteur", typepanne=typepanne)
    parc = models.Parc(name="CH-950", typeparc=typeparc, typepannes=[typepanne])
    engin = models.Engin(name="CH-950-01", parc=parc, site=site, initial_heure_chassis=1000)
    db.add_all([site, typeparc, typepanne, panne, parc, engin])
    db.commit()
    return SimpleNamespace(
        site=site,
        typeparc=typeparc,
        parc=parc,
        engin=engin,
        typepanne=typepanne,
        panne=panne,
    )


@pytest.fixture()
def saisie_mars(db, ref):
    """Une journée de mars 2025 : 20 h de marche, 4 h d'immobilisation, 2 interventions."""
    hrm = models.Saisiehrm(du=date(2025, 3, 10), engin=ref.engin, site=ref.site, hrm=20)
    hrm.saisiehims.append(models.Saisiehim(panne=ref.panne, engin_id=ref.engin.id, him=4, ni=2))
    db.add(hrm)
    db.commit()
    return hrm
