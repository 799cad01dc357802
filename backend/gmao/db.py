# backend/gmao/db.py
"""
📦 Module : Base de données SQLAlchemy (version synchrone)
=========================================================

Ce module configure :
- le moteur SQLAlchemy (`create_engine`)
- la session (`SessionLocal`)
- la base déclarative (`Base`)
- la dépendance FastAPI `get_db`

⚙️ Utilisation :
    from gmao.db import SessionLocal, Base, get_db
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings import settings

# -------------------------------------------------
# 1️⃣ URL de la base (DATABASE_URL ou SQLite local)
# -------------------------------------------------
DATABASE_URL = settings.database_url

if not DATABASE_URL:
    raise RuntimeError("❌ DATABASE_URL manquante, vérifie le fichier .env.")

# -------------------------------------------------
# 2️⃣ Moteur SQLAlchemy (mode synchrone)
# -------------------------------------------------
# SQLite : check_same_thread=False car FastAPI sert les routes sync
# depuis un pool de threads.
# -------------------------------------------------
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_pre_ping=True,
    connect_args=connect_args,
)


def _enable_sqlite_fk(dbapi_connection, connection_record):
    # SQLite n'applique les ON DELETE CASCADE qu'avec ce pragma
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


if DATABASE_URL.startswith("sqlite"):
    event.listen(engine, "connect", _enable_sqlite_fk)

# -------------------------------------------------
# 3️⃣ Fabrique de sessions (SessionLocal)
# -------------------------------------------------
# autocommit=False : on valide explicitement avec .commit()
# autoflush=False  : pas de flush automatique à chaque requête
# -------------------------------------------------
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

# -------------------------------------------------
# 4️⃣ Classe de base pour les modèles
# -------------------------------------------------
Base = declarative_base()


# -------------------------------------------------
# 🗃️ DB session (dépendance FastAPI)
# -------------------------------------------------
def get_db():
    """Ouvre une session SQLAlchemy pour la requête puis la ferme."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
