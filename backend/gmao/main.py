# gmao/main.py
"""
🌍 GMAO Parc Engins API (FastAPI)
---------------------------------
Ce module :
- instancie l'app FastAPI et active CORS,
- applique les migrations Alembic au démarrage si MIGRATE_ON_START=true,
- peut lancer les seeds au démarrage si SEED_ON_START=true,
- monte tous les routeurs métier sous /api (auth, engins, saisies, rapports...).
"""

import logging
from pathlib import Path
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

# ⚙️ Settings
from .settings import settings
# 🧭 Routeurs métier
from .routers import ROUTERS

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parents[1]
ALEMBIC_INI = BACKEND_DIR / "alembic.ini"


# -------------------------------------------------
# ⚙️ App & middlewares
# -------------------------------------------------
app = FastAPI(
    title="GMAO Parc Engins API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

for router in ROUTERS:
    app.include_router(router, prefix="/api")


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception("❌ Erreur non gérée sur %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Erreur serveur"})


# -------------------------------------------------
# 🚀 Démarrage : migrations + seeds
# -------------------------------------------------
def alembic_heads() -> List[str]:
    """Retourne et log la liste des heads Alembic trouvés côté code."""
    from alembic.config import Config
    from alembic.script import ScriptDirectory

    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(BACKEND_DIR / "migrations"))
    heads = list(ScriptDirectory.from_config(cfg).get_heads())
    logger.info("🔎 Alembic heads (%d): %s", len(heads), heads)
    return heads


def run_migrations() -> bool:
    from alembic import command
    from alembic.config import Config

    # Plusieurs heads → NE PAS tenter de migrer ni de seeder.
    if len(alembic_heads()) > 1:
        logger.error("❌ Plusieurs heads détectés. Ajoute d'abord une migration de merge.")
        return False

    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(BACKEND_DIR / "migrations"))
    try:
        command.upgrade(cfg, "head")
    except Exception:
        logger.exception("⚠️ Alembic migration failed")
        return False
    logger.info("✅ Alembic migrations applied.")
    return True


@app.on_event("startup")
def on_startup():
    migrated_ok = True
    if settings.migrate_on_start:
        migrated_ok = run_migrations()

    if migrated_ok and settings.seed_on_start:
        from .seed import seed

        try:
            seed()
        except Exception:
            logger.exception("⚠️ Seed failed")


# -------------------------------------------------
# 🌡️ Health
# -------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


# -------------------------------------------------
# 🧭 Debug: routes
# -------------------------------------------------
@app.get("/routes", include_in_schema=settings.debug)
def list_routes():
    # lu depuis le schéma OpenAPI : app.routes ne déplie pas les routeurs inclus
    out = []
    for path, operations in app.openapi()["paths"].items():
        out.append({"path": path, "methods": sorted(m.upper() for m in operations)})
    return out


# -------------------------------------------------
# 🔁 Redirections automatiques
# -------------------------------------------------
@app.get("/", include_in_schema=False)
def redirect_root():
    """Quand on visite la racine, on redirige vers /docs."""
    return RedirectResponse(url="/docs")


@app.get("/doc", include_in_schema=False)
def redirect_doc():
    return RedirectResponse(url="/docs")
