# gmao/settings.py
import logging
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

BASE_DIR = Path(__file__).resolve().parents[1]

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # 🗄️ Base de données
    database_url: str = Field(
        default=f"sqlite:///{(BASE_DIR / 'gmao.db').as_posix()}",
        description="Database URL (SQLite local ou PostgreSQL en production)",
    )

    # 🔐 JWT / Sécurité
    secret_key: str = Field(
        default="dev-secret",
        description="Clé secrète pour signer les JWT",
    )
    access_token_expire_minutes: int = Field(
        default=60 * 8,
        description="Durée de vie du token d'accès (en minutes)",
    )

    # 👑 Compte super admin créé par le bootstrap / seed
    super_admin_email: str = Field(default="admin@gmao.fr")
    super_admin_password: str = Field(default="admin1234")
    super_admin_name: str = Field(default="Super Admin")

    # 🌱 Drapeaux d'environnement
    migrate_on_start: bool = Field(
        default=False,
        description="Si vrai → alembic upgrade head au démarrage",
    )
    seed_on_start: bool = Field(
        default=False,
        description="Si vrai → exécute gmao.seed au démarrage",
    )
    debug: bool = Field(
        default=True,
        description="Active le mode debug (route /routes + logs verbeux)",
    )
    log_level: str = Field(default="INFO", description="Niveau du logger racine")

    # 🌍 CORS
    cors_origins: List[str] = Field(default=["*"])

    # 📥 Import Excel
    import_max_rows: int = Field(
        default=5000,
        description="Nombre max de lignes lues par feuille lors d'un import",
    )

    # ⚙️ Config Pydantic
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


settings = Settings()

if settings.debug:
    logger.debug("🧩 [settings] DATABASE_URL=%s SEED_ON_START=%s MIGRATE_ON_START=%s",
                 settings.database_url, settings.seed_on_start, settings.migrate_on_start)
