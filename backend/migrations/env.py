"""
==========================================================
🔧 Alembic environment script
Gère les migrations de base de données (création/modification des tables).
==========================================================
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# --- Import des modèles et de la base ---
from gmao.db import Base
from gmao import models  # noqa: F401  (remplit Base.metadata)
from gmao.settings import settings

# --- Configuration Alembic (.ini) ---
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

# ==========================================================
# 1️⃣ URL de la base pour Alembic
# ==========================================================
# ALEMBIC_DATABASE_URL prioritaire (ex: URL directe hors pooler),
# sinon la même base que l'application.
ALEMBIC_DATABASE_URL = os.getenv("ALEMBIC_DATABASE_URL") or settings.database_url
config.set_main_option("sqlalchemy.url", ALEMBIC_DATABASE_URL)

IS_SQLITE = ALEMBIC_DATABASE_URL.startswith("sqlite")


# ==========================================================
# 2️⃣ Mode offline : génère le SQL sans connexion DB
# ==========================================================
def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=IS_SQLITE,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


# ==========================================================
# 3️⃣ Mode online : exécute les migrations avec connexion DB
# ==========================================================
def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        future=True,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite ne sait pas faire ALTER COLUMN : mode batch
            render_as_batch=IS_SQLITE,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
