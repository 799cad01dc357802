"""Initial schema GMAO

Revision ID: 20251019_initial_schema
Revises:
Create Date: 2025-10-19

Crée l'ensemble des tables :
- RBAC : users, roles, permissions (+ associations)
- référentiel : sites, typeparcs, parcs, engins, objectifs
- pannes, lubrifiants, saisies HRM / HIM / lubrifiants
- anomalies + historique des statuts
- organes et mouvements
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.sql import text


# Identifiants Alembic
revision = "20251019_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

STATUTS = ("ATTENTE_PDR", "PDR_PRET", "NON_PROGRAMMEE", "PROGRAMMEE", "EXECUTE")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    ]


def _statut(name):
    return sa.Column(
        name,
        sa.Enum(*STATUTS, name="statutanomalie", native_enum=False, length=20),
        nullable=False,
    )


def _named_table(name):
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        *_timestamps(),
    )


def upgrade():
    # === RBAC ====================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("description", sa.String()),
        *_timestamps(),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String()),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("description", sa.String()),
        *_timestamps(),
        sa.UniqueConstraint("resource", "action", name="uq_permissions_resource_action"),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
        ),
    )

    # === Référentiel =============================================
    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    _named_table("typeparcs")
    op.create_table(
        "parcs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("typeparc_id", sa.Integer(), sa.ForeignKey("typeparcs.id"), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "engins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("parc_id", sa.Integer(), sa.ForeignKey("parcs.id"), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=False),
        sa.Column("initial_heure_chassis", sa.Float(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_engins_parc_id", "engins", ["parc_id"])
    op.create_index("ix_engins_site_id", "engins", ["site_id"])

    op.create_table(
        "objectifs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("annee", sa.Integer(), nullable=False),
        sa.Column("parc_id", sa.Integer(), sa.ForeignKey("parcs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("dispo", sa.Float()),
        sa.Column("mtbf", sa.Float()),
        sa.Column("tdm", sa.Float()),
        sa.Column("spe_huile", sa.Float()),
        sa.Column("spe_go", sa.Float()),
        sa.Column("spe_graisse", sa.Float()),
        *_timestamps(),
        sa.UniqueConstraint("annee", "parc_id", "site_id", name="uq_objectifs_annee_parc_site"),
    )

    # === Pannes & lubrifiants ====================================
    op.create_table(
        "typepannes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("description", sa.String()),
        *_timestamps(),
    )
    op.create_table(
        "pannes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("description", sa.String()),
        sa.Column("typepanne_id", sa.Integer(), sa.ForeignKey("typepannes.id"), nullable=False),
        *_timestamps(),
    )
    _named_table("typelubrifiants")
    op.create_table(
        "lubrifiants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("typelubrifiant_id", sa.Integer(), sa.ForeignKey("typelubrifiants.id"), nullable=False),
        *_timestamps(),
    )
    _named_table("typeconsommationlubs")

    op.create_table(
        "parc_typepannes",
        sa.Column("parc_id", sa.Integer(), sa.ForeignKey("parcs.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "typepanne_id", sa.Integer(), sa.ForeignKey("typepannes.id", ondelete="CASCADE"), primary_key=True
        ),
    )
    op.create_table(
        "parc_lubrifiants",
        sa.Column("parc_id", sa.Integer(), sa.ForeignKey("parcs.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "lubrifiant_id", sa.Integer(), sa.ForeignKey("lubrifiants.id", ondelete="CASCADE"), primary_key=True
        ),
    )
    op.create_table(
        "parc_typeconsommationlubs",
        sa.Column("parc_id", sa.Integer(), sa.ForeignKey("parcs.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "typeconsommationlub_id",
            sa.Integer(),
            sa.ForeignKey("typeconsommationlubs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    # === Saisies =================================================
    op.create_table(
        "saisiehrms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("du", sa.Date(), nullable=False),
        sa.Column("engin_id", sa.Integer(), sa.ForeignKey("engins.id"), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=False),
        sa.Column("hrm", sa.Float(), nullable=False, server_default="0"),
        sa.Column("compteur", sa.Float()),
        *_timestamps(),
        sa.UniqueConstraint("du", "engin_id", name="uq_saisiehrms_du_engin"),
    )
    op.create_index("ix_saisiehrms_du", "saisiehrms", ["du"])

    op.create_table(
        "saisiehims",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("panne_id", sa.Integer(), sa.ForeignKey("pannes.id"), nullable=False),
        sa.Column("him", sa.Float(), nullable=False, server_default="0"),
        sa.Column("ni", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "saisiehrm_id", sa.Integer(), sa.ForeignKey("saisiehrms.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("engin_id", sa.Integer(), sa.ForeignKey("engins.id"), nullable=True),
        sa.Column("obs", sa.String()),
        *_timestamps(),
        sa.UniqueConstraint("panne_id", "saisiehrm_id", name="uq_saisiehims_panne_saisiehrm"),
    )
    op.create_table(
        "saisielubrifiants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lubrifiant_id", sa.Integer(), sa.ForeignKey("lubrifiants.id"), nullable=False),
        sa.Column("qte", sa.Float(), nullable=False, server_default="0"),
        sa.Column("obs", sa.String()),
        sa.Column(
            "saisiehim_id", sa.Integer(), sa.ForeignKey("saisiehims.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "typeconsommationlub_id", sa.Integer(), sa.ForeignKey("typeconsommationlubs.id"), nullable=True
        ),
        *_timestamps(),
    )

    # === Anomalies ===============================================
    op.create_table(
        "anomalies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("numero_backlog", sa.String(), nullable=False, unique=True),
        sa.Column("date_detection", sa.DateTime(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "source",
            sa.Enum("VS", "VJ", "INSPECTION", "AUTRE", name="sourceanomalie", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column(
            "priorite",
            sa.Enum("ELEVEE", "MOYENNE", "FAIBLE", name="priorite", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("besoin_pdr", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("quantite", sa.Integer()),
        sa.Column("reference", sa.String()),
        sa.Column("code", sa.String()),
        sa.Column("stock", sa.String()),
        sa.Column("numero_bs", sa.String()),
        sa.Column("programmation", sa.String()),
        sa.Column("sortie_pdr", sa.String()),
        sa.Column("equipe", sa.String()),
        _statut("statut"),
        sa.Column("date_execution", sa.DateTime()),
        sa.Column("confirmation", sa.String()),
        sa.Column("observations", sa.Text()),
        sa.Column("engin_id", sa.Integer(), sa.ForeignKey("engins.id"), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_anomalies_statut", "anomalies", ["statut"])
    op.create_index("ix_anomalies_date_detection", "anomalies", ["date_detection"])

    op.create_table(
        "historique_statut_anomalies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "anomalie_id", sa.Integer(), sa.ForeignKey("anomalies.id", ondelete="CASCADE"), nullable=False
        ),
        _statut("ancien_statut"),
        _statut("nouveau_statut"),
        sa.Column("date_changement", sa.DateTime(), nullable=False, server_default=text("CURRENT_TIMESTAMP")),
        sa.Column("commentaire", sa.String()),
    )

    # === Organes =================================================
    _named_table("type_organes")
    op.create_table(
        "organes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("type_organe_id", sa.Integer(), sa.ForeignKey("type_organes.id"), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "mvt_organes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("organe_id", sa.Integer(), sa.ForeignKey("organes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("engin_id", sa.Integer(), sa.ForeignKey("engins.id"), nullable=False),
        sa.Column("date_mvt", sa.Date(), nullable=False),
        sa.Column(
            "type_mvt",
            sa.Enum("POSE", "DEPOSE", name="typemvt", native_enum=False, length=10),
            nullable=False,
        ),
        sa.Column("cause", sa.String()),
        sa.Column("type_cause", sa.String()),
        sa.Column("obs", sa.String()),
        *_timestamps(),
    )
    op.create_index("ix_mvt_organes_engin_date", "mvt_organes", ["engin_id", "date_mvt"])


def downgrade():
    for table in (
        "mvt_organes",
        "organes",
        "type_organes",
        "historique_statut_anomalies",
        "anomalies",
        "saisielubrifiants",
        "saisiehims",
        "saisiehrms",
        "parc_typeconsommationlubs",
        "parc_lubrifiants",
        "parc_typepannes",
        "typeconsommationlubs",
        "lubrifiants",
        "typelubrifiants",
        "pannes",
        "typepannes",
        "objectifs",
        "engins",
        "parcs",
        "typeparcs",
        "sites",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
