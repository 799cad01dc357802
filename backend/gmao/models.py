# ==========================================================
# Modèles SQLAlchemy pour la GMAO
# - RBAC       : User, Role, Permission (+ tables d'association)
# - Référentiel: Site, Typeparc, Parc, Engin, Objectif
# - Pannes     : Typepanne, Panne
# - Saisies    : Saisiehrm, Saisiehim, Saisielubrifiant
# - Lubrifiants: Typelubrifiant, Lubrifiant, Typeconsommationlub
# - Anomalies  : Anomalie, HistoriqueStatutAnomalie
# - Organes    : TypeOrgane, Organe, MvtOrgane
# ==========================================================

import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .db import Base


# ----------------------------------------------------------
# 🔤 Énumérations métier
# ----------------------------------------------------------
class SourceAnomalie(str, enum.Enum):
    VS = "VS"
    VJ = "VJ"
    INSPECTION = "INSPECTION"
    AUTRE = "AUTRE"


class Priorite(str, enum.Enum):
    ELEVEE = "ELEVEE"
    MOYENNE = "MOYENNE"
    FAIBLE = "FAIBLE"


class StatutAnomalie(str, enum.Enum):
    ATTENTE_PDR = "ATTENTE_PDR"
    PDR_PRET = "PDR_PRET"
    NON_PROGRAMMEE = "NON_PROGRAMMEE"
    PROGRAMMEE = "PROGRAMMEE"
    EXECUTE = "EXECUTE"


class TypeMvt(str, enum.Enum):
    POSE = "POSE"
    DEPOSE = "DEPOSE"


def _created_at():
    return Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


def _updated_at():
    return Column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )


# ----------------------------------------------------------
# 🔗 Tables d'association (many-to-many)
# ----------------------------------------------------------
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

parc_typepannes = Table(
    "parc_typepannes",
    Base.metadata,
    Column("parc_id", Integer, ForeignKey("parcs.id", ondelete="CASCADE"), primary_key=True),
    Column("typepanne_id", Integer, ForeignKey("typepannes.id", ondelete="CASCADE"), primary_key=True),
)

parc_lubrifiants = Table(
    "parc_lubrifiants",
    Base.metadata,
    Column("parc_id", Integer, ForeignKey("parcs.id", ondelete="CASCADE"), primary_key=True),
    Column("lubrifiant_id", Integer, ForeignKey("lubrifiants.id", ondelete="CASCADE"), primary_key=True),
)

parc_typeconsommationlubs = Table(
    "parc_typeconsommationlubs",
    Base.metadata,
    Column("parc_id", Integer, ForeignKey("parcs.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "typeconsommationlub_id",
        Integer,
        ForeignKey("typeconsommationlubs.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


# ----------------------------------------------------------
# 👤 User / Role / Permission
# ----------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    # un compte inscrit reste inactif tant qu'un admin ne l'a pas validé
    active = Column(Boolean, nullable=False, default=True)

    created_at = _created_at()
    updated_at = _updated_at()

    roles = relationship("Role", secondary=user_roles, back_populates="users")

    __table_args__ = (
        Index("ix_users_email", "email", unique=True),
    )


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)

    created_at = _created_at()
    updated_at = _updated_at()

    users = relationship("User", secondary=user_roles, back_populates="roles")
    permissions = relationship("Permission", secondary=role_permissions, back_populates="roles")


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True)
    name = Column(String)
    # ex: resource="engin", action="read" → "read:engin"
    resource = Column(String, nullable=False)
    action = Column(String, nullable=False)
    description = Column(String)

    created_at = _created_at()
    updated_at = _updated_at()

    roles = relationship("Role", secondary=role_permissions, back_populates="permissions")

    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permissions_resource_action"),
    )


# ----------------------------------------------------------
# 🏗️ Site / Typeparc / Parc / Engin
# ----------------------------------------------------------
class Site(Base):
    __tablename__ = "sites"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = _created_at()
    updated_at = _updated_at()

    engins = relationship("Engin", back_populates="site")


class Typeparc(Base):
    __tablename__ = "typeparcs"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    parcs = relationship("Parc", back_populates="typeparc", order_by="Parc.name")


class Parc(Base):
    __tablename__ = "parcs"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    typeparc_id = Column(Integer, ForeignKey("typeparcs.id"), nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    typeparc = relationship("Typeparc", back_populates="parcs")
    engins = relationship("Engin", back_populates="parc", order_by="Engin.name")
    objectifs = relationship("Objectif", back_populates="parc", cascade="all, delete-orphan")
    typepannes = relationship("Typepanne", secondary=parc_typepannes, back_populates="parcs")
    lubrifiants = relationship("Lubrifiant", secondary=parc_lubrifiants, back_populates="parcs")
    typeconsommationlubs = relationship(
        "Typeconsommationlub", secondary=parc_typeconsommationlubs, back_populates="parcs"
    )


class Engin(Base):
    __tablename__ = "engins"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    parc_id = Column(Integer, ForeignKey("parcs.id"), nullable=False)
    site_id = Column(Integer, ForeignKey("sites.id"), nullable=False)

    # compteur châssis à la mise en service (heures)
    initial_heure_chassis = Column(Float, nullable=False, default=0)

    created_at = _created_at()
    updated_at = _updated_at()

    parc = relationship("Parc", back_populates="engins")
    site = relationship("Site", back_populates="engins")
    saisiehrms = relationship("Saisiehrm", back_populates="engin")

    __table_args__ = (
        Index("ix_engins_parc_id", "parc_id"),
        Index("ix_engins_site_id", "site_id"),
    )


class Objectif(Base):
    __tablename__ = "objectifs"

    id = Column(Integer, primary_key=True)
    annee = Column(Integer, nullable=False)
    parc_id = Column(Integer, ForeignKey("parcs.id", ondelete="CASCADE"), nullable=False)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)

    dispo = Column(Float)
    mtbf = Column(Float)
    tdm = Column(Float)
    spe_huile = Column(Float)
    spe_go = Column(Float)
    spe_graisse = Column(Float)

    created_at = _created_at()
    updated_at = _updated_at()

    parc = relationship("Parc", back_populates="objectifs")
    site = relationship("Site")

    __table_args__ = (
        UniqueConstraint("annee", "parc_id", "site_id", name="uq_objectifs_annee_parc_site"),
    )


# ----------------------------------------------------------
# 🔧 Typepanne / Panne
# ----------------------------------------------------------
class Typepanne(Base):
    __tablename__ = "typepannes"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)

    created_at = _created_at()
    updated_at = _updated_at()

    pannes = relationship("Panne", back_populates="typepanne", order_by="Panne.name")
    parcs = relationship("Parc", secondary=parc_typepannes, back_populates="typepannes")


class Panne(Base):
    __tablename__ = "pannes"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)
    typepanne_id = Column(Integer, ForeignKey("typepannes.id"), nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    typepanne = relationship("Typepanne", back_populates="pannes")
    saisiehims = relationship("Saisiehim", back_populates="panne")


# ----------------------------------------------------------
# 🛢️ Lubrifiants
# ----------------------------------------------------------
class Typelubrifiant(Base):
    __tablename__ = "typelubrifiants"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    lubrifiants = relationship("Lubrifiant", back_populates="typelubrifiant")


class Lubrifiant(Base):
    __tablename__ = "lubrifiants"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    typelubrifiant_id = Column(Integer, ForeignKey("typelubrifiants.id"), nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    typelubrifiant = relationship("Typelubrifiant", back_populates="lubrifiants")
    parcs = relationship("Parc", secondary=parc_lubrifiants, back_populates="lubrifiants")


class Typeconsommationlub(Base):
    __tablename__ = "typeconsommationlubs"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    parcs = relationship(
        "Parc", secondary=parc_typeconsommationlubs, back_populates="typeconsommationlubs"
    )


# ----------------------------------------------------------
# ⏱️ Saisies HRM / HIM / lubrifiants
# ----------------------------------------------------------
class Saisiehrm(Base):
    __tablename__ = "saisiehrms"

    id = Column(Integer, primary_key=True)
    du = Column(Date, nullable=False)
    engin_id = Column(Integer, ForeignKey("engins.id"), nullable=False)
    site_id = Column(Integer, ForeignKey("sites.id"), nullable=False)
    hrm = Column(Float, nullable=False, default=0)
    compteur = Column(Float)

    created_at = _created_at()
    updated_at = _updated_at()

    engin = relationship("Engin", back_populates="saisiehrms")
    site = relationship("Site")
    saisiehims = relationship(
        "Saisiehim",
        back_populates="saisiehrm",
        cascade="all, delete-orphan",
        order_by="Saisiehim.id",
    )

    __table_args__ = (
        UniqueConstraint("du", "engin_id", name="uq_saisiehrms_du_engin"),
        Index("ix_saisiehrms_du", "du"),
    )


class Saisiehim(Base):
    __tablename__ = "saisiehims"

    id = Column(Integer, primary_key=True)
    panne_id = Column(Integer, ForeignKey("pannes.id"), nullable=False)
    him = Column(Float, nullable=False, default=0)
    ni = Column(Integer, nullable=False, default=0)
    saisiehrm_id = Column(Integer, ForeignKey("saisiehrms.id", ondelete="CASCADE"), nullable=False)
    engin_id = Column(Integer, ForeignKey("engins.id"), nullable=True)
    obs = Column(String)

    created_at = _created_at()
    updated_at = _updated_at()

    panne = relationship("Panne", back_populates="saisiehims")
    saisiehrm = relationship("Saisiehrm", back_populates="saisiehims")
    engin = relationship("Engin")
    saisielubrifiants = relationship(
        "Saisielubrifiant",
        back_populates="saisiehim",
        cascade="all, delete-orphan",
        order_by="Saisielubrifiant.id",
    )

    __table_args__ = (
        UniqueConstraint("panne_id", "saisiehrm_id", name="uq_saisiehims_panne_saisiehrm"),
    )


class Saisielubrifiant(Base):
    __tablename__ = "saisielubrifiants"

    id = Column(Integer, primary_key=True)
    lubrifiant_id = Column(Integer, ForeignKey("lubrifiants.id"), nullable=False)
    qte = Column(Float, nullable=False, default=0)
    obs = Column(String)
    saisiehim_id = Column(Integer, ForeignKey("saisiehims.id", ondelete="CASCADE"), nullable=False)
    typeconsommationlub_id = Column(Integer, ForeignKey("typeconsommationlubs.id"), nullable=True)

    created_at = _created_at()
    updated_at = _updated_at()

    lubrifiant = relationship("Lubrifiant")
    saisiehim = relationship("Saisiehim", back_populates="saisielubrifiants")
    typeconsommationlub = relationship("Typeconsommationlub")


# ----------------------------------------------------------
# 🚨 Anomalies (backlog)
# ----------------------------------------------------------
class Anomalie(Base):
    __tablename__ = "anomalies"

    id = Column(Integer, primary_key=True)
    numero_backlog = Column(String, unique=True, nullable=False)  # ex: TO14-25-001
    date_detection = Column(DateTime, nullable=False)
    description = Column(Text, nullable=False)
    source = Column(Enum(SourceAnomalie, native_enum=False, length=20), nullable=False)
    priorite = Column(Enum(Priorite, native_enum=False, length=20), nullable=False)

    besoin_pdr = Column(Boolean, nullable=False, default=False)
    quantite = Column(Integer)
    reference = Column(String)
    code = Column(String)
    stock = Column(String)
    numero_bs = Column(String)
    programmation = Column(String)
    sortie_pdr = Column(String)
    equipe = Column(String)

    statut = Column(
        Enum(StatutAnomalie, native_enum=False, length=20),
        nullable=False,
        default=StatutAnomalie.ATTENTE_PDR,
    )
    date_execution = Column(DateTime)
    confirmation = Column(String)
    observations = Column(Text)

    engin_id = Column(Integer, ForeignKey("engins.id"), nullable=False)
    site_id = Column(Integer, ForeignKey("sites.id"), nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    engin = relationship("Engin")
    site = relationship("Site")
    historiques = relationship(
        "HistoriqueStatutAnomalie",
        back_populates="anomalie",
        cascade="all, delete-orphan",
        order_by="desc(HistoriqueStatutAnomalie.id)",
    )

    __table_args__ = (
        Index("ix_anomalies_statut", "statut"),
        Index("ix_anomalies_date_detection", "date_detection"),
    )


class HistoriqueStatutAnomalie(Base):
    __tablename__ = "historique_statut_anomalies"

    id = Column(Integer, primary_key=True)
    anomalie_id = Column(Integer, ForeignKey("anomalies.id", ondelete="CASCADE"), nullable=False)
    ancien_statut = Column(Enum(StatutAnomalie, native_enum=False, length=20), nullable=False)
    nouveau_statut = Column(Enum(StatutAnomalie, native_enum=False, length=20), nullable=False)
    date_changement = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    commentaire = Column(String)

    anomalie = relationship("Anomalie", back_populates="historiques")


# ----------------------------------------------------------
# ⚙️ Organes (moteurs, boîtes, ...) et leurs mouvements
# ----------------------------------------------------------
class TypeOrgane(Base):
    __tablename__ = "type_organes"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    created_at = _created_at()
    updated_at = _updated_at()

    organes = relationship("Organe", back_populates="type_organe")


class Organe(Base):
    __tablename__ = "organes"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    type_organe_id = Column(Integer, ForeignKey("type_organes.id"), nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = _created_at()
    updated_at = _updated_at()

    type_organe = relationship("TypeOrgane", back_populates="organes")
    mouvements = relationship("MvtOrgane", back_populates="organe", cascade="all, delete-orphan")


class MvtOrgane(Base):
    __tablename__ = "mvt_organes"

    id = Column(Integer, primary_key=True)
    organe_id = Column(Integer, ForeignKey("organes.id", ondelete="CASCADE"), nullable=False)
    engin_id = Column(Integer, ForeignKey("engins.id"), nullable=False)
    date_mvt = Column(Date, nullable=False)
    type_mvt = Column(Enum(TypeMvt, native_enum=False, length=10), nullable=False)
    cause = Column(String)
    type_cause = Column(String)
    obs = Column(String)

    created_at = _created_at()
    updated_at = _updated_at()

    organe = relationship("Organe", back_populates="mouvements")
    engin = relationship("Engin")

    __table_args__ = (
        Index("ix_mvt_organes_engin_date", "engin_id", "date_mvt"),
    )
