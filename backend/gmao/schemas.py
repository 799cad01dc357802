"""
Schemas Pydantic (FastAPI)
==========================

Ce fichier définit les schémas d'entrée / sortie de l'API GMAO.

Convention de nommage :
- `Out`    → payload de sortie (API → client).
- `In`     → payload d'entrée (client → API).
- `Create` → entrée pour créer un objet.
- `Update` → entrée pour mettre à jour un objet (PATCH partiel).
"""

import datetime as dt
import re
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import Priorite, SourceAnomalie, StatutAnomalie, TypeMvt


class NamedRef(BaseModel):
    """Référence courte {id, name} vers une autre table."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class OkOut(BaseModel):
    ok: bool = True
    message: Optional[str] = None


# -------------------------
# 🔐 Permissions / Rôles / Utilisateurs
# -------------------------
ActionLiteral = Literal["create", "read", "update", "delete"]


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    resource: str
    action: str
    description: Optional[str] = None


class PermissionCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    resource: str = Field(min_length=2, max_length=50)
    action: ActionLiteral
    description: Optional[str] = Field(default=None, max_length=255)


class PermissionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    resource: Optional[str] = Field(default=None, min_length=2, max_length=50)
    action: Optional[ActionLiteral] = None
    description: Optional[str] = Field(default=None, max_length=255)


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    permissions: List[PermissionOut] = []


class RoleCreate(BaseModel):
    name: str = Field(min_length=2)
    description: Optional[str] = None
    permission_ids: List[int] = Field(min_length=1)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    description: Optional[str] = None
    permission_ids: Optional[List[int]] = Field(default=None, min_length=1)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: EmailStr
    active: bool
    roles: List[NamedRef] = []
    created_at: Optional[datetime] = None


class UserCreate(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    password: str = Field(min_length=6)
    active: bool = True
    role_ids: List[int] = Field(min_length=1)


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    active: Optional[bool] = None
    role_ids: Optional[List[int]] = Field(default=None, min_length=1)


class SignupIn(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    password: str = Field(min_length=6)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)


class MeOut(BaseModel):
    """Utilisateur courant avec ses rôles et ses chaînes de permissions."""
    user: UserOut
    roles: List[str]
    permissions: List[str]
    is_super_admin: bool = False


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[MeOut] = None


# -------------------------
# 🏗️ Sites / Typeparcs / Parcs / Engins / Objectifs
# -------------------------
class SiteCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    active: bool = True


class SiteUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    active: Optional[bool] = None


class SiteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    active: bool
    engins_count: int = 0


class TypeparcCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)


class TypeparcUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)


class TypeparcOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    total_engins: int = 0


class ParcCreate(BaseModel):
    name: str = Field(min_length=1)
    typeparc_id: int
    typepanne_ids: List[int] = []


class ParcUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    typeparc_id: Optional[int] = None
    typepanne_ids: Optional[List[int]] = None


class ParcOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    typeparc_id: int
    typeparc: Optional[NamedRef] = None
    engins_count: int = 0
    typepannes: List[NamedRef] = []


class EnginCreate(BaseModel):
    name: str = Field(min_length=1)
    parc_id: int
    site_id: int
    active: bool = True
    initial_heure_chassis: float = Field(default=0, ge=0)


class EnginUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    parc_id: Optional[int] = None
    site_id: Optional[int] = None
    active: Optional[bool] = None
    initial_heure_chassis: Optional[float] = Field(default=None, ge=0)


class EnginOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    active: bool
    parc_id: int
    site_id: int
    initial_heure_chassis: float
    parc: Optional[NamedRef] = None
    site: Optional[NamedRef] = None


class ObjectifBase(BaseModel):
    dispo: Optional[float] = None
    mtbf: Optional[float] = None
    tdm: Optional[float] = None
    spe_huile: Optional[float] = None
    spe_go: Optional[float] = None
    spe_graisse: Optional[float] = None


class ObjectifCreate(ObjectifBase):
    annee: int = Field(ge=2000, le=2100)
    parc_id: int
    site_id: int


class ObjectifUpdate(ObjectifBase):
    annee: Optional[int] = Field(default=None, ge=2000, le=2100)
    parc_id: Optional[int] = None
    site_id: Optional[int] = None


class ObjectifOut(ObjectifBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    annee: int
    parc_id: int
    site_id: int
    parc: Optional[NamedRef] = None
    site: Optional[NamedRef] = None


class ParcDetailOut(ParcOut):
    engins: List[EnginOut] = []
    objectifs: List[ObjectifOut] = []


# -------------------------
# 🔧 Typepannes / Pannes
# -------------------------
class TypepanneCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class TypepanneUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class TypepanneOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    pannes_count: int = 0


class PanneCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    typepanne_id: int


class PanneUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    typepanne_id: Optional[int] = None


class PanneOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    typepanne_id: int
    typepanne: Optional[NamedRef] = None
    interventions_count: int = 0
    derniere_saisie: Optional[date] = None


# -------------------------
# 🛢️ Lubrifiants
# -------------------------
class NameIn(BaseModel):
    name: str = Field(min_length=1)


class LubrifiantCreate(BaseModel):
    name: str = Field(min_length=1)
    typelubrifiant_id: int


class LubrifiantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    typelubrifiant_id: int
    typelubrifiant: Optional[NamedRef] = None


# -------------------------
# ⏱️ Saisies HRM / HIM / lubrifiants
# -------------------------
class SaisielubrifiantCreate(BaseModel):
    saisiehim_id: int
    lubrifiant_id: int
    qte: float = Field(ge=0)
    obs: Optional[str] = None
    typeconsommationlub_id: Optional[int] = None


class SaisielubrifiantUpdate(BaseModel):
    lubrifiant_id: Optional[int] = None
    qte: Optional[float] = Field(default=None, ge=0)
    obs: Optional[str] = None
    typeconsommationlub_id: Optional[int] = None


class SaisielubrifiantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    saisiehim_id: int
    lubrifiant_id: int
    qte: float
    obs: Optional[str] = None
    typeconsommationlub_id: Optional[int] = None
    lubrifiant: Optional[NamedRef] = None
    typeconsommationlub: Optional[NamedRef] = None


class SaisiehimCreate(BaseModel):
    saisiehrm_id: int
    panne_id: int
    him: float = Field(ge=0)
    ni: int = Field(ge=0)
    engin_id: Optional[int] = None
    obs: Optional[str] = None


class SaisiehimUpdate(BaseModel):
    panne_id: Optional[int] = None
    him: Optional[float] = Field(default=None, ge=0)
    ni: Optional[int] = Field(default=None, ge=0)
    obs: Optional[str] = None


class SaisiehimOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    saisiehrm_id: int
    panne_id: int
    him: float
    ni: int
    engin_id: Optional[int] = None
    obs: Optional[str] = None
    panne: Optional[NamedRef] = None
    saisielubrifiants: List[SaisielubrifiantOut] = []


class SaisiehrmCreate(BaseModel):
    du: date
    engin_id: int
    site_id: int
    hrm: float = Field(ge=0)
    compteur: Optional[float] = Field(default=None, ge=0)


class SaisiehrmUpdate(BaseModel):
    du: Optional[date] = None
    engin_id: Optional[int] = None
    site_id: Optional[int] = None
    hrm: Optional[float] = Field(default=None, ge=0)
    compteur: Optional[float] = Field(default=None, ge=0)


class SaisiehrmOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    du: date
    engin_id: int
    site_id: int
    hrm: float
    compteur: Optional[float] = None
    engin: Optional[NamedRef] = None
    site: Optional[NamedRef] = None


class SaisiehrmDetailOut(SaisiehrmOut):
    saisiehims: List[SaisiehimOut] = []


class PageMeta(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool


class SaisiehrmPage(PageMeta):
    items: List[SaisiehrmOut]


class SaisiehimListItem(SaisiehimOut):
    du: Optional[date] = None
    engin: Optional[NamedRef] = None


class SaisiehimPage(PageMeta):
    items: List[SaisiehimListItem]


# Saisie imbriquée (HRM + HIM + lubrifiants)
class PerformanceLubIn(BaseModel):
    lubrifiant_id: int
    qte: float = Field(ge=0)
    obs: Optional[str] = None
    typeconsommationlub_id: Optional[int] = None


class PerformanceHimIn(BaseModel):
    panne_id: int
    him: float = Field(ge=0)
    ni: int = Field(ge=0)
    obs: Optional[str] = None
    saisielubrifiants: List[PerformanceLubIn] = []


class PerformanceIn(BaseModel):
    du: date
    engin_id: int
    site_id: int
    hrm: float = Field(ge=0)
    compteur: Optional[float] = Field(default=None, ge=0)
    saisiehims: List[PerformanceHimIn] = []


# -------------------------
# 🚨 Anomalies
# -------------------------
BACKLOG_RE = re.compile(r"^[A-Z]{2}\d{2}-\d{2}-\d{3}$")

_ANOMALIE_OPTIONAL_STR = (
    "reference", "code", "stock", "numero_bs", "programmation",
    "sortie_pdr", "equipe", "confirmation", "observations",
)


def _naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    # colonnes DateTime sans fuseau : on stocke en UTC naïf
    if v is not None and v.tzinfo is not None:
        return v.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return v


class _AnomalieFields(BaseModel):
    besoin_pdr: Optional[bool] = None
    quantite: Optional[int] = Field(default=None, ge=0, le=1000)
    reference: Optional[str] = None
    code: Optional[str] = None
    stock: Optional[str] = None
    numero_bs: Optional[str] = None
    programmation: Optional[str] = None
    sortie_pdr: Optional[str] = None
    equipe: Optional[str] = None
    date_execution: Optional[datetime] = None
    confirmation: Optional[str] = None
    observations: Optional[str] = Field(default=None, max_length=1000)

    @field_validator(*_ANOMALIE_OPTIONAL_STR, mode="before")
    @classmethod
    def _empty_to_none(cls, v: Any):
        # "" venant des formulaires → NULL en base
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("date_execution", mode="before")
    @classmethod
    def _empty_date_to_none(cls, v: Any):
        if v == "":
            return None
        return v

    @field_validator("date_execution")
    @classmethod
    def _execution_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class AnomalieCreate(_AnomalieFields):
    numero_backlog: str
    date_detection: datetime
    description: str = Field(min_length=10, max_length=500)
    source: SourceAnomalie
    priorite: Priorite
    statut: StatutAnomalie = StatutAnomalie.ATTENTE_PDR
    besoin_pdr: bool = False
    engin_id: int
    site_id: int

    @field_validator("numero_backlog")
    @classmethod
    def _check_backlog(cls, v: str) -> str:
        if not BACKLOG_RE.match(v):
            raise ValueError("Format attendu : XX00-00-000 (ex: TO14-25-001)")
        return v

    @field_validator("date_detection")
    @classmethod
    def _detection_utc(cls, v: datetime) -> datetime:
        return _naive_utc(v)


class AnomalieUpdate(_AnomalieFields):
    numero_backlog: Optional[str] = None
    date_detection: Optional[datetime] = None
    description: Optional[str] = Field(default=None, min_length=10, max_length=500)
    source: Optional[SourceAnomalie] = None
    priorite: Optional[Priorite] = None
    statut: Optional[StatutAnomalie] = None
    engin_id: Optional[int] = None
    site_id: Optional[int] = None
    commentaire_changement_statut: Optional[str] = None

    @field_validator("numero_backlog")
    @classmethod
    def _check_backlog(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not BACKLOG_RE.match(v):
            raise ValueError("Format attendu : XX00-00-000 (ex: TO14-25-001)")
        return v

    @field_validator("date_detection")
    @classmethod
    def _detection_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(v)


class HistoriqueStatutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ancien_statut: StatutAnomalie
    nouveau_statut: StatutAnomalie
    date_changement: datetime
    commentaire: Optional[str] = None


class AnomalieOut(_AnomalieFields):
    model_config = ConfigDict(from_attributes=True)

    id: int
    numero_backlog: str
    date_detection: datetime
    description: str
    source: SourceAnomalie
    priorite: Priorite
    statut: StatutAnomalie
    besoin_pdr: bool
    engin_id: int
    site_id: int
    engin: Optional[NamedRef] = None
    site: Optional[NamedRef] = None
    created_at: Optional[datetime] = None
    historiques: List[HistoriqueStatutOut] = []


class AnomalieStatsOut(BaseModel):
    total: int
    par_statut: Dict[str, int]
    par_priorite: Dict[str, int]
    par_source: Dict[str, int]


class EnginStatsOut(BaseModel):
    total: int
    resolues: int
    en_cours: int
    critiques: int
    taux_resolution: int
    dernier_incident: Optional[datetime] = None
    jours_sans_incident: int
    besoin_pdr: int


class EnginDetailOut(EnginOut):
    """Fiche engin : anomalies (plus récentes d'abord) et synthèse."""
    anomalies: List[AnomalieOut] = []
    stats: EnginStatsOut


# -------------------------
# ⚙️ Organes
# -------------------------
class OrganeCreate(BaseModel):
    name: str = Field(min_length=1)
    type_organe_id: int
    active: bool = True


class OrganeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type_organe_id: Optional[int] = None
    active: Optional[bool] = None


class OrganeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type_organe_id: int
    active: bool
    type_organe: Optional[NamedRef] = None


class MvtOrganeCreate(BaseModel):
    organe_id: int
    engin_id: int
    date_mvt: date
    type_mvt: TypeMvt
    cause: Optional[str] = None
    type_cause: Optional[str] = None
    obs: Optional[str] = None


class MvtOrganeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organe_id: int
    engin_id: int
    date_mvt: date
    type_mvt: TypeMvt
    cause: Optional[str] = None
    type_cause: Optional[str] = None
    obs: Optional[str] = None
    organe: Optional[NamedRef] = None
    engin: Optional[NamedRef] = None


# -------------------------
# 📊 Paramètres des rapports
# -------------------------
class RjeIn(BaseModel):
    du: Optional[date] = None


class MoisAnneeIn(BaseModel):
    # validés côté rapport : une valeur invalide donne un 400, pas un 422
    mois: Optional[Union[int, str]] = None
    annee: Optional[Union[int, str]] = None


class DateIn(BaseModel):
    date: Optional[dt.date] = None


class ParetoIn(BaseModel):
    parc_id: Optional[int] = None
    date: Optional[dt.date] = None


# -------------------------
# 📥 Import
# -------------------------
class ImportRowIn(BaseModel):
    sheet_name: str
    data: Dict[str, Any]


class ImportRowResult(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    message: str


class ImportSummary(BaseModel):
    total: int
    success: int
    errors: int


class ImportSheetOut(BaseModel):
    sheet_name: str
    results: List[ImportRowResult]
    summary: ImportSummary
