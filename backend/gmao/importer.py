# gmao/importer.py
"""
📥 Import Excel (openpyxl)
==========================

Un classeur contient un onglet par type de données (sites, parcs, engins...).
La première ligne d'un onglet porte les en-têtes ; chaque ligne suivante est
insérée ou mise à jour d'après sa clé naturelle (nom, email, (du, engin)...).

Chaque ligne produit {success, data, message} ; chaque onglet un résumé
{total, success, errors}.
"""

import logging
import re
from datetime import date, datetime, timedelta
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Tuple

from openpyxl import load_workbook
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import (
    Engin,
    Lubrifiant,
    Objectif,
    Panne,
    Parc,
    Role,
    Saisiehim,
    Saisiehrm,
    Saisielubrifiant,
    Site,
    Typeconsommationlub,
    Typelubrifiant,
    Typepanne,
    Typeparc,
    User,
)
from .rbac import SUPER_ADMIN_ROLE_NAME
from .security import hash_password
from .settings import settings

logger = logging.getLogger(__name__)

TRUE_STRINGS = {"true", "1", "oui", "yes", "vrai"}

# 1899-12-30 + n jours ; le calendrier Excel compte un 29/02/1900 fictif
EXCEL_EPOCH = date(1899, 12, 30)


class ImportRowError(Exception):
    """Ligne rejetée (champ manquant, référence introuvable...)."""


# -------------------------------------------------
# 🔤 Conversion des cellules
# -------------------------------------------------
def _excel_serial_to_date(serial: float) -> date:
    days = int(serial)
    if days <= 60:
        return date(1899, 12, 31) + timedelta(days=days)
    return EXCEL_EPOCH + timedelta(days=days)


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y-%m-%dT%H:%M:%S"):
            try:
                return datetime.strptime(s[:19] if "T" in s else s, fmt).date()
            except ValueError:
                continue
        try:
            value = float(s)
        except ValueError:
            return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return _excel_serial_to_date(value)
        except (OverflowError, ValueError):
            return None
    return None


def convert_field(value: Any, field_type: str = "string") -> Any:
    """
    Convertit une cellule vers `field_type` (string, number, int, boolean, date).
    Cellule vide ou valeur inconvertible → None.
    """
    if value is None or value == "":
        return None

    if field_type == "string":
        return str(value).strip()
    if field_type == "number":
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    if field_type == "int":
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None
    if field_type == "boolean":
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.strip().lower() in TRUE_STRINGS
        return bool(value)
    if field_type == "date":
        return _parse_date(value)
    return value


_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_key(key: Any) -> str:
    """'typeparcName' / 'Typeparc Name' → 'typeparc_name'."""
    s = re.sub(r"[\s\-]+", "_", str(key).strip())
    return _CAMEL_RE.sub("_", s).lower()


def _required(row: Dict[str, Any], key: str, field_type: str = "string") -> Any:
    value = convert_field(row.get(key), field_type)
    if value is None:
        raise ImportRowError(f"Erreur: Le champ '{key}' est requis")
    return value


def _by_name(db: Session, model, name: str, label: str):
    obj = db.query(model).filter(model.name == name).first()
    if not obj:
        raise ImportRowError(f'{label} "{name}" non trouvé')
    return obj


def _upsert_by_name(db: Session, model, name: str, **values) -> Tuple[Any, bool]:
    """(objet, créé ?)"""
    obj = db.query(model).filter(model.name == name).first()
    created = obj is None
    if created:
        obj = model(name=name)
        db.add(obj)
    for k, v in values.items():
        setattr(obj, k, v)
    return obj, created


def _message(label: str, name: Any, created: bool) -> str:
    return f'{label} "{name}" {"créé" if created else "mis à jour"}'


# -------------------------------------------------
# 📄 Importeurs par onglet
# -------------------------------------------------
def _import_site(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    active = convert_field(row.get("active"), "boolean")
    site, created = _upsert_by_name(db, Site, name, active=True if active is None else active)
    return site, _message("Site", name, created)


def _import_typeparc(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    tp, created = _upsert_by_name(db, Typeparc, name)
    return tp, _message("Type de parc", name, created)


def _import_parc(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    typeparc = _by_name(db, Typeparc, _required(row, "typeparc_name"), "TypeParc")
    parc, created = _upsert_by_name(db, Parc, name, typeparc_id=typeparc.id)
    return parc, _message("Parc", name, created)


def _import_engin(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    parc = _by_name(db, Parc, _required(row, "parc_name"), "Parc")
    site = _by_name(db, Site, _required(row, "site_name"), "Site")
    active = convert_field(row.get("active"), "boolean")
    engin, created = _upsert_by_name(
        db, Engin, name,
        parc_id=parc.id,
        site_id=site.id,
        active=True if active is None else active,
        initial_heure_chassis=convert_field(row.get("initial_heure_chassis"), "number") or 0,
    )
    return engin, _message("Engin", name, created)


def _import_typepanne(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    tp, created = _upsert_by_name(
        db, Typepanne, name, description=convert_field(row.get("description"))
    )
    return tp, _message("Type de panne", name, created)


def _import_panne(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    typepanne = _by_name(db, Typepanne, _required(row, "typepanne_name"), "TypePanne")
    panne, created = _upsert_by_name(
        db, Panne, name,
        typepanne_id=typepanne.id,
        description=convert_field(row.get("description")),
    )
    # rattache le type de panne au parc indiqué (optionnel)
    parc_name = convert_field(row.get("parc_name"))
    if parc_name:
        parc = _by_name(db, Parc, parc_name, "Parc")
        if typepanne not in parc.typepannes:
            parc.typepannes.append(typepanne)
    return panne, _message("Panne", name, created)


def _import_typelubrifiant(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    tl, created = _upsert_by_name(db, Typelubrifiant, name)
    return tl, _message("Type de lubrifiant", name, created)


def _import_lubrifiant(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    typelub = _by_name(db, Typelubrifiant, _required(row, "typelubrifiant_name"), "TypeLubrifiant")
    lub, created = _upsert_by_name(db, Lubrifiant, name, typelubrifiant_id=typelub.id)
    return lub, _message("Lubrifiant", name, created)


def _import_typeconsommationlub(db: Session, row: Dict[str, Any]):
    name = _required(row, "name")
    tc, created = _upsert_by_name(db, Typeconsommationlub, name)
    return tc, _message("Type de consommation", name, created)


def _import_saisiehrm(db: Session, row: Dict[str, Any]):
    du = _required(row, "du", "date")
    engin = _by_name(db, Engin, _required(row, "engin_name"), "Engin")
    site_name = convert_field(row.get("site_name"))
    site = _by_name(db, Site, site_name, "Site") if site_name else engin.site
    hrm = _required(row, "hrm", "number")
    if hrm < 0:
        raise ImportRowError("Le HRM doit être positif")

    saisie = db.query(Saisiehrm).filter(Saisiehrm.du == du, Saisiehrm.engin_id == engin.id).first()
    created = saisie is None
    if created:
        saisie = Saisiehrm(du=du, engin_id=engin.id)
        db.add(saisie)
    saisie.site_id = site.id
    saisie.hrm = hrm
    saisie.compteur = convert_field(row.get("compteur"), "number")
    return saisie, f'Saisie HRM {engin.name} du {du.isoformat()} {"créée" if created else "mise à jour"}'


def _saisiehrm_from_row(db: Session, row: Dict[str, Any]) -> Saisiehrm:
    du = _required(row, "du", "date")
    engin = _by_name(db, Engin, _required(row, "engin_name"), "Engin")
    saisie = db.query(Saisiehrm).filter(Saisiehrm.du == du, Saisiehrm.engin_id == engin.id).first()
    if not saisie:
        raise ImportRowError(f"Saisie HRM introuvable pour {engin.name} le {du.isoformat()}")
    return saisie


def _import_saisiehim(db: Session, row: Dict[str, Any]):
    saisiehrm = _saisiehrm_from_row(db, row)
    panne = _by_name(db, Panne, _required(row, "panne_name"), "Panne")
    him = _required(row, "him", "number")
    ni = convert_field(row.get("ni"), "int") or 0
    if him < 0 or ni < 0:
        raise ImportRowError("HIM et NI doivent être positifs")

    saisie = (
        db.query(Saisiehim)
        .filter(Saisiehim.saisiehrm_id == saisiehrm.id, Saisiehim.panne_id == panne.id)
        .first()
    )
    created = saisie is None
    if created:
        saisie = Saisiehim(saisiehrm_id=saisiehrm.id, panne_id=panne.id, engin_id=saisiehrm.engin_id)
        db.add(saisie)
    saisie.him = him
    saisie.ni = ni
    saisie.obs = convert_field(row.get("obs"))
    return saisie, f'Saisie HIM "{panne.name}" {"créée" if created else "mise à jour"}'


def _import_saisielubrifiant(db: Session, row: Dict[str, Any]):
    saisiehrm = _saisiehrm_from_row(db, row)
    panne = _by_name(db, Panne, _required(row, "panne_name"), "Panne")
    saisiehim = (
        db.query(Saisiehim)
        .filter(Saisiehim.saisiehrm_id == saisiehrm.id, Saisiehim.panne_id == panne.id)
        .first()
    )
    if not saisiehim:
        raise ImportRowError(f'Saisie HIM "{panne.name}" introuvable')
    lub = _by_name(db, Lubrifiant, _required(row, "lubrifiant_name"), "Lubrifiant")
    qte = _required(row, "qte", "number")
    if qte < 0:
        raise ImportRowError("La quantité doit être positive")
    typec_name = convert_field(row.get("typeconsommationlub_name"))
    typec = _by_name(db, Typeconsommationlub, typec_name, "Type de consommation") if typec_name else None

    typec_id = typec.id if typec else None

    # clé naturelle : (saisie HIM, lubrifiant, type de consommation)
    q = db.query(Saisielubrifiant).filter(
        Saisielubrifiant.saisiehim_id == saisiehim.id,
        Saisielubrifiant.lubrifiant_id == lub.id,
    )
    if typec_id is None:
        q = q.filter(Saisielubrifiant.typeconsommationlub_id.is_(None))
    else:
        q = q.filter(Saisielubrifiant.typeconsommationlub_id == typec_id)
    saisie = q.first()
    created = saisie is None
    if created:
        saisie = Saisielubrifiant(
            saisiehim_id=saisiehim.id,
            lubrifiant_id=lub.id,
            typeconsommationlub_id=typec_id,
        )
        db.add(saisie)
    saisie.qte = qte
    saisie.obs = convert_field(row.get("obs"))
    return saisie, f'Consommation "{lub.name}" {"créée" if created else "mise à jour"}'


def _import_objectif(db: Session, row: Dict[str, Any]):
    annee = _required(row, "annee", "int")
    parc = _by_name(db, Parc, _required(row, "parc_name"), "Parc")
    site = _by_name(db, Site, _required(row, "site_name"), "Site")
    obj = (
        db.query(Objectif)
        .filter(Objectif.annee == annee, Objectif.parc_id == parc.id, Objectif.site_id == site.id)
        .first()
    )
    created = obj is None
    if created:
        obj = Objectif(annee=annee, parc_id=parc.id, site_id=site.id)
        db.add(obj)
    for k in ("dispo", "mtbf", "tdm", "spe_huile", "spe_go", "spe_graisse"):
        setattr(obj, k, convert_field(row.get(k), "number"))
    return obj, f'Objectif {annee} {parc.name} / {site.name} {"créé" if created else "mis à jour"}'


def _import_user(db: Session, row: Dict[str, Any]):
    email = _required(row, "email").lower()
    user = db.query(User).filter(User.email == email).first()
    # "roles" : noms séparés par des virgules
    roles = convert_field(row.get("roles"))
    names = [r.strip() for r in roles.split(",") if r.strip()] if roles else []
    is_super = user is not None and any(r.name == SUPER_ADMIN_ROLE_NAME for r in user.roles)
    if is_super or SUPER_ADMIN_ROLE_NAME in names:
        raise ImportRowError("Le compte et le rôle super admin ne sont pas modifiables par import")

    created = user is None
    password = convert_field(row.get("password"))
    if created:
        if not password or len(password) < 6:
            raise ImportRowError("Mot de passe requis (6 caractères minimum)")
        user = User(email=email, hashed_password=hash_password(password))
        db.add(user)
    elif password:
        user.hashed_password = hash_password(password)
    user.name = convert_field(row.get("name")) or user.name
    active = convert_field(row.get("active"), "boolean")
    user.active = True if active is None else active

    if names:
        user.roles = [_by_name(db, Role, name, "Rôle") for name in names]
    return user, f'Utilisateur "{email}" {"créé" if created else "mis à jour"}'


IMPORTERS: Dict[str, Callable[[Session, Dict[str, Any]], Tuple[Any, str]]] = {
    "sites": _import_site,
    "typeparcs": _import_typeparc,
    "parcs": _import_parc,
    "engins": _import_engin,
    "typepannes": _import_typepanne,
    "pannes": _import_panne,
    "typelubrifiants": _import_typelubrifiant,
    "lubrifiants": _import_lubrifiant,
    "typeconsommationlub": _import_typeconsommationlub,
    "saisiehrm": _import_saisiehrm,
    "saisiehim": _import_saisiehim,
    "saisielubrifiant": _import_saisielubrifiant,
    "objectifs": _import_objectif,
    "users": _import_user,
}

# ordre de traitement d'un classeur complet (les références d'abord)
SHEET_ORDER = list(IMPORTERS)


def _serialize(obj: Any) -> Dict[str, Any]:
    out = {}
    for col in obj.__table__.columns:
        if col.name == "hashed_password":
            continue
        v = getattr(obj, col.name)
        out[col.name] = v.isoformat() if isinstance(v, (date, datetime)) else v
    return out


# -------------------------------------------------
# 🚚 Points d'entrée
# -------------------------------------------------
def import_row(db: Session, sheet_name: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """Importe une ligne ; commit si OK, rollback sinon."""
    importer = IMPORTERS[sheet_name.lower()]
    data = {normalize_key(k): v for k, v in row.items()}
    try:
        obj, message = importer(db, data)
        db.commit()
        db.refresh(obj)
        return {"success": True, "data": _serialize(obj), "message": message}
    except ImportRowError as e:
        db.rollback()
        return {"success": False, "data": row, "message": str(e)}
    except IntegrityError as e:
        db.rollback()
        logger.warning("⚠️ Import %s : contrainte violée (%s)", sheet_name, e.orig)
        return {"success": False, "data": row, "message": "Contrainte d'intégrité violée"}


def import_rows(db: Session, sheet_name: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Importe toutes les lignes d'un onglet ; ValueError si l'onglet n'est pas supporté."""
    if sheet_name.lower() not in IMPORTERS:
        raise ValueError(f"Onglet non supporté: {sheet_name}")
    results = [import_row(db, sheet_name, r) for r in rows]
    ok = sum(1 for r in results if r["success"])
    logger.info("📥 Import %s : %d succès, %d erreurs", sheet_name, ok, len(results) - ok)
    return {
        "sheet_name": sheet_name.lower(),
        "results": results,
        "summary": {"total": len(results), "success": ok, "errors": len(results) - ok},
    }


def read_workbook(content: bytes) -> Dict[str, List[Dict[str, Any]]]:
    """{nom d'onglet (minuscule): [lignes]} pour un fichier .xlsx."""
    workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    sheets: Dict[str, List[Dict[str, Any]]] = {}
    try:
        for sheet in workbook.worksheets:
            rows = sheet.iter_rows(values_only=True)
            header = next(rows, None)
            if not header:
                continue
            headers = [str(h).strip() if h is not None else "" for h in header]
            data = []
            for values in rows:
                if len(data) >= settings.import_max_rows:
                    break
                if values is None or all(v is None or v == "" for v in values):
                    continue
                data.append({
                    h: values[i] if i < len(values) else None
                    for i, h in enumerate(headers) if h
                })
            sheets[sheet.title.strip().lower()] = data
    finally:
        workbook.close()
    return sheets


def import_workbook(db: Session, content: bytes) -> List[Dict[str, Any]]:
    """Importe tous les onglets reconnus, dans l'ordre des dépendances."""
    sheets = read_workbook(content)
    unknown = [name for name in sheets if name not in IMPORTERS]
    if unknown:
        logger.info("↳ Onglets ignorés : %s", ", ".join(unknown))
    return [import_rows(db, name, sheets[name]) for name in SHEET_ORDER if name in sheets]
