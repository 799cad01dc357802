# gmao/statistiques.py
"""
📈 Statistiques (tableaux de bord) :
- anomalies : répartition et évolution mensuelle
- pannes    : usage dans les saisies HIM
- saisies   : totaux HRM / HIM par engin, site et mois
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import (
    Anomalie,
    Engin,
    Panne,
    Priorite,
    Saisiehim,
    Saisiehrm,
    Saisielubrifiant,
    SourceAnomalie,
    StatutAnomalie,
    Typepanne,
)

logger = logging.getLogger(__name__)

MOIS_COURTS = ["Janv", "Févr", "Mars", "Avr", "Mai", "Juin",
               "Juil", "Août", "Sept", "Oct", "Nov", "Déc"]

# statut → clé du compteur mensuel
_COMPTEURS_STATUT = {
    StatutAnomalie.EXECUTE: "resolues",
    StatutAnomalie.ATTENTE_PDR: "attente_pdr",
    StatutAnomalie.PROGRAMMEE: "programmees",
    StatutAnomalie.NON_PROGRAMMEE: "non_programmees",
    StatutAnomalie.PDR_PRET: "pdr_pret",
}


def _count_by(db: Session, column, query=None) -> Dict[str, int]:
    q = query if query is not None else db.query(Anomalie)
    rows = q.with_entities(column, func.count(Anomalie.id)).group_by(column).all()
    return {(k.value if hasattr(k, "value") else str(k)): int(n) for k, n in rows}


# -------------------------------------------------
# 🚨 Anomalies
# -------------------------------------------------
def anomalie_stats(db: Session) -> Dict[str, Any]:
    """Total et répartitions par statut / priorité / source (toutes les valeurs présentes)."""
    par_statut = {s.value: 0 for s in StatutAnomalie}
    par_priorite = {p.value: 0 for p in Priorite}
    par_source = {s.value: 0 for s in SourceAnomalie}
    par_statut.update(_count_by(db, Anomalie.statut))
    par_priorite.update(_count_by(db, Anomalie.priorite))
    par_source.update(_count_by(db, Anomalie.source))
    return {
        "total": db.query(func.count(Anomalie.id)).scalar() or 0,
        "par_statut": par_statut,
        "par_priorite": par_priorite,
        "par_source": par_source,
    }


def _add_months(d: date, months: int) -> date:
    m = d.month - 1 + months
    return date(d.year + m // 12, m % 12 + 1, 1)


def _pente(valeurs: List[int]) -> float:
    """Pente de la régression linéaire (moindres carrés) de valeurs[i] en fonction de i."""
    n = len(valeurs)
    sx = sum(range(n))
    sy = sum(valeurs)
    sxy = sum(i * v for i, v in enumerate(valeurs))
    sx2 = sum(i * i for i in range(n))
    denom = n * sx2 - sx * sx
    return (n * sxy - sx * sy) / denom if denom else 0.0


def _pourcentage(nouveau: float, ancien: float) -> float:
    return (nouveau - ancien) / ancien * 100 if ancien > 0 else 0.0


def anomalie_evolution(
    db: Session,
    site_id: Optional[int] = None,
    engin_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Évolution sur les 6 derniers mois (mois courant inclus).
    Une anomalie critique est ELEVEE, non exécutée et détectée depuis plus de 7 jours.
    """
    now = now or datetime.utcnow()
    # 6 mois glissants, du plus ancien au mois courant
    premier = _add_months(now.date().replace(day=1), -5)
    debut = date_from or datetime.combine(premier, time.min)
    fin = date_to or now

    q = db.query(Anomalie).filter(Anomalie.date_detection >= debut, Anomalie.date_detection <= fin)
    if site_id:
        q = q.filter(Anomalie.site_id == site_id)
    if engin_id:
        q = q.filter(Anomalie.engin_id == engin_id)
    anomalies = q.order_by(Anomalie.date_detection).all()

    mois: "OrderedDict[tuple, Dict[str, Any]]" = OrderedDict()
    for i in range(6):
        d = _add_months(premier, i)
        mois[(d.year, d.month)] = {
            "mois": MOIS_COURTS[d.month - 1],
            "mois_complet": f"{d.month:02d}/{d.year}",
            "anomalies": 0,
            "resolues": 0,
            "attente_pdr": 0,
            "programmees": 0,
            "non_programmees": 0,
            "pdr_pret": 0,
        }

    for a in anomalies:
        m = mois.get((a.date_detection.year, a.date_detection.month))
        if m is None:
            continue
        m["anomalies"] += 1
        m[_COMPTEURS_STATUT[a.statut]] += 1

    evolution_mensuelle = []
    for m in mois.values():
        m["taux_resolution"] = m["resolues"] / m["anomalies"] * 100 if m["anomalies"] else 0
        evolution_mensuelle.append(m)

    total = len(anomalies)
    resolues = [a for a in anomalies if a.statut == StatutAnomalie.EXECUTE]
    critiques = [
        a for a in anomalies
        if a.priorite == Priorite.ELEVEE
        and a.statut != StatutAnomalie.EXECUTE
        and now - a.date_detection > timedelta(days=7)
    ]
    recentes = [a for a in anomalies if a.date_detection >= now - timedelta(hours=48)]

    durees = [
        (a.date_execution - a.date_detection).total_seconds() / 86400
        for a in resolues if a.date_execution
    ]
    temps_moyen = round(sum(durees) / len(durees), 1) if durees else 0

    top = (
        q.with_entities(Anomalie.engin_id, Engin.name, func.count(Anomalie.id).label("n"))
        .join(Engin, Anomalie.engin_id == Engin.id)
        .group_by(Anomalie.engin_id, Engin.name)
        .order_by(func.count(Anomalie.id).desc())
        .limit(5)
        .all()
    )

    counts = [m["anomalies"] for m in evolution_mensuelle]
    pente = _pente(counts)
    if pente > 0:
        tendance = "hausse"
    elif pente < 0:
        tendance = "baisse"
    else:
        tendance = "stable"

    # meilleur mois = plus fort taux de résolution parmi les mois non vides
    non_vides = [m for m in evolution_mensuelle if m["anomalies"] > 0]
    meilleur = max(non_vides, key=lambda m: m["taux_resolution"])["mois"] if non_vides else None
    pire = min(non_vides, key=lambda m: m["taux_resolution"])["mois"] if non_vides else None

    return {
        "evolution_mensuelle": evolution_mensuelle,
        "total_anomalies": total,
        "anomalies_resolues": len(resolues),
        "anomalies_critiques": len(critiques),
        "anomalies_recentes": len(recentes),
        "taux_resolution": len(resolues) / total * 100 if total else 0,
        "temps_moyen_resolution": temps_moyen,
        "repartition_priorite": _count_by(db, Anomalie.priorite, q),
        "repartition_source": _count_by(db, Anomalie.source, q),
        "top_engins": [{"engin_id": eid, "name": name, "count": n} for eid, name, n in top],
        "evolution": {
            "mensuelle": counts[-1] - counts[-2],
            "pourcentage_mensuel": _pourcentage(counts[-1], counts[-2]),
            "trimestrielle": _pourcentage(sum(counts[-3:]), sum(counts[-6:-3])),
            "tendance": tendance,
        },
        "meilleur_mois": meilleur,
        "pire_mois": pire,
    }


def engin_anomalie_stats(anomalies: List[Anomalie], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Synthèse de la fiche engin à partir de ses anomalies.
    Ici « critique » = priorité ELEVEE, quel que soit le statut.
    Sans anomalie, le taux de résolution vaut 100.
    """
    now = now or datetime.utcnow()
    total = len(anomalies)
    resolues = sum(1 for a in anomalies if a.statut == StatutAnomalie.EXECUTE)
    dates = [a.date_detection for a in anomalies if a.date_detection]
    dernier = max(dates) if dates else None
    return {
        "total": total,
        "resolues": resolues,
        "en_cours": total - resolues,
        "critiques": sum(1 for a in anomalies if a.priorite == Priorite.ELEVEE),
        "taux_resolution": round(resolues / total * 100) if total else 100,
        "dernier_incident": dernier,
        "jours_sans_incident": (now - dernier).days if dernier else 0,
        "besoin_pdr": sum(1 for a in anomalies if a.besoin_pdr),
    }


# -------------------------------------------------
# 🔧 Pannes
# -------------------------------------------------
def panne_stats(db: Session) -> Dict[str, Any]:
    total = db.query(func.count(Panne.id)).scalar() or 0
    avec_saisies = db.query(func.count(func.distinct(Saisiehim.panne_id))).scalar() or 0

    par_type = (
        db.query(Typepanne.name, func.count(Panne.id))
        .outerjoin(Panne, Panne.typepanne_id == Typepanne.id)
        .group_by(Typepanne.id, Typepanne.name)
        .order_by(Typepanne.name)
        .all()
    )
    plus_utilisees = (
        db.query(Panne.id, Panne.name, func.count(Saisiehim.id).label("n"))
        .join(Saisiehim, Saisiehim.panne_id == Panne.id)
        .group_by(Panne.id, Panne.name)
        .order_by(func.count(Saisiehim.id).desc())
        .limit(5)
        .all()
    )
    recentes = db.query(Panne).order_by(Panne.created_at.desc(), Panne.id.desc()).limit(5).all()

    return {
        "total": total,
        "avec_saisies": avec_saisies,
        "sans_saisies": total - avec_saisies,
        "par_type": [{"typepanne": name, "count": n} for name, n in par_type],
        "plus_utilisees": [{"id": pid, "name": name, "interventions": n} for pid, name, n in plus_utilisees],
        "recentes": [{"id": p.id, "name": p.name, "created_at": p.created_at} for p in recentes],
    }


# -------------------------------------------------
# ⏱️ Saisies (performances)
# -------------------------------------------------
def performance_stats(
    db: Session,
    engin_id: Optional[int] = None,
    site_id: Optional[int] = None,
    date_debut: Optional[date] = None,
    date_fin: Optional[date] = None,
) -> Dict[str, Any]:
    q = db.query(Saisiehrm)
    if engin_id:
        q = q.filter(Saisiehrm.engin_id == engin_id)
    if site_id:
        q = q.filter(Saisiehrm.site_id == site_id)
    if date_debut:
        q = q.filter(Saisiehrm.du >= date_debut)
    if date_fin:
        q = q.filter(Saisiehrm.du <= date_fin)
    saisies = q.order_by(Saisiehrm.du).all()

    def _vide() -> Dict[str, float]:
        return {"hrm": 0.0, "him": 0.0, "pannes": 0, "lubrifiants": 0, "saisies": 0}

    totaux = _vide()
    par_engin: Dict[str, Dict[str, float]] = {}
    par_site: Dict[str, Dict[str, float]] = {}
    par_mois: Dict[str, Dict[str, float]] = OrderedDict()

    for s in saisies:
        him = sum(h.him for h in s.saisiehims)
        nb_lub = sum(len(h.saisielubrifiants) for h in s.saisiehims)
        cles = (
            totaux,
            par_engin.setdefault(s.engin.name, _vide()),
            par_site.setdefault(s.site.name, _vide()),
            par_mois.setdefault(s.du.strftime("%Y-%m"), _vide()),
        )
        for bucket in cles:
            bucket["hrm"] += s.hrm
            bucket["him"] += him
            bucket["pannes"] += len(s.saisiehims)
            bucket["lubrifiants"] += nb_lub
            bucket["saisies"] += 1

    totaux["qte_lubrifiants"] = float(
        db.query(func.coalesce(func.sum(Saisielubrifiant.qte), 0))
        .join(Saisiehim, Saisielubrifiant.saisiehim_id == Saisiehim.id)
        .filter(Saisiehim.saisiehrm_id.in_([s.id for s in saisies]))
        .scalar()
        or 0
    ) if saisies else 0.0

    return {
        "totaux": totaux,
        "par_engin": par_engin,
        "par_site": par_site,
        "par_mois": par_mois,
    }
