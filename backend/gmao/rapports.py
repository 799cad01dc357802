# gmao/rapports.py
"""
📊 Rapports d'exploitation
==========================

Chaque fonction reçoit une session SQLAlchemy et les paramètres du rapport,
et retourne des dicts / listes prêts à être sérialisés en JSON.

- rapport_rje                  : rapport journalier engins (jour / mois / année)
- rapport_etat_mensuel         : indicateurs par typeparc → parc
- rapport_etat_general         : heures de marche et heures châssis par engin
- rapport_unite_physique       : HRM / HIM par site pour chaque parc
- rapport_analyse_indisponibilite : NI / HIM / coefficients par panne
- rapport_pareto_indispo       : pannes classées par indisponibilité
- rapport_pareto_mtbf          : MTBF mensuel d'un parc sur l'année
- rapport_heure_marche_organe  : HRM des organes posés sur les engins
- rapport_mvt_organe           : déposes du mois et poses de remplacement

Les erreurs de paramètres lèvent `RapportError` (400) ou `RapportNotFound` (404).
"""

import logging
from collections import OrderedDict, defaultdict
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from .metrics import (
    calculate_formulas,
    days_elapsed_in_year,
    days_in_month,
    month_bounds,
    nho as compute_nho,
    round2,
)
from .models import (
    Engin,
    MvtOrgane,
    Objectif,
    Organe,
    Panne,
    Parc,
    Saisiehim,
    Saisiehrm,
    Site,
    Typeparc,
    TypeMvt,
)

logger = logging.getLogger(__name__)

MOIS_FR = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


class RapportError(ValueError):
    """Paramètres de rapport invalides."""
    status_code = 400


class RapportNotFound(RapportError):
    status_code = 404


# -------------------------------------------------
# 🧮 Helpers d'agrégation
# -------------------------------------------------
def _check_mois_annee(mois: Any, annee: Any) -> Tuple[int, int]:
    """Valide mois / année reçus bruts du corps JSON (entiers ou chaînes)."""
    if mois in (None, "") or annee in (None, ""):
        raise RapportError("Paramètres 'mois' et 'année' obligatoires")
    try:
        mois, annee = int(mois), int(annee)
    except (TypeError, ValueError):
        raise RapportError("Mois ou année invalide")
    # bornes de datetime.date
    if not 1 <= mois <= 12 or not 1900 <= annee <= 9999:
        raise RapportError("Mois ou année invalide")
    return mois, annee


def _sum_hrm(db: Session, engin_ids: Sequence[int], start: date, end: date) -> float:
    if not engin_ids:
        return 0.0
    total = (
        db.query(func.coalesce(func.sum(Saisiehrm.hrm), 0))
        .filter(Saisiehrm.engin_id.in_(engin_ids), Saisiehrm.du >= start, Saisiehrm.du <= end)
        .scalar()
    )
    return float(total or 0)


def _him_query(db: Session, engin_ids: Sequence[int], start: date, end: date):
    return (
        db.query(Saisiehim)
        .join(Saisiehrm, Saisiehim.saisiehrm_id == Saisiehrm.id)
        .filter(Saisiehrm.engin_id.in_(engin_ids), Saisiehrm.du >= start, Saisiehrm.du <= end)
    )


def _sum_him_count(db: Session, engin_ids: Sequence[int], start: date, end: date) -> Tuple[float, int]:
    """(somme HIM, nombre de lignes HIM) sur la période."""
    if not engin_ids:
        return 0.0, 0
    him, count = (
        _him_query(db, engin_ids, start, end)
        .with_entities(func.coalesce(func.sum(Saisiehim.him), 0), func.count(Saisiehim.id))
        .one()
    )
    return float(him or 0), int(count or 0)


def _aggregate(db: Session, engin_ids: Sequence[int], start: date, end: date) -> Dict[str, float]:
    him, ni = _sum_him_count(db, engin_ids, start, end)
    return {"him": him, "hrm": _sum_hrm(db, engin_ids, start, end), "ni": ni, "tp": 0, "vs": 0}


def _indicators(agg: Dict[str, float], nho: float) -> Dict[str, float]:
    """Agrégats + formules, arrondis à 2 décimales."""
    f = calculate_formulas(agg["him"], agg["hrm"], agg["ni"], nho, agg["tp"], agg["vs"])
    out = {k: agg[k] for k in ("him", "hrm", "ni", "tp", "vs")}
    out.update({k: round2(v) for k, v in f.items()})
    return out


def _active_sites(db: Session) -> List[Site]:
    return db.query(Site).filter(Site.active.is_(True)).order_by(Site.name).all()


def _typeparcs(db: Session) -> List[Typeparc]:
    return db.query(Typeparc).order_by(Typeparc.name).all()


def _active_engins(parc: Parc) -> List[Engin]:
    return [e for e in parc.engins if e.active]


# -------------------------------------------------
# 📅 RJE (rapport journalier engins)
# -------------------------------------------------
def rapport_rje(db: Session, du: Optional[date]) -> List[Dict[str, Any]]:
    """
    Pour chaque engin ayant au moins une saisie HRM :
    HIM / HRM / NI et DISP / MTBF / TDM du jour, du mois à date et de l'année à date.
    """
    if du is None:
        raise RapportError("Paramètre 'du' obligatoire (YYYY-MM-DD)")

    debut_mois = du.replace(day=1)
    debut_annee = date(du.year, 1, 1)
    periodes = {
        "j": (du, du, compute_nho(1)),
        "m": (debut_mois, du, compute_nho(du.day)),
        "a": (debut_annee, du, compute_nho(days_elapsed_in_year(du))),
    }

    engins = (
        db.query(Engin)
        .filter(Engin.saisiehrms.any())
        .order_by(Engin.name)
        .all()
    )

    rows = []
    for engin in engins:
        saisie_jour = (
            db.query(Saisiehrm)
            .filter(Saisiehrm.engin_id == engin.id, Saisiehrm.du == du)
            .first()
        )
        site = saisie_jour.site if saisie_jour else None
        objectif = None
        if site is not None:
            objectif = (
                db.query(Objectif)
                .filter(
                    Objectif.annee == du.year,
                    Objectif.parc_id == engin.parc_id,
                    Objectif.site_id == site.id,
                )
                .first()
            )

        row: Dict[str, Any] = {
            "engin": engin.name,
            "engin_id": engin.id,
            "parc_id": engin.parc_id,
            "parc_name": engin.parc.name if engin.parc else None,
            "site_id": site.id if site else None,
            "site_name": site.name if site else None,
            "annee": du.year,
            "objectif_dispo": objectif.dispo if objectif else None,
            "objectif_mtbf": objectif.mtbf if objectif else None,
            "objectif_tdm": objectif.tdm if objectif else None,
        }
        for suffix, (start, end, nho) in periodes.items():
            agg = _aggregate(db, [engin.id], start, end)
            f = calculate_formulas(agg["him"], agg["hrm"], agg["ni"], nho)
            row.update({
                f"nho_{suffix}": nho,
                f"him_{suffix}": agg["him"],
                f"hrm_{suffix}": agg["hrm"],
                f"ni_{suffix}": agg["ni"],
                f"dispo_{suffix}": round2(f["disp"]),
                f"mtbf_{suffix}": round2(f["mtbf"]),
                f"tdm_{suffix}": round2(f["tdm"]),
            })
        rows.append(row)

    logger.info("📅 RJE %s → %d engins", du.isoformat(), len(rows))
    return rows


# -------------------------------------------------
# 🗓️ État mensuel
# -------------------------------------------------
def rapport_etat_mensuel(db: Session, mois: Optional[int], annee: Optional[int]) -> List[Dict[str, Any]]:
    """
    Indicateurs mensuels et cumul annuel (jusqu'à la fin du mois) par parc.
    NHO = heures de la période × nombre d'engins actifs du parc.
    Les totaux du typeparc sont recalculés à partir des sommes.
    """
    mois, annee = _check_mois_annee(mois, annee)
    debut_mois, fin_mois = month_bounds(annee, mois)
    debut_annee = date(annee, 1, 1)
    nho_m = compute_nho(days_in_month(annee, mois))
    nho_a = compute_nho(days_elapsed_in_year(fin_mois))

    result = []
    for tp in _typeparcs(db):
        total = {
            "nbre_engins": 0,
            "nho_mois": 0,
            "nho_annee": 0,
            "sum_mois": {"him": 0.0, "hrm": 0.0, "ni": 0, "tp": 0, "vs": 0},
            "sum_annee": {"him": 0.0, "hrm": 0.0, "ni": 0, "tp": 0, "vs": 0},
        }
        parcs = []
        for parc in tp.parcs:
            engin_ids = [e.id for e in _active_engins(parc)]
            if not engin_ids:
                continue
            n = len(engin_ids)
            objectif = (
                db.query(Objectif)
                .filter(Objectif.annee == annee, Objectif.parc_id == parc.id)
                .first()
            )
            agg_m = _aggregate(db, engin_ids, debut_mois, fin_mois)
            agg_a = _aggregate(db, engin_ids, debut_annee, fin_mois)

            parcs.append({
                "parc_id": parc.id,
                "parc_name": parc.name,
                "nbre_engins": n,
                "nho_mois": nho_m * n,
                "nho_annee": nho_a * n,
                "mois": _indicators(agg_m, nho_m * n),
                "annee": _indicators(agg_a, nho_a * n),
                "objectif_dispo": objectif.dispo if objectif else None,
                "objectif_tdm": objectif.tdm if objectif else None,
            })

            total["nbre_engins"] += n
            total["nho_mois"] += nho_m * n
            total["nho_annee"] += nho_a * n
            for key, agg in (("sum_mois", agg_m), ("sum_annee", agg_a)):
                for k in ("him", "hrm", "ni", "tp", "vs"):
                    total[key][k] += agg[k]

        result.append({
            "typeparc_id": tp.id,
            "typeparc_name": tp.name,
            "parcs": parcs,
            "total": {
                "nbre_engins": total["nbre_engins"],
                "nho_mois": total["nho_mois"],
                "nho_annee": total["nho_annee"],
                "mois": _indicators(total["sum_mois"], total["nho_mois"]),
                "annee": _indicators(total["sum_annee"], total["nho_annee"]),
            },
        })
    return result


# -------------------------------------------------
# 🧾 État général (heures châssis)
# -------------------------------------------------
def rapport_etat_general(db: Session, mois: Optional[int], annee: Optional[int]) -> Dict[str, Any]:
    mois, annee = _check_mois_annee(mois, annee)
    debut_mois, fin_mois = month_bounds(annee, mois)

    data = []
    for tp in _typeparcs(db):
        tp_total = {"nombre_engins": 0, "total_hrm_mois": 0.0, "total_heure_chassis_mois": 0.0}
        parcs = []
        for parc in tp.parcs:
            engins = _active_engins(parc)
            if not engins:
                continue
            parc_total = {"nombre_engins": 0, "total_hrm_mois": 0.0, "total_heure_chassis_mois": 0.0}
            lignes = []
            for engin in engins:
                hrm_mois = _sum_hrm(db, [engin.id], debut_mois, fin_mois)
                him_mois, _ = _sum_him_count(db, [engin.id], debut_mois, fin_mois)
                initial = float(engin.initial_heure_chassis or 0)
                lignes.append({
                    "engin_id": engin.id,
                    "engin_name": engin.name,
                    "site_name": engin.site.name,
                    "parc_name": parc.name,
                    "typeparc_name": tp.name,
                    "initial_heure_chassis": initial,
                    "hrm_mois": hrm_mois,
                    "heure_chassis_mois": him_mois,
                    "total_heure_chassis": initial + him_mois,
                })
                parc_total["nombre_engins"] += 1
                parc_total["total_hrm_mois"] += hrm_mois
                parc_total["total_heure_chassis_mois"] += him_mois

            parcs.append({
                "parc_id": parc.id,
                "parc_name": parc.name,
                "typeparc_id": tp.id,
                "typeparc_name": tp.name,
                "engins": lignes,
                "total": parc_total,
            })
            for k in tp_total:
                tp_total[k] += parc_total[k]

        if parcs:
            data.append({
                "typeparc_id": tp.id,
                "typeparc_name": tp.name,
                "parcs": parcs,
                "total": tp_total,
            })

    parc_names = list(OrderedDict.fromkeys(p["parc_name"] for tp in data for p in tp["parcs"]))
    return {
        "data": data,
        "sites": [s.name for s in _active_sites(db)],
        "parcs": parc_names,
    }


# -------------------------------------------------
# 🏭 Unité physique
# -------------------------------------------------
def rapport_unite_physique(db: Session, jour: Optional[date]) -> List[Dict[str, Any]]:
    """
    HRM / HIM du mois et nombre d'engins par site actif, pour chaque parc.
    Totaux du typeparc sur le mois et sur l'année civile.
    """
    if jour is None:
        raise RapportError("Date requise")
    debut_mois, fin_mois = month_bounds(jour.year, jour.month)
    debut_annee, fin_annee = date(jour.year, 1, 1), date(jour.year, 12, 31)
    sites = _active_sites(db)

    result = []
    for tp in _typeparcs(db):
        parcs = []
        mensuel = {"total_hrm": 0.0, "total_him": 0.0}
        annuel = {"total_hrm": 0.0, "total_him": 0.0}
        for parc in tp.parcs:
            site_stats: Dict[str, Dict[str, float]] = OrderedDict(
                (s.name, {"hrm": 0.0, "him": 0.0, "nbre": 0}) for s in sites
            )
            for engin in _active_engins(parc):
                hrm_m = _sum_hrm(db, [engin.id], debut_mois, fin_mois)
                him_m, _ = _sum_him_count(db, [engin.id], debut_mois, fin_mois)
                stats = site_stats.setdefault(engin.site.name, {"hrm": 0.0, "him": 0.0, "nbre": 0})
                stats["hrm"] += hrm_m
                stats["him"] += him_m
                stats["nbre"] += 1

                mensuel["total_hrm"] += hrm_m
                mensuel["total_him"] += him_m
                annuel["total_hrm"] += _sum_hrm(db, [engin.id], debut_annee, fin_annee)
                annuel["total_him"] += _sum_him_count(db, [engin.id], debut_annee, fin_annee)[0]
            parcs.append({"parc_name": parc.name, "site_stats": site_stats})

        has_data = any(
            st["hrm"] > 0 or st["him"] > 0 or st["nbre"] > 0
            for p in parcs for st in p["site_stats"].values()
        )
        if has_data or mensuel["total_hrm"] > 0 or mensuel["total_him"] > 0:
            result.append({
                "typeparc_name": tp.name,
                "parcs": parcs,
                "total": {"mensuel": mensuel, "annuel": annuel},
            })
    return result


# -------------------------------------------------
# 📉 Analyse de l'indisponibilité
# -------------------------------------------------
def _him_by_panne(db: Session, engin_ids: Sequence[int], start: date, end: date) -> Dict[int, Dict[str, float]]:
    """{panne_id: {"ni": Σni, "him": Σhim}} sur la période."""
    rows = (
        _him_query(db, engin_ids, start, end)
        .with_entities(Saisiehim.panne_id, func.sum(Saisiehim.ni), func.sum(Saisiehim.him))
        .group_by(Saisiehim.panne_id)
        .all()
    )
    return {pid: {"ni": float(ni or 0), "him": float(him or 0)} for pid, ni, him in rows}


def _coeff(valeur_panne: float, indisp_parc: float, total_parc: float) -> float:
    return valeur_panne * indisp_parc / total_parc if total_parc > 0 else 0.0


def rapport_analyse_indisponibilite(db: Session, mois: Optional[int], annee: Optional[int]) -> List[Dict[str, Any]]:
    """
    Pour chaque parc : NI et HIM par panne (mois et cumul annuel),
    indisponibilité du parc (HIM / NHO × 100) et coefficients
    coeff_ni = NI_panne × INDISP / NI_parc, coeff_him = HIM_panne × INDISP / HIM_parc.
    """
    mois, annee = _check_mois_annee(mois, annee)
    debut_mois, fin_mois = month_bounds(annee, mois)
    debut_annee = date(annee, 1, 1)
    jours_mois = days_in_month(annee, mois)
    jours_annee = days_elapsed_in_year(fin_mois)

    result = []
    for tp in _typeparcs(db):
        tp_total = defaultdict(float)
        parcs = []
        for parc in tp.parcs:
            engin_ids = [e.id for e in _active_engins(parc)]
            if not engin_ids:
                continue
            n = len(engin_ids)
            nho_mois = compute_nho(jours_mois, n)
            nho_annee = compute_nho(jours_annee, n)

            par_mois = _him_by_panne(db, engin_ids, debut_mois, fin_mois)
            par_annee = _him_by_panne(db, engin_ids, debut_annee, fin_mois)

            # pannes des typepannes rattachés au parc + pannes réellement saisies
            panne_ids = {p.id for tpp in parc.typepannes for p in tpp.pannes}
            panne_ids.update(par_annee)
            pannes = (
                db.query(Panne).filter(Panne.id.in_(panne_ids)).order_by(Panne.name).all()
                if panne_ids else []
            )

            zero = {"ni": 0.0, "him": 0.0}
            ni_m = sum(v["ni"] for v in par_mois.values())
            him_m = sum(v["him"] for v in par_mois.values())
            ni_a = sum(v["ni"] for v in par_annee.values())
            him_a = sum(v["him"] for v in par_annee.values())
            indisp_m = him_m / nho_mois * 100 if nho_mois else 0.0
            indisp_a = him_a / nho_annee * 100 if nho_annee else 0.0

            groupes: Dict[int, Dict[str, Any]] = OrderedDict()
            for panne in pannes:
                m = par_mois.get(panne.id, zero)
                a = par_annee.get(panne.id, zero)
                ligne = {
                    "panne_id": panne.id,
                    "panne_name": panne.name,
                    "ni_mois": round2(m["ni"]),
                    "ni_annee": round2(a["ni"]),
                    "him_mois": round2(m["him"]),
                    "him_annee": round2(a["him"]),
                    "coeff_ni_mois": round2(_coeff(m["ni"], indisp_m, ni_m)),
                    "coeff_ni_annee": round2(_coeff(a["ni"], indisp_a, ni_a)),
                    "coeff_him_mois": round2(_coeff(m["him"], indisp_m, him_m)),
                    "coeff_him_annee": round2(_coeff(a["him"], indisp_a, him_a)),
                }
                groupe = groupes.setdefault(panne.typepanne_id, {
                    "typepanne_id": panne.typepanne_id,
                    "typepanne_name": panne.typepanne.name if panne.typepanne else "Sans type",
                    "pannes": [],
                })
                groupe["pannes"].append(ligne)

            typepannes = []
            for groupe in groupes.values():
                sous_total = defaultdict(float)
                for ligne in groupe["pannes"]:
                    for k, v in ligne.items():
                        if k not in ("panne_id", "panne_name"):
                            sous_total[k] += v
                groupe["total"] = {k: round2(v) for k, v in sous_total.items()}
                typepannes.append(groupe)

            total_parc = {
                "ni_mois": round2(ni_m),
                "ni_annee": round2(ni_a),
                "him_mois": round2(him_m),
                "him_annee": round2(him_a),
                "indisp_mois": round2(indisp_m),
                "indisp_annee": round2(indisp_a),
                # Σ coefficients d'un parc = son indisponibilité
                "coeff_ni_mois": round2(indisp_m),
                "coeff_him_mois": round2(indisp_m),
                "coeff_ni_annee": round2(indisp_a),
                "coeff_him_annee": round2(indisp_a),
            }

            has_total = any(
                "TOTAL" in g["typepanne_name"].upper()
                or any("TOTAL" in p["panne_name"].upper() for p in g["pannes"])
                for g in typepannes
            )
            if not has_total:
                ligne_total = {k: v for k, v in total_parc.items() if not k.startswith("indisp")}
                typepannes.insert(0, {
                    "typepanne_id": None,
                    "typepanne_name": "TOTAL",
                    "pannes": [dict(panne_id=None, panne_name="TOTAL", **ligne_total)],
                    "total": ligne_total,
                })

            parcs.append({
                "parc_id": parc.id,
                "parc_name": parc.name,
                "nbre_engins": n,
                "nho_mois": nho_mois,
                "nho_annee": nho_annee,
                "typepannes": typepannes,
                "total": total_parc,
            })
            for k, v in (("ni_mois", ni_m), ("ni_annee", ni_a), ("him_mois", him_m),
                         ("him_annee", him_a), ("nho_mois", nho_mois), ("nho_annee", nho_annee)):
                tp_total[k] += v

        indisp_tp_m = tp_total["him_mois"] / tp_total["nho_mois"] * 100 if tp_total["nho_mois"] else 0.0
        indisp_tp_a = tp_total["him_annee"] / tp_total["nho_annee"] * 100 if tp_total["nho_annee"] else 0.0
        result.append({
            "typeparc_id": tp.id,
            "typeparc_name": tp.name,
            "parcs": parcs,
            "total": {
                "ni_mois": round2(tp_total["ni_mois"]),
                "ni_annee": round2(tp_total["ni_annee"]),
                "him_mois": round2(tp_total["him_mois"]),
                "him_annee": round2(tp_total["him_annee"]),
                "nho_mois": tp_total["nho_mois"],
                "nho_annee": tp_total["nho_annee"],
                "indisp_mois": round2(indisp_tp_m),
                "indisp_annee": round2(indisp_tp_a),
            },
        })
    return result


# -------------------------------------------------
# 📊 Pareto indisponibilité (un parc, un mois)
# -------------------------------------------------
def rapport_pareto_indispo(db: Session, parc_id: Optional[int], jour: Optional[date]) -> Dict[str, Any]:
    if not parc_id or jour is None:
        raise RapportError("parc_id et date sont obligatoires")
    parc = db.get(Parc, parc_id)
    if not parc:
        raise RapportNotFound("Parc non trouvé")

    debut, fin = month_bounds(jour.year, jour.month)
    # engins du parc ayant au moins une saisie dans le mois
    engins = (
        db.query(Engin)
        .filter(
            Engin.parc_id == parc.id,
            Engin.saisiehrms.any((Saisiehrm.du >= debut) & (Saisiehrm.du <= fin)),
        )
        .order_by(Engin.name)
        .all()
    )
    nho = compute_nho(days_in_month(jour.year, jour.month), len(engins))

    records = (
        _him_query(db, [e.id for e in engins], debut, fin)
        .with_entities(Saisiehim.panne_id, Saisiehrm.engin_id, Saisiehim.him, Saisiehim.ni)
        .all()
        if engins else []
    )
    par_panne: Dict[int, Dict[str, Any]] = {}
    for panne_id, engin_id, him, ni in records:
        d = par_panne.setdefault(panne_id, {"him": 0.0, "ni": 0, "engins": defaultdict(lambda: [0.0, 0])})
        d["him"] += him or 0
        d["ni"] += ni or 0
        d["engins"][engin_id][0] += him or 0
        d["engins"][engin_id][1] += ni or 0

    pannes = {p.id: p for p in db.query(Panne).filter(Panne.id.in_(list(par_panne))).all()} if par_panne else {}

    data = []
    for panne_id, d in par_panne.items():
        panne = pannes.get(panne_id)
        engins_him = sorted(
            ({"name": e.name, "him": d["engins"][e.id][0]} for e in engins if d["engins"].get(e.id, [0, 0])[0] > 0),
            key=lambda x: x["him"], reverse=True,
        )
        engins_ni = sorted(
            ({"name": e.name, "ni": d["engins"][e.id][1]} for e in engins if d["engins"].get(e.id, [0, 0])[1] > 0),
            key=lambda x: x["ni"], reverse=True,
        )
        data.append({
            "parc": parc.name,
            "year": str(jour.year),
            "month": str(jour.month),
            "nombre_engins": len(engins),
            "panne": panne.name if panne else "Inconnue",
            "panne_description": (panne.description if panne else None) or "",
            "indispo": round2(100 * d["him"] / nho) if nho > 0 else 0,
            "engins": engins_him,
            "engins_mtbf": engins_ni,
        })
    data.sort(key=lambda x: x["indispo"], reverse=True)
    return {"data": data}


# -------------------------------------------------
# 📈 Pareto MTBF (un parc, 12 mois)
# -------------------------------------------------
def rapport_pareto_mtbf(db: Session, parc_id: Optional[int], jour: Optional[date]) -> Dict[str, Any]:
    if not parc_id or jour is None:
        raise RapportError("parc_id et date sont obligatoires")
    parc = db.get(Parc, parc_id)
    if not parc:
        raise RapportNotFound("Parc non trouvé")

    year = jour.year
    objectif = (
        db.query(Objectif)
        .filter(Objectif.annee == year, Objectif.parc_id == parc.id)
        .first()
    )
    objectif_mtbf = objectif.mtbf if objectif else None
    actifs = [e.id for e in _active_engins(parc)]

    data = []
    for month, nom in enumerate(MOIS_FR, start=1):
        ligne = {"mois": nom[:3], "mtbf": None, "engins_actifs": 0, "objectif_mtbf": objectif_mtbf}
        if actifs:
            debut, fin = month_bounds(year, month)
            hrm = _sum_hrm(db, actifs, debut, fin)
            ni = (
                _him_query(db, actifs, debut, fin)
                .with_entities(func.coalesce(func.sum(Saisiehim.ni), 0))
                .scalar()
            ) or 0
            ligne["mtbf"] = round2(hrm / ni) if ni > 0 else 0
            ligne["engins_actifs"] = len(actifs)
        data.append(ligne)
    return {"data": data}


# -------------------------------------------------
# ⚙️ Heures de marche des organes
# -------------------------------------------------
def _engins_actifs_ordonnes(db: Session) -> List[Engin]:
    return (
        db.query(Engin)
        .join(Parc, Engin.parc_id == Parc.id)
        .join(Typeparc, Parc.typeparc_id == Typeparc.id)
        .filter(Engin.active.is_(True))
        .order_by(Typeparc.name, Parc.name, Engin.name)
        .all()
    )


def _mouvements(db: Session, engin_id: int, jusqu_au: date) -> List[MvtOrgane]:
    return (
        db.query(MvtOrgane)
        .join(Organe, MvtOrgane.organe_id == Organe.id)
        .filter(
            MvtOrgane.engin_id == engin_id,
            Organe.active.is_(True),
            MvtOrgane.date_mvt <= jusqu_au,
        )
        .order_by(MvtOrgane.date_mvt, MvtOrgane.id)
        .all()
    )


def rapport_heure_marche_organe(db: Session, mois: Optional[int], annee: Optional[int]) -> Dict[str, Any]:
    """
    Pour chaque organe posé sur un engin actif : HRM depuis la dernière pose
    jusqu'à la dépose suivante (ou la fin du mois) et HRM depuis le début du mois.
    """
    mois, annee = _check_mois_annee(mois, annee)
    debut_mois, fin_mois = month_bounds(annee, mois)
    engins = _engins_actifs_ordonnes(db)

    groupes: Dict[int, Dict[str, Any]] = OrderedDict()
    for engin in engins:
        par_organe: Dict[int, List[MvtOrgane]] = OrderedDict()
        for mvt in _mouvements(db, engin.id, fin_mois):
            par_organe.setdefault(mvt.organe_id, []).append(mvt)

        organes = []
        for mouvements in par_organe.values():
            poses = [m for m in mouvements if m.type_mvt == TypeMvt.POSE]
            if not poses:
                continue
            pose = poses[-1]
            deposes = [m for m in mouvements if m.type_mvt == TypeMvt.DEPOSE and m.date_mvt > pose.date_mvt]
            depose = deposes[0] if deposes else None
            fin = depose.date_mvt if depose else fin_mois

            hrm_mensuel = _sum_hrm(db, [engin.id], pose.date_mvt, fin)
            hrm_cumul = _sum_hrm(db, [engin.id], debut_mois, fin) if debut_mois <= fin else 0.0
            organe = pose.organe
            organes.append({
                "organe_id": organe.id,
                "organe_name": organe.name,
                "type_organe_name": organe.type_organe.name,
                "hrm_mensuel": round(hrm_mensuel),
                "hrm_cumul": round(hrm_cumul),
                "date_derniere_pose": pose.date_mvt.isoformat(),
                "date_depose": depose.date_mvt.isoformat() if depose else "",
                "est_sur_engin": depose is None,
            })

        if not organes:
            continue
        tp = engin.parc.typeparc
        groupe = groupes.setdefault(tp.id, {"typeparc_id": tp.id, "typeparc_name": tp.name, "engins": []})
        groupe["engins"].append({
            "engin_id": engin.id,
            "engin_name": engin.name,
            "site_name": engin.site.name,
            "parc_name": engin.parc.name,
            "typeparc_name": tp.name,
            "organes": organes,
        })

    data = list(groupes.values())
    return {
        "data": data,
        "sites": list(OrderedDict.fromkeys(e.site.name for e in engins)),
        "parcs": list(OrderedDict.fromkeys(e.parc.name for e in engins)),
        "type_organes": sorted({o["type_organe_name"] for g in data for e in g["engins"] for o in e["organes"]}),
        "mois": mois,
        "annee": annee,
    }


# -------------------------------------------------
# 🔄 Mouvements des organes (déposes du mois)
# -------------------------------------------------
def rapport_mvt_organe(db: Session, mois: Optional[int], annee: Optional[int]) -> Dict[str, Any]:
    """
    Chaque dépose du mois avec les HRM depuis la pose précédente du même organe,
    et la pose de remplacement (même type d'organe, même engin) avant la fin du mois.
    """
    mois, annee = _check_mois_annee(mois, annee)
    debut_mois, fin_mois = month_bounds(annee, mois)

    data = []
    for tp in _typeparcs(db):
        parcs = []
        for parc in tp.parcs:
            mouvements = []
            for engin in _active_engins(parc):
                deposes = (
                    db.query(MvtOrgane)
                    .filter(
                        MvtOrgane.engin_id == engin.id,
                        MvtOrgane.type_mvt == TypeMvt.DEPOSE,
                        MvtOrgane.date_mvt >= debut_mois,
                        MvtOrgane.date_mvt <= fin_mois,
                    )
                    .order_by(MvtOrgane.date_mvt, MvtOrgane.id)
                    .all()
                )
                for depose in deposes:
                    organe = depose.organe
                    pose_remplacement = (
                        db.query(MvtOrgane)
                        .join(Organe, MvtOrgane.organe_id == Organe.id)
                        .filter(
                            MvtOrgane.engin_id == engin.id,
                            MvtOrgane.type_mvt == TypeMvt.POSE,
                            Organe.type_organe_id == organe.type_organe_id,
                            MvtOrgane.date_mvt >= depose.date_mvt,
                            MvtOrgane.date_mvt <= fin_mois,
                        )
                        .order_by(MvtOrgane.date_mvt, MvtOrgane.id)
                        .first()
                    )
                    pose_precedente = (
                        db.query(MvtOrgane)
                        .filter(
                            MvtOrgane.engin_id == engin.id,
                            MvtOrgane.organe_id == depose.organe_id,
                            MvtOrgane.type_mvt == TypeMvt.POSE,
                            MvtOrgane.date_mvt < depose.date_mvt,
                        )
                        .order_by(MvtOrgane.date_mvt.desc(), MvtOrgane.id.desc())
                        .first()
                    )
                    hrm_depose = (
                        _sum_hrm(db, [engin.id], pose_precedente.date_mvt, depose.date_mvt)
                        if pose_precedente else 0.0
                    )
                    mouvements.append({
                        "engin_id": engin.id,
                        "engin_name": engin.name,
                        "site_name": engin.site.name,
                        "parc_name": parc.name,
                        "typeparc_name": tp.name,
                        "type_organe_name": organe.type_organe.name,
                        "date_depose": depose.date_mvt.isoformat(),
                        "organe_depose": organe.name,
                        "hrm_depose": round(hrm_depose),
                        "date_pose": pose_remplacement.date_mvt.isoformat() if pose_remplacement else "",
                        "organe_pose": pose_remplacement.organe.name if pose_remplacement else "",
                        "cause_depose": depose.cause,
                        "type_cause": depose.type_cause or "",
                        "observations": depose.obs or "",
                    })
            if mouvements:
                parcs.append({
                    "parc_id": parc.id,
                    "parc_name": parc.name,
                    "typeparc_id": tp.id,
                    "typeparc_name": tp.name,
                    "mouvements": mouvements,
                })
        if parcs:
            data.append({"typeparc_id": tp.id, "typeparc_name": tp.name, "parcs": parcs})

    return {
        "data": data,
        "sites": [s.name for s in _active_sites(db)],
        "parcs": list(OrderedDict.fromkeys(p["parc_name"] for tp in data for p in tp["parcs"])),
        "type_organes": sorted({m["type_organe_name"] for tp in data for p in tp["parcs"] for m in p["mouvements"]}),
    }
