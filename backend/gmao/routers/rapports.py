# gmao/routers/rapports.py
"""
📊 Rapports : tous en POST avec un corps JSON de paramètres.
Les erreurs de paramètres (`RapportError`) deviennent des 400 / 404.
"""

from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import rapports
from ..db import get_db
from ..deps import require_permission
from ..schemas import DateIn, MoisAnneeIn, ParetoIn, RjeIn

router = APIRouter(
    prefix="/rapports",
    tags=["rapports"],
    dependencies=[Depends(require_permission("read", "rapport"))],
)


def _run(fn: Callable[..., Any], *args) -> Any:
    try:
        return fn(*args)
    except rapports.RapportError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/rje")
def rje(body: RjeIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_rje, db, body.du)


@router.post("/etat-mensuel")
def etat_mensuel(body: MoisAnneeIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_etat_mensuel, db, body.mois, body.annee)


@router.post("/etat-general")
def etat_general(body: MoisAnneeIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_etat_general, db, body.mois, body.annee)


@router.post("/unite-physique")
def unite_physique(body: DateIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_unite_physique, db, body.date)


@router.post("/analyse-indisponibilite")
def analyse_indisponibilite(body: MoisAnneeIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_analyse_indisponibilite, db, body.mois, body.annee)


@router.post("/pareto-indispo")
def pareto_indispo(body: ParetoIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_pareto_indispo, db, body.parc_id, body.date)


@router.post("/pareto-mtbf")
def pareto_mtbf(body: ParetoIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_pareto_mtbf, db, body.parc_id, body.date)


@router.post("/heure-marche-organe")
def heure_marche_organe(body: MoisAnneeIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_heure_marche_organe, db, body.mois, body.annee)


@router.post("/mvt-organe")
def mvt_organe(body: MoisAnneeIn, db: Session = Depends(get_db)):
    return _run(rapports.rapport_mvt_organe, db, body.mois, body.annee)
