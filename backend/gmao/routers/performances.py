# gmao/routers/performances.py
"""
📋 Performances : saisie imbriquée HRM → HIM → lubrifiants en une transaction.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..crud import commit_or_400, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Engin, Lubrifiant, Panne, Saisiehim, Saisiehrm, Saisielubrifiant, Site, Typeconsommationlub
from ..schemas import OkOut, PerformanceIn, SaisiehrmDetailOut
from ..statistiques import performance_stats

router = APIRouter(prefix="/performances", tags=["performances"])

_read = require_permission("read", "saisiehrm")


def _check_refs(db: Session, body: PerformanceIn) -> None:
    get_or_404(db, Engin, body.engin_id, "Engin")
    get_or_404(db, Site, body.site_id, "Site")
    panne_ids = [h.panne_id for h in body.saisiehims]
    if len(panne_ids) != len(set(panne_ids)):
        raise HTTPException(status_code=400, detail="Une même panne est saisie plusieurs fois")
    for him in body.saisiehims:
        get_or_404(db, Panne, him.panne_id, "Panne")
        for lub in him.saisielubrifiants:
            get_or_404(db, Lubrifiant, lub.lubrifiant_id, "Lubrifiant")
            if lub.typeconsommationlub_id:
                get_or_404(db, Typeconsommationlub, lub.typeconsommationlub_id, "Type de consommation")


def _ensure_free(db: Session, du: date, engin_id: int, exclude_id: int = 0) -> None:
    exists = (
        db.query(Saisiehrm)
        .filter(Saisiehrm.du == du, Saisiehrm.engin_id == engin_id, Saisiehrm.id != exclude_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=400, detail="Une saisie HRM existe déjà pour cet engin à cette date")


def _build_hims(body: PerformanceIn) -> List[Saisiehim]:
    return [
        Saisiehim(
            panne_id=h.panne_id,
            him=h.him,
            ni=h.ni,
            obs=h.obs,
            engin_id=body.engin_id,
            saisielubrifiants=[Saisielubrifiant(**lub.model_dump()) for lub in h.saisielubrifiants],
        )
        for h in body.saisiehims
    ]


@router.get("", response_model=List[SaisiehrmDetailOut])
def list_performances(
    engin_id: Optional[int] = Query(None),
    site_id: Optional[int] = Query(None),
    date_debut: Optional[date] = Query(None),
    date_fin: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    q = db.query(Saisiehrm)
    if engin_id:
        q = q.filter(Saisiehrm.engin_id == engin_id)
    if site_id:
        q = q.filter(Saisiehrm.site_id == site_id)
    if date_debut:
        q = q.filter(Saisiehrm.du >= date_debut)
    if date_fin:
        q = q.filter(Saisiehrm.du <= date_fin)
    return q.order_by(Saisiehrm.du.desc(), Saisiehrm.id.desc()).all()


@router.get("/statistiques")
def statistiques_performances(
    engin_id: Optional[int] = Query(None),
    site_id: Optional[int] = Query(None),
    date_debut: Optional[date] = Query(None),
    date_fin: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
) -> Dict[str, Any]:
    return performance_stats(db, engin_id, site_id, date_debut, date_fin)


@router.get("/{saisie_id}", response_model=SaisiehrmDetailOut)
def get_performance(saisie_id: int, db: Session = Depends(get_db), _perm=Depends(_read)):
    return get_or_404(db, Saisiehrm, saisie_id, "Saisie HRM")


@router.post("", response_model=SaisiehrmDetailOut, status_code=201)
def create_performance(
    body: PerformanceIn,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("create", "saisiehrm")),
):
    _check_refs(db, body)
    _ensure_free(db, body.du, body.engin_id)
    saisie = Saisiehrm(
        du=body.du,
        engin_id=body.engin_id,
        site_id=body.site_id,
        hrm=body.hrm,
        compteur=body.compteur,
        saisiehims=_build_hims(body),
    )
    db.add(saisie)
    commit_or_400(db)
    db.refresh(saisie)
    return saisie


@router.put("/{saisie_id}", response_model=SaisiehrmDetailOut)
def replace_performance(
    saisie_id: int,
    body: PerformanceIn,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "saisiehrm")),
):
    """Remplace l'en-tête HRM et toutes ses lignes HIM / lubrifiants."""
    saisie = get_or_404(db, Saisiehrm, saisie_id, "Saisie HRM")
    _check_refs(db, body)
    _ensure_free(db, body.du, body.engin_id, exclude_id=saisie_id)

    saisie.du = body.du
    saisie.engin_id = body.engin_id
    saisie.site_id = body.site_id
    saisie.hrm = body.hrm
    saisie.compteur = body.compteur
    # delete-orphan : les anciennes lignes partent au flush
    saisie.saisiehims.clear()
    db.flush()
    saisie.saisiehims.extend(_build_hims(body))

    commit_or_400(db)
    db.refresh(saisie)
    return saisie


@router.delete("/{saisie_id}", response_model=OkOut)
def delete_performance(
    saisie_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("delete", "saisiehrm")),
):
    saisie = get_or_404(db, Saisiehrm, saisie_id, "Saisie HRM")
    db.delete(saisie)
    db.commit()
    return OkOut(message="Saisie supprimée")
