# gmao/routers/anomalies.py
"""
🚨 Anomalies (backlog) : CRUD avec historique des statuts + statistiques.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import (
    Anomalie,
    Engin,
    HistoriqueStatutAnomalie,
    Priorite,
    Site,
    SourceAnomalie,
    StatutAnomalie,
)
from ..schemas import AnomalieCreate, AnomalieOut, AnomalieStatsOut, AnomalieUpdate, OkOut
from ..statistiques import anomalie_evolution, anomalie_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/anomalies", tags=["anomalies"])

_read = require_permission("read", "anomalie")

DOUBLON = "Ce numéro de backlog existe déjà"


def _ensure_backlog_free(db: Session, numero: str, exclude_id: int = 0) -> None:
    exists = (
        db.query(Anomalie)
        .filter(Anomalie.numero_backlog == numero, Anomalie.id != exclude_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=400, detail=DOUBLON)


@router.get("", response_model=List[AnomalieOut])
def list_anomalies(
    search: Optional[str] = Query(None),
    statut: Optional[StatutAnomalie] = Query(None),
    priorite: Optional[Priorite] = Query(None),
    source: Optional[SourceAnomalie] = Query(None),
    engin_id: Optional[int] = Query(None),
    site_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    """Plus récentes d'abord ; chaque anomalie porte ses 5 derniers changements de statut."""
    q = db.query(Anomalie)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Anomalie.numero_backlog.ilike(like),
            Anomalie.description.ilike(like),
            Anomalie.reference.ilike(like),
            Anomalie.numero_bs.ilike(like),
        ))
    if statut:
        q = q.filter(Anomalie.statut == statut)
    if priorite:
        q = q.filter(Anomalie.priorite == priorite)
    if source:
        q = q.filter(Anomalie.source == source)
    if engin_id:
        q = q.filter(Anomalie.engin_id == engin_id)
    if site_id:
        q = q.filter(Anomalie.site_id == site_id)
    if date_from:
        q = q.filter(Anomalie.date_detection >= date_from)
    if date_to:
        q = q.filter(Anomalie.date_detection <= date_to)

    out = []
    for a in q.order_by(Anomalie.created_at.desc(), Anomalie.id.desc()).all():
        item = AnomalieOut.model_validate(a)
        item.historiques = item.historiques[:5]
        out.append(item)
    return out


@router.get("/stats", response_model=AnomalieStatsOut)
def stats_anomalies(db: Session = Depends(get_db), _perm=Depends(_read)):
    return anomalie_stats(db)


@router.get("/evolution")
def evolution_anomalies(
    site_id: Optional[int] = Query(None),
    engin_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
) -> Dict[str, Any]:
    return anomalie_evolution(db, site_id=site_id, engin_id=engin_id, date_from=date_from, date_to=date_to)


@router.get("/{anomalie_id}", response_model=AnomalieOut)
def get_anomalie(anomalie_id: int, db: Session = Depends(get_db), _perm=Depends(_read)):
    return get_or_404(db, Anomalie, anomalie_id, "Anomalie")


@router.post("", response_model=AnomalieOut, status_code=201)
def create_anomalie(
    body: AnomalieCreate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("create", "anomalie")),
):
    get_or_404(db, Engin, body.engin_id, "Engin")
    get_or_404(db, Site, body.site_id, "Site")
    _ensure_backlog_free(db, body.numero_backlog)

    anomalie = Anomalie(**body.model_dump())
    anomalie.historiques.append(HistoriqueStatutAnomalie(
        ancien_statut=StatutAnomalie.ATTENTE_PDR,
        nouveau_statut=anomalie.statut,
        commentaire="Création de l'anomalie",
    ))
    db.add(anomalie)
    commit_or_400(db, DOUBLON)
    db.refresh(anomalie)
    logger.info("🚨 Anomalie %s créée (%s)", anomalie.numero_backlog, anomalie.statut.value)
    return anomalie


@router.patch("/{anomalie_id}", response_model=AnomalieOut)
def update_anomalie(
    anomalie_id: int,
    body: AnomalieUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "anomalie")),
):
    anomalie = get_or_404(db, Anomalie, anomalie_id, "Anomalie")
    data = body.model_dump(exclude_unset=True)
    commentaire = data.pop("commentaire_changement_statut", None)

    # champs obligatoires : une valeur nulle est ignorée
    for key in ("numero_backlog", "date_detection", "description", "source", "priorite",
                "statut", "besoin_pdr", "engin_id", "site_id"):
        if key in data and data[key] is None:
            data.pop(key)

    if "numero_backlog" in data:
        _ensure_backlog_free(db, data["numero_backlog"], exclude_id=anomalie_id)
    if "engin_id" in data:
        get_or_404(db, Engin, data["engin_id"], "Engin")
    if "site_id" in data:
        get_or_404(db, Site, data["site_id"], "Site")

    ancien = anomalie.statut
    nouveau = data.get("statut", ancien)
    apply_updates(anomalie, data)
    if nouveau != ancien:
        anomalie.historiques.append(HistoriqueStatutAnomalie(
            ancien_statut=ancien,
            nouveau_statut=nouveau,
            commentaire=commentaire,
        ))
        logger.info("🔁 Anomalie %s : %s → %s", anomalie.numero_backlog, ancien.value, nouveau.value)

    commit_or_400(db, DOUBLON)
    db.refresh(anomalie)
    return anomalie


@router.delete("/{anomalie_id}", response_model=OkOut)
def delete_anomalie(
    anomalie_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("delete", "anomalie")),
):
    anomalie = get_or_404(db, Anomalie, anomalie_id, "Anomalie")
    db.delete(anomalie)
    db.commit()
    return OkOut(message="Anomalie supprimée")
