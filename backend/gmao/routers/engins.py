# gmao/routers/engins.py
"""
🚜 Engins : CRUD, filtres de liste et arbre typeparc → parc → engins actifs.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Anomalie, Engin, Parc, Site, Typeparc
from ..schemas import AnomalieOut, EnginCreate, EnginDetailOut, EnginOut, EnginUpdate, OkOut
from ..statistiques import engin_anomalie_stats

router = APIRouter(prefix="/engins", tags=["engins"])


@router.get("", response_model=List[EnginOut])
def list_engins(
    site_id: Optional[int] = Query(None),
    parc_id: Optional[int] = Query(None),
    active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Recherche sur le nom"),
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("read", "engin")),
):
    q = db.query(Engin)
    if site_id:
        q = q.filter(Engin.site_id == site_id)
    if parc_id:
        q = q.filter(Engin.parc_id == parc_id)
    if active is not None:
        q = q.filter(Engin.active == active)
    if search:
        q = q.filter(Engin.name.ilike(f"%{search.strip()}%"))
    return q.order_by(Engin.name).all()


@router.get("/filters")
def engins_tree(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "engin"))) -> List[Dict[str, Any]]:
    """Arbre hiérarchique pour les sélecteurs : typeparc → parcs → engins actifs."""
    out = []
    for tp in db.query(Typeparc).order_by(Typeparc.name).all():
        out.append({
            "id": tp.id,
            "name": tp.name,
            "parcs": [
                {
                    "id": parc.id,
                    "name": parc.name,
                    "engins": [
                        {
                            "id": e.id,
                            "name": e.name,
                            "site": {"id": e.site.id, "name": e.site.name},
                            "initial_heure_chassis": e.initial_heure_chassis,
                        }
                        for e in parc.engins if e.active
                    ],
                }
                for parc in tp.parcs
            ],
        })
    return out


@router.get("/{engin_id}", response_model=EnginDetailOut)
def get_engin(engin_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("read", "engin"))):
    """Fiche engin avec ses anomalies et leur synthèse."""
    engin = get_or_404(db, Engin, engin_id, "Engin")
    anomalies = (
        db.query(Anomalie)
        .filter(Anomalie.engin_id == engin.id)
        .order_by(Anomalie.date_detection.desc(), Anomalie.id.desc())
        .all()
    )
    return EnginDetailOut(
        **EnginOut.model_validate(engin).model_dump(),
        anomalies=[AnomalieOut.model_validate(a) for a in anomalies],
        stats=engin_anomalie_stats(anomalies),
    )


@router.post("", response_model=EnginOut, status_code=201)
def create_engin(body: EnginCreate, db: Session = Depends(get_db), _perm=Depends(require_permission("create", "engin"))):
    name = body.name.strip()
    ensure_name_free(db, Engin, name, "Engin")
    get_or_404(db, Parc, body.parc_id, "Parc")
    get_or_404(db, Site, body.site_id, "Site")
    engin = Engin(**{**body.model_dump(), "name": name})
    db.add(engin)
    commit_or_400(db)
    db.refresh(engin)
    return engin


@router.patch("/{engin_id}", response_model=EnginOut)
def update_engin(
    engin_id: int,
    body: EnginUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "engin")),
):
    engin = get_or_404(db, Engin, engin_id, "Engin")
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in data:
        data["name"] = data["name"].strip()
        ensure_name_free(db, Engin, data["name"], "Engin", exclude_id=engin_id)
    if "parc_id" in data:
        get_or_404(db, Parc, data["parc_id"], "Parc")
    if "site_id" in data:
        get_or_404(db, Site, data["site_id"], "Site")
    apply_updates(engin, data)
    commit_or_400(db)
    db.refresh(engin)
    return engin


@router.delete("/{engin_id}", response_model=OkOut)
def delete_engin(engin_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("delete", "engin"))):
    engin = get_or_404(db, Engin, engin_id, "Engin")
    db.delete(engin)
    commit_or_400(db, "Engin encore utilisé (saisies, anomalies ou organes)")
    return OkOut(message="Engin supprimé")
