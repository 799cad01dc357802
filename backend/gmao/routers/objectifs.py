# gmao/routers/objectifs.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Objectif, Parc, Site
from ..schemas import ObjectifCreate, ObjectifOut, ObjectifUpdate, OkOut

router = APIRouter(prefix="/objectifs", tags=["objectifs"])

DOUBLON = "Un objectif existe déjà pour cette année, ce parc et ce site"


def _ensure_unique(db: Session, annee: int, parc_id: int, site_id: int, exclude_id: int = 0) -> None:
    exists = (
        db.query(Objectif)
        .filter(
            Objectif.annee == annee,
            Objectif.parc_id == parc_id,
            Objectif.site_id == site_id,
            Objectif.id != exclude_id,
        )
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail=DOUBLON)


@router.get("", response_model=List[ObjectifOut])
def list_objectifs(
    annee: Optional[int] = Query(None),
    parc_id: Optional[int] = Query(None),
    site_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("read", "objectif")),
):
    q = db.query(Objectif)
    if annee:
        q = q.filter(Objectif.annee == annee)
    if parc_id:
        q = q.filter(Objectif.parc_id == parc_id)
    if site_id:
        q = q.filter(Objectif.site_id == site_id)
    return q.order_by(Objectif.annee.desc(), Objectif.parc_id, Objectif.site_id).all()


@router.post("", response_model=ObjectifOut, status_code=201)
def create_objectif(
    body: ObjectifCreate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("create", "objectif")),
):
    get_or_404(db, Parc, body.parc_id, "Parc")
    get_or_404(db, Site, body.site_id, "Site")
    _ensure_unique(db, body.annee, body.parc_id, body.site_id)
    obj = Objectif(**body.model_dump())
    db.add(obj)
    commit_or_400(db, DOUBLON)
    db.refresh(obj)
    return obj


@router.patch("/{objectif_id}", response_model=ObjectifOut)
def update_objectif(
    objectif_id: int,
    body: ObjectifUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "objectif")),
):
    obj = get_or_404(db, Objectif, objectif_id, "Objectif")
    data = body.model_dump(exclude_unset=True)
    annee = data.get("annee") or obj.annee
    parc_id = data.get("parc_id") or obj.parc_id
    site_id = data.get("site_id") or obj.site_id
    if data.get("parc_id"):
        get_or_404(db, Parc, parc_id, "Parc")
    if data.get("site_id"):
        get_or_404(db, Site, site_id, "Site")
    _ensure_unique(db, annee, parc_id, site_id, exclude_id=objectif_id)

    # les clés nulles de (annee, parc, site) sont ignorées, les indicateurs peuvent être effacés
    apply_updates(obj, {k: v for k, v in data.items() if v is not None or k not in ("annee", "parc_id", "site_id")})
    commit_or_400(db, DOUBLON)
    db.refresh(obj)
    return obj


@router.delete("/{objectif_id}", response_model=OkOut)
def delete_objectif(
    objectif_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("delete", "objectif")),
):
    obj = get_or_404(db, Objectif, objectif_id, "Objectif")
    db.delete(obj)
    db.commit()
    return OkOut(message="Objectif supprimé")
