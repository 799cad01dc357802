# gmao/routers/saisies.py
"""
⏱️ Saisies HRM (heures de marche, une par engin et par jour)
et HIM (immobilisations par panne, rattachées à une saisie HRM).
"""

import math
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Query as SAQuery, Session

from ..crud import apply_updates, commit_or_400, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Engin, Panne, Parc, Saisiehim, Saisiehrm, Site
from ..schemas import (
    NamedRef,
    OkOut,
    SaisiehimCreate,
    SaisiehimListItem,
    SaisiehimOut,
    SaisiehimPage,
    SaisiehimUpdate,
    SaisiehrmCreate,
    SaisiehrmDetailOut,
    SaisiehrmOut,
    SaisiehrmPage,
    SaisiehrmUpdate,
)

router = APIRouter(tags=["saisies"])

_read = require_permission("read", "saisiehrm")
_create = require_permission("create", "saisiehrm")
_update = require_permission("update", "saisiehrm")
_delete = require_permission("delete", "saisiehrm")

DOUBLON_HRM = "Une saisie HRM existe déjà pour cet engin à cette date"
DOUBLON_HIM = "Cette panne est déjà saisie pour cette saisie HRM"


def paginate(q: SAQuery, page: int, page_size: int, show_all: bool) -> dict:
    """Découpe une requête en page ; `show_all` renvoie tout sur une seule page."""
    total = q.order_by(None).count()
    if show_all:
        items = q.all()
        page, page_size = 1, max(total, 1)
    else:
        items = q.offset((page - 1) * page_size).limit(page_size).all()
    total_pages = math.ceil(total / page_size) if page_size else 0
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_more": page < total_pages,
    }


def _filter_engins(q: SAQuery, engin_id, site_id, parc_id, typeparc_id, engin_col, site_col) -> SAQuery:
    if engin_id:
        q = q.filter(engin_col == engin_id)
    if site_id:
        q = q.filter(site_col == site_id)
    if parc_id or typeparc_id:
        q = q.join(Engin, engin_col == Engin.id)
        if parc_id:
            q = q.filter(Engin.parc_id == parc_id)
        if typeparc_id:
            q = q.join(Parc, Engin.parc_id == Parc.id).filter(Parc.typeparc_id == typeparc_id)
    return q


# -------------------------------------------------
# ⏱️ Saisies HRM
# -------------------------------------------------
@router.get("/saisiehrms", response_model=List[SaisiehrmOut])
def list_saisiehrms(
    engin_id: Optional[int] = Query(None),
    du: Optional[date] = Query(None),
    limit: int = Query(200, ge=1, le=5000),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    q = db.query(Saisiehrm)
    if engin_id:
        q = q.filter(Saisiehrm.engin_id == engin_id)
    if du:
        q = q.filter(Saisiehrm.du == du)
    return q.order_by(Saisiehrm.du.desc(), Saisiehrm.id.desc()).limit(limit).all()


@router.get("/saisiehrms/jour", response_model=SaisiehrmPage)
def list_saisiehrms_jour(
    date_: date = Query(..., alias="date"),
    engin_id: Optional[int] = Query(None),
    site_id: Optional[int] = Query(None),
    parc_id: Optional[int] = Query(None),
    typeparc_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    show_all: bool = Query(False),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    """Saisies HRM d'une journée, filtrées et paginées."""
    q = db.query(Saisiehrm).filter(Saisiehrm.du == date_)
    q = _filter_engins(q, engin_id, site_id, parc_id, typeparc_id, Saisiehrm.engin_id, Saisiehrm.site_id)
    return paginate(q.order_by(Saisiehrm.id), page, page_size, show_all)


@router.get("/saisiehrms/{saisie_id}", response_model=SaisiehrmDetailOut)
def get_saisiehrm(saisie_id: int, db: Session = Depends(get_db), _perm=Depends(_read)):
    return get_or_404(db, Saisiehrm, saisie_id, "Saisie HRM")


def _ensure_hrm_free(db: Session, du: date, engin_id: int, exclude_id: int = 0) -> None:
    exists = (
        db.query(Saisiehrm)
        .filter(Saisiehrm.du == du, Saisiehrm.engin_id == engin_id, Saisiehrm.id != exclude_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=400, detail=DOUBLON_HRM)


@router.post("/saisiehrms", response_model=SaisiehrmOut, status_code=201)
def create_saisiehrm(body: SaisiehrmCreate, db: Session = Depends(get_db), _perm=Depends(_create)):
    get_or_404(db, Engin, body.engin_id, "Engin")
    get_or_404(db, Site, body.site_id, "Site")
    _ensure_hrm_free(db, body.du, body.engin_id)
    saisie = Saisiehrm(**body.model_dump())
    db.add(saisie)
    commit_or_400(db, DOUBLON_HRM)
    db.refresh(saisie)
    return saisie


@router.patch("/saisiehrms/{saisie_id}", response_model=SaisiehrmOut)
def update_saisiehrm(
    saisie_id: int,
    body: SaisiehrmUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(_update),
):
    saisie = get_or_404(db, Saisiehrm, saisie_id, "Saisie HRM")
    data = body.model_dump(exclude_unset=True)
    for key in ("du", "engin_id", "site_id", "hrm"):
        if data.get(key) is None:
            data.pop(key, None)
    if "engin_id" in data:
        get_or_404(db, Engin, data["engin_id"], "Engin")
    if "site_id" in data:
        get_or_404(db, Site, data["site_id"], "Site")
    _ensure_hrm_free(db, data.get("du", saisie.du), data.get("engin_id", saisie.engin_id), exclude_id=saisie_id)
    apply_updates(saisie, data)
    if "engin_id" in data:
        for him in saisie.saisiehims:
            him.engin_id = saisie.engin_id
    commit_or_400(db, DOUBLON_HRM)
    db.refresh(saisie)
    return saisie


@router.delete("/saisiehrms/{saisie_id}", response_model=OkOut)
def delete_saisiehrm(saisie_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    """Supprime la saisie avec ses lignes HIM et leurs consommations."""
    saisie = get_or_404(db, Saisiehrm, saisie_id, "Saisie HRM")
    db.delete(saisie)
    db.commit()
    return OkOut(message="Saisie HRM supprimée")


# -------------------------------------------------
# 🛑 Saisies HIM
# -------------------------------------------------
@router.get("/saisiehims", response_model=List[SaisiehimOut])
def list_saisiehims(
    saisiehrm_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    q = db.query(Saisiehim)
    if saisiehrm_id:
        q = q.filter(Saisiehim.saisiehrm_id == saisiehrm_id)
    return q.order_by(Saisiehim.id).all()


@router.get("/saisiehims/jour", response_model=SaisiehimPage)
def list_saisiehims_jour(
    date_: date = Query(..., alias="date"),
    engin_id: Optional[int] = Query(None),
    site_id: Optional[int] = Query(None),
    parc_id: Optional[int] = Query(None),
    typeparc_id: Optional[int] = Query(None),
    typepanne_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    show_all: bool = Query(False),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    q = (
        db.query(Saisiehim)
        .join(Saisiehrm, Saisiehim.saisiehrm_id == Saisiehrm.id)
        .filter(Saisiehrm.du == date_)
    )
    q = _filter_engins(q, engin_id, site_id, parc_id, typeparc_id, Saisiehrm.engin_id, Saisiehrm.site_id)
    if typepanne_id:
        q = q.join(Panne, Saisiehim.panne_id == Panne.id).filter(Panne.typepanne_id == typepanne_id)
    page_data = paginate(q.order_by(Saisiehim.id), page, page_size, show_all)

    page_data["items"] = [
        SaisiehimListItem.model_validate(h).model_copy(
            update={"du": h.saisiehrm.du, "engin": NamedRef.model_validate(h.saisiehrm.engin)}
        )
        for h in page_data["items"]
    ]
    return page_data


@router.post("/saisiehims", response_model=SaisiehimOut, status_code=201)
def create_saisiehim(body: SaisiehimCreate, db: Session = Depends(get_db), _perm=Depends(_create)):
    parent = get_or_404(db, Saisiehrm, body.saisiehrm_id, "Saisie HRM")
    get_or_404(db, Panne, body.panne_id, "Panne")
    exists = (
        db.query(Saisiehim)
        .filter(Saisiehim.saisiehrm_id == parent.id, Saisiehim.panne_id == body.panne_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=400, detail=DOUBLON_HIM)

    data = body.model_dump()
    data["engin_id"] = data.get("engin_id") or parent.engin_id
    saisie = Saisiehim(**data)
    db.add(saisie)
    commit_or_400(db, DOUBLON_HIM)
    db.refresh(saisie)
    return saisie


@router.patch("/saisiehims/{saisie_id}", response_model=SaisiehimOut)
def update_saisiehim(
    saisie_id: int,
    body: SaisiehimUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(_update),
):
    saisie = get_or_404(db, Saisiehim, saisie_id, "Saisie HIM")
    data = body.model_dump(exclude_unset=True)
    for key in ("panne_id", "him", "ni"):
        if data.get(key) is None:
            data.pop(key, None)
    if "panne_id" in data and data["panne_id"] != saisie.panne_id:
        get_or_404(db, Panne, data["panne_id"], "Panne")
        exists = (
            db.query(Saisiehim)
            .filter(Saisiehim.saisiehrm_id == saisie.saisiehrm_id, Saisiehim.panne_id == data["panne_id"])
            .first()
        )
        if exists:
            raise HTTPException(status_code=400, detail=DOUBLON_HIM)
    apply_updates(saisie, data)
    commit_or_400(db, DOUBLON_HIM)
    db.refresh(saisie)
    return saisie


@router.delete("/saisiehims/{saisie_id}", response_model=OkOut)
def delete_saisiehim(saisie_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    saisie = get_or_404(db, Saisiehim, saisie_id, "Saisie HIM")
    db.delete(saisie)
    db.commit()
    return OkOut(message="Saisie HIM supprimée")
