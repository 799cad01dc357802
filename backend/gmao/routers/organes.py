# gmao/routers/organes.py
"""
⚙️ Organes (moteurs, boîtes, ...) : types, organes et mouvements pose / dépose.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Engin, MvtOrgane, Organe, TypeMvt, TypeOrgane
from ..schemas import (
    MvtOrganeCreate,
    MvtOrganeOut,
    NamedRef,
    NameIn,
    OkOut,
    OrganeCreate,
    OrganeOut,
    OrganeUpdate,
)

router = APIRouter(tags=["organes"])

_read = require_permission("read", "organe")
_create = require_permission("create", "organe")
_update = require_permission("update", "organe")
_delete = require_permission("delete", "organe")


# -------------------------------------------------
# 📚 Types d'organe
# -------------------------------------------------
@router.get("/type-organes", response_model=List[NamedRef])
def list_type_organes(db: Session = Depends(get_db), _perm=Depends(_read)):
    return db.query(TypeOrgane).order_by(TypeOrgane.name).all()


@router.post("/type-organes", response_model=NamedRef, status_code=201)
def create_type_organe(body: NameIn, db: Session = Depends(get_db), _perm=Depends(_create)):
    name = body.name.strip()
    ensure_name_free(db, TypeOrgane, name, "Type d'organe")
    to = TypeOrgane(name=name)
    db.add(to)
    commit_or_400(db)
    db.refresh(to)
    return to


@router.patch("/type-organes/{type_id}", response_model=NamedRef)
def update_type_organe(type_id: int, body: NameIn, db: Session = Depends(get_db), _perm=Depends(_update)):
    to = get_or_404(db, TypeOrgane, type_id, "Type d'organe")
    name = body.name.strip()
    ensure_name_free(db, TypeOrgane, name, "Type d'organe", exclude_id=type_id)
    to.name = name
    commit_or_400(db)
    db.refresh(to)
    return to


@router.delete("/type-organes/{type_id}", response_model=OkOut)
def delete_type_organe(type_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    to = get_or_404(db, TypeOrgane, type_id, "Type d'organe")
    db.delete(to)
    commit_or_400(db, "Type d'organe encore utilisé")
    return OkOut(message="Type d'organe supprimé")


# -------------------------------------------------
# ⚙️ Organes
# -------------------------------------------------
@router.get("/organes", response_model=List[OrganeOut])
def list_organes(
    type_organe_id: Optional[int] = Query(None),
    active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    q = db.query(Organe)
    if type_organe_id:
        q = q.filter(Organe.type_organe_id == type_organe_id)
    if active is not None:
        q = q.filter(Organe.active == active)
    if search:
        q = q.filter(Organe.name.ilike(f"%{search.strip()}%"))
    return q.order_by(Organe.name).all()


@router.get("/organes/{organe_id}", response_model=OrganeOut)
def get_organe(organe_id: int, db: Session = Depends(get_db), _perm=Depends(_read)):
    return get_or_404(db, Organe, organe_id, "Organe")


@router.post("/organes", response_model=OrganeOut, status_code=201)
def create_organe(body: OrganeCreate, db: Session = Depends(get_db), _perm=Depends(_create)):
    name = body.name.strip()
    ensure_name_free(db, Organe, name, "Organe")
    get_or_404(db, TypeOrgane, body.type_organe_id, "Type d'organe")
    organe = Organe(name=name, type_organe_id=body.type_organe_id, active=body.active)
    db.add(organe)
    commit_or_400(db)
    db.refresh(organe)
    return organe


@router.patch("/organes/{organe_id}", response_model=OrganeOut)
def update_organe(organe_id: int, body: OrganeUpdate, db: Session = Depends(get_db), _perm=Depends(_update)):
    organe = get_or_404(db, Organe, organe_id, "Organe")
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in data:
        data["name"] = data["name"].strip()
        ensure_name_free(db, Organe, data["name"], "Organe", exclude_id=organe_id)
    if "type_organe_id" in data:
        get_or_404(db, TypeOrgane, data["type_organe_id"], "Type d'organe")
    apply_updates(organe, data)
    commit_or_400(db)
    db.refresh(organe)
    return organe


@router.delete("/organes/{organe_id}", response_model=OkOut)
def delete_organe(organe_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    """Supprime l'organe et son historique de mouvements."""
    organe = get_or_404(db, Organe, organe_id, "Organe")
    db.delete(organe)
    db.commit()
    return OkOut(message="Organe supprimé")


# -------------------------------------------------
# 🔁 Mouvements (pose / dépose)
# -------------------------------------------------
@router.get("/mvt-organes", response_model=List[MvtOrganeOut])
def list_mouvements(
    organe_id: Optional[int] = Query(None),
    engin_id: Optional[int] = Query(None),
    type_mvt: Optional[TypeMvt] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(_read),
):
    q = db.query(MvtOrgane)
    if organe_id:
        q = q.filter(MvtOrgane.organe_id == organe_id)
    if engin_id:
        q = q.filter(MvtOrgane.engin_id == engin_id)
    if type_mvt:
        q = q.filter(MvtOrgane.type_mvt == type_mvt)
    return q.order_by(MvtOrgane.date_mvt.desc(), MvtOrgane.id.desc()).all()


@router.post("/mvt-organes", response_model=MvtOrganeOut, status_code=201)
def create_mouvement(body: MvtOrganeCreate, db: Session = Depends(get_db), _perm=Depends(_create)):
    get_or_404(db, Organe, body.organe_id, "Organe")
    get_or_404(db, Engin, body.engin_id, "Engin")
    mvt = MvtOrgane(**body.model_dump())
    db.add(mvt)
    commit_or_400(db)
    db.refresh(mvt)
    return mvt


@router.delete("/mvt-organes/{mvt_id}", response_model=OkOut)
def delete_mouvement(mvt_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    mvt = get_or_404(db, MvtOrgane, mvt_id, "Mouvement")
    db.delete(mvt)
    db.commit()
    return OkOut(message="Mouvement supprimé")
