# gmao/routers/lubrifiants.py
"""
🛢️ Lubrifiants : listes de référence + consommations rattachées aux saisies HIM.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Lubrifiant, Saisiehim, Saisielubrifiant, Typeconsommationlub, Typelubrifiant
from ..schemas import (
    LubrifiantCreate,
    LubrifiantOut,
    NamedRef,
    NameIn,
    OkOut,
    SaisielubrifiantCreate,
    SaisielubrifiantOut,
    SaisielubrifiantUpdate,
)

router = APIRouter(tags=["lubrifiants"])

_read = require_permission("read", "lubrifiant")
_create = require_permission("create", "lubrifiant")
_update = require_permission("update", "lubrifiant")
_delete = require_permission("delete", "lubrifiant")


# -------------------------------------------------
# 📚 Types de lubrifiant
# -------------------------------------------------
@router.get("/typelubrifiants", response_model=List[NamedRef])
def list_typelubrifiants(db: Session = Depends(get_db), _perm=Depends(_read)):
    return db.query(Typelubrifiant).order_by(Typelubrifiant.name).all()


@router.post("/typelubrifiants", response_model=NamedRef, status_code=201)
def create_typelubrifiant(body: NameIn, db: Session = Depends(get_db), _perm=Depends(_create)):
    name = body.name.strip()
    ensure_name_free(db, Typelubrifiant, name, "Type de lubrifiant")
    tl = Typelubrifiant(name=name)
    db.add(tl)
    commit_or_400(db)
    db.refresh(tl)
    return tl


@router.delete("/typelubrifiants/{typelubrifiant_id}", response_model=OkOut)
def delete_typelubrifiant(typelubrifiant_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    tl = get_or_404(db, Typelubrifiant, typelubrifiant_id, "Type de lubrifiant")
    db.delete(tl)
    commit_or_400(db, "Type de lubrifiant encore utilisé")
    return OkOut(message="Type de lubrifiant supprimé")


# -------------------------------------------------
# 🛢️ Lubrifiants
# -------------------------------------------------
@router.get("/lubrifiants", response_model=List[LubrifiantOut])
def list_lubrifiants(db: Session = Depends(get_db), _perm=Depends(_read)):
    return db.query(Lubrifiant).order_by(Lubrifiant.name).all()


@router.post("/lubrifiants", response_model=LubrifiantOut, status_code=201)
def create_lubrifiant(body: LubrifiantCreate, db: Session = Depends(get_db), _perm=Depends(_create)):
    name = body.name.strip()
    ensure_name_free(db, Lubrifiant, name, "Lubrifiant")
    get_or_404(db, Typelubrifiant, body.typelubrifiant_id, "Type de lubrifiant")
    lub = Lubrifiant(name=name, typelubrifiant_id=body.typelubrifiant_id)
    db.add(lub)
    commit_or_400(db)
    db.refresh(lub)
    return lub


@router.delete("/lubrifiants/{lubrifiant_id}", response_model=OkOut)
def delete_lubrifiant(lubrifiant_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    lub = get_or_404(db, Lubrifiant, lubrifiant_id, "Lubrifiant")
    db.delete(lub)
    commit_or_400(db, "Lubrifiant encore utilisé dans des saisies")
    return OkOut(message="Lubrifiant supprimé")


# -------------------------------------------------
# 🧾 Types de consommation
# -------------------------------------------------
@router.get("/types-consommation", response_model=List[NamedRef])
def list_types_consommation(db: Session = Depends(get_db), _perm=Depends(_read)):
    return db.query(Typeconsommationlub).order_by(Typeconsommationlub.name).all()


@router.post("/types-consommation", response_model=NamedRef, status_code=201)
def create_type_consommation(body: NameIn, db: Session = Depends(get_db), _perm=Depends(_create)):
    name = body.name.strip()
    ensure_name_free(db, Typeconsommationlub, name, "Type de consommation")
    tc = Typeconsommationlub(name=name)
    db.add(tc)
    commit_or_400(db)
    db.refresh(tc)
    return tc


@router.delete("/types-consommation/{type_id}", response_model=OkOut)
def delete_type_consommation(type_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    tc = get_or_404(db, Typeconsommationlub, type_id, "Type de consommation")
    db.delete(tc)
    commit_or_400(db, "Type de consommation encore utilisé")
    return OkOut(message="Type de consommation supprimé")


# -------------------------------------------------
# ⛽ Consommations (saisielubrifiant)
# -------------------------------------------------
@router.post("/saisielubrifiants", response_model=SaisielubrifiantOut, status_code=201)
def create_saisielubrifiant(body: SaisielubrifiantCreate, db: Session = Depends(get_db), _perm=Depends(_create)):
    get_or_404(db, Saisiehim, body.saisiehim_id, "Saisie HIM")
    get_or_404(db, Lubrifiant, body.lubrifiant_id, "Lubrifiant")
    if body.typeconsommationlub_id:
        get_or_404(db, Typeconsommationlub, body.typeconsommationlub_id, "Type de consommation")
    saisie = Saisielubrifiant(**body.model_dump())
    db.add(saisie)
    commit_or_400(db)
    db.refresh(saisie)
    return saisie


@router.patch("/saisielubrifiants/{saisie_id}", response_model=SaisielubrifiantOut)
def update_saisielubrifiant(
    saisie_id: int,
    body: SaisielubrifiantUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(_update),
):
    saisie = get_or_404(db, Saisielubrifiant, saisie_id, "Consommation")
    data = body.model_dump(exclude_unset=True)
    if data.get("lubrifiant_id"):
        get_or_404(db, Lubrifiant, data["lubrifiant_id"], "Lubrifiant")
    else:
        data.pop("lubrifiant_id", None)
    if data.get("typeconsommationlub_id"):
        get_or_404(db, Typeconsommationlub, data["typeconsommationlub_id"], "Type de consommation")
    if data.get("qte") is None:
        data.pop("qte", None)
    apply_updates(saisie, data)
    commit_or_400(db)
    db.refresh(saisie)
    return saisie


@router.delete("/saisielubrifiants/{saisie_id}", response_model=OkOut)
def delete_saisielubrifiant(saisie_id: int, db: Session = Depends(get_db), _perm=Depends(_delete)):
    saisie = get_or_404(db, Saisielubrifiant, saisie_id, "Consommation")
    db.delete(saisie)
    db.commit()
    return OkOut(message="Consommation supprimée")
