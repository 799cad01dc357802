# gmao/routers/typepannes.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Typepanne
from ..schemas import OkOut, TypepanneCreate, TypepanneOut, TypepanneUpdate

router = APIRouter(prefix="/typepannes", tags=["typepannes"])


def _out(tp: Typepanne) -> TypepanneOut:
    return TypepanneOut(id=tp.id, name=tp.name, description=tp.description, pannes_count=len(tp.pannes))


@router.get("", response_model=List[TypepanneOut])
def list_typepannes(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "typepanne"))):
    return [_out(tp) for tp in db.query(Typepanne).order_by(Typepanne.name).all()]


@router.get("/{typepanne_id}", response_model=TypepanneOut)
def get_typepanne(
    typepanne_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("read", "typepanne")),
):
    return _out(get_or_404(db, Typepanne, typepanne_id, "Type de panne"))


@router.post("", response_model=TypepanneOut, status_code=201)
def create_typepanne(
    body: TypepanneCreate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("create", "typepanne")),
):
    name = body.name.strip()
    ensure_name_free(db, Typepanne, name, "Type de panne")
    tp = Typepanne(name=name, description=body.description)
    db.add(tp)
    commit_or_400(db)
    db.refresh(tp)
    return _out(tp)


@router.patch("/{typepanne_id}", response_model=TypepanneOut)
def update_typepanne(
    typepanne_id: int,
    body: TypepanneUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "typepanne")),
):
    tp = get_or_404(db, Typepanne, typepanne_id, "Type de panne")
    data = body.model_dump(exclude_unset=True)
    if data.get("name"):
        data["name"] = data["name"].strip()
        ensure_name_free(db, Typepanne, data["name"], "Type de panne", exclude_id=typepanne_id)
    else:
        data.pop("name", None)
    apply_updates(tp, data)
    commit_or_400(db)
    db.refresh(tp)
    return _out(tp)


@router.delete("/{typepanne_id}", response_model=OkOut)
def delete_typepanne(
    typepanne_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("delete", "typepanne")),
):
    tp = get_or_404(db, Typepanne, typepanne_id, "Type de panne")
    if tp.pannes:
        raise HTTPException(
            status_code=400,
            detail=f"Impossible de supprimer : {len(tp.pannes)} panne(s) utilisent ce type",
        )
    db.delete(tp)
    commit_or_400(db)
    return OkOut(message="Type de panne supprimé")
