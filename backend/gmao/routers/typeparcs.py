# gmao/routers/typeparcs.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud import commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Typeparc
from ..schemas import OkOut, TypeparcCreate, TypeparcOut, TypeparcUpdate

router = APIRouter(prefix="/typeparcs", tags=["typeparcs"])


def _out(tp: Typeparc) -> TypeparcOut:
    return TypeparcOut(id=tp.id, name=tp.name, total_engins=sum(len(p.engins) for p in tp.parcs))


@router.get("", response_model=List[TypeparcOut])
def list_typeparcs(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "typeparc"))):
    return [_out(tp) for tp in db.query(Typeparc).order_by(Typeparc.name).all()]


@router.get("/{typeparc_id}", response_model=TypeparcOut)
def get_typeparc(
    typeparc_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("read", "typeparc")),
):
    return _out(get_or_404(db, Typeparc, typeparc_id, "Type de parc"))


@router.post("", response_model=TypeparcOut, status_code=201)
def create_typeparc(
    body: TypeparcCreate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("create", "typeparc")),
):
    name = body.name.strip()
    ensure_name_free(db, Typeparc, name, "Type de parc")
    tp = Typeparc(name=name)
    db.add(tp)
    commit_or_400(db)
    db.refresh(tp)
    return _out(tp)


@router.patch("/{typeparc_id}", response_model=TypeparcOut)
def update_typeparc(
    typeparc_id: int,
    body: TypeparcUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "typeparc")),
):
    tp = get_or_404(db, Typeparc, typeparc_id, "Type de parc")
    if body.name:
        name = body.name.strip()
        ensure_name_free(db, Typeparc, name, "Type de parc", exclude_id=typeparc_id)
        tp.name = name
    commit_or_400(db)
    db.refresh(tp)
    return _out(tp)


@router.delete("/{typeparc_id}", response_model=OkOut)
def delete_typeparc(
    typeparc_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("delete", "typeparc")),
):
    tp = get_or_404(db, Typeparc, typeparc_id, "Type de parc")
    db.delete(tp)
    commit_or_400(db, "Type de parc encore utilisé par des parcs")
    return OkOut(message="Type de parc supprimé")
