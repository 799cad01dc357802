# gmao/routers/parcs.py
"""
🏗️ Parcs : CRUD + rattachement des types de panne.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..crud import commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Parc, Typepanne, Typeparc
from ..schemas import (
    EnginOut,
    NamedRef,
    ObjectifOut,
    OkOut,
    ParcCreate,
    ParcDetailOut,
    ParcOut,
    ParcUpdate,
)

router = APIRouter(prefix="/parcs", tags=["parcs"])


def _typepannes_or_404(db: Session, ids: List[int]) -> List[Typepanne]:
    if not ids:
        return []
    tps = db.query(Typepanne).filter(Typepanne.id.in_(ids)).all()
    missing = set(ids) - {t.id for t in tps}
    if missing:
        raise HTTPException(status_code=404, detail=f"Type(s) de panne introuvable(s) : {sorted(missing)}")
    return tps


def _out(parc: Parc) -> ParcOut:
    return ParcOut(
        id=parc.id,
        name=parc.name,
        typeparc_id=parc.typeparc_id,
        typeparc=NamedRef.model_validate(parc.typeparc),
        engins_count=len(parc.engins),
        typepannes=[NamedRef.model_validate(t) for t in parc.typepannes],
    )


@router.get("", response_model=List[ParcOut])
def list_parcs(
    typeparc_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("read", "parc")),
):
    q = db.query(Parc)
    if typeparc_id:
        q = q.filter(Parc.typeparc_id == typeparc_id)
    return [_out(p) for p in q.order_by(Parc.name).all()]


@router.get("/{parc_id}", response_model=ParcDetailOut)
def get_parc(parc_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("read", "parc"))):
    parc = get_or_404(db, Parc, parc_id, "Parc")
    return ParcDetailOut(
        **_out(parc).model_dump(),
        engins=[EnginOut.model_validate(e) for e in parc.engins],
        objectifs=[
            ObjectifOut.model_validate(o)
            for o in sorted(parc.objectifs, key=lambda o: (-o.annee, o.site_id))
        ],
    )


@router.post("", response_model=ParcOut, status_code=201)
def create_parc(body: ParcCreate, db: Session = Depends(get_db), _perm=Depends(require_permission("create", "parc"))):
    name = body.name.strip()
    ensure_name_free(db, Parc, name, "Parc")
    get_or_404(db, Typeparc, body.typeparc_id, "Type de parc")
    parc = Parc(
        name=name,
        typeparc_id=body.typeparc_id,
        typepannes=_typepannes_or_404(db, body.typepanne_ids),
    )
    db.add(parc)
    commit_or_400(db)
    db.refresh(parc)
    return _out(parc)


@router.patch("/{parc_id}", response_model=ParcOut)
def update_parc(
    parc_id: int,
    body: ParcUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "parc")),
):
    parc = get_or_404(db, Parc, parc_id, "Parc")
    data = body.model_dump(exclude_unset=True)
    if data.get("name"):
        name = data["name"].strip()
        ensure_name_free(db, Parc, name, "Parc", exclude_id=parc_id)
        parc.name = name
    if data.get("typeparc_id"):
        get_or_404(db, Typeparc, data["typeparc_id"], "Type de parc")
        parc.typeparc_id = data["typeparc_id"]
    if data.get("typepanne_ids") is not None:
        parc.typepannes = _typepannes_or_404(db, data["typepanne_ids"])
    commit_or_400(db)
    db.refresh(parc)
    return _out(parc)


@router.delete("/{parc_id}", response_model=OkOut)
def delete_parc(parc_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("delete", "parc"))):
    parc = get_or_404(db, Parc, parc_id, "Parc")
    db.delete(parc)
    commit_or_400(db, "Parc encore utilisé par des engins")
    return OkOut(message="Parc supprimé")


# -------------------------------------------------
# 🔧 Types de panne du parc
# -------------------------------------------------
@router.post("/{parc_id}/typepannes/{typepanne_id}", response_model=ParcOut)
def attach_typepanne(
    parc_id: int,
    typepanne_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "parc")),
):
    parc = get_or_404(db, Parc, parc_id, "Parc")
    tp = get_or_404(db, Typepanne, typepanne_id, "Type de panne")
    if tp not in parc.typepannes:
        parc.typepannes.append(tp)
        db.commit()
        db.refresh(parc)
    return _out(parc)


@router.delete("/{parc_id}/typepannes/{typepanne_id}", response_model=ParcOut)
def detach_typepanne(
    parc_id: int,
    typepanne_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "parc")),
):
    parc = get_or_404(db, Parc, parc_id, "Parc")
    tp = get_or_404(db, Typepanne, typepanne_id, "Type de panne")
    if tp in parc.typepannes:
        parc.typepannes.remove(tp)
        db.commit()
        db.refresh(parc)
    return _out(parc)
