# gmao/routers/pannes.py
"""
🔧 Pannes : catalogue + statistiques d'usage dans les saisies HIM.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Panne, Saisiehim, Saisiehrm, Typepanne
from ..schemas import NamedRef, OkOut, PanneCreate, PanneOut, PanneUpdate
from ..statistiques import panne_stats

router = APIRouter(prefix="/pannes", tags=["pannes"])


def _usage(db: Session, panne_ids: List[int]) -> Dict[int, tuple]:
    """{panne_id: (nb interventions, date de la dernière saisie)}"""
    if not panne_ids:
        return {}
    rows = (
        db.query(Saisiehim.panne_id, func.count(Saisiehim.id), func.max(Saisiehrm.du))
        .join(Saisiehrm, Saisiehim.saisiehrm_id == Saisiehrm.id)
        .filter(Saisiehim.panne_id.in_(panne_ids))
        .group_by(Saisiehim.panne_id)
        .all()
    )
    return {pid: (n, last) for pid, n, last in rows}


def _out(panne: Panne, usage: Optional[tuple] = None) -> PanneOut:
    n, last = usage or (0, None)
    return PanneOut(
        id=panne.id,
        name=panne.name,
        description=panne.description,
        typepanne_id=panne.typepanne_id,
        typepanne=NamedRef.model_validate(panne.typepanne),
        interventions_count=n,
        derniere_saisie=last,
    )


@router.get("", response_model=List[PanneOut])
def list_pannes(
    search: Optional[str] = Query(None),
    typepanne_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("read", "panne")),
):
    q = db.query(Panne)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Panne.name.ilike(like), Panne.description.ilike(like)))
    if typepanne_id:
        q = q.filter(Panne.typepanne_id == typepanne_id)
    pannes = q.order_by(Panne.name).all()
    usage = _usage(db, [p.id for p in pannes])
    return [_out(p, usage.get(p.id)) for p in pannes]


@router.get("/stats")
def stats_pannes(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "panne"))) -> Dict[str, Any]:
    return panne_stats(db)


@router.get("/{panne_id}", response_model=PanneOut)
def get_panne(panne_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("read", "panne"))):
    panne = get_or_404(db, Panne, panne_id, "Panne")
    return _out(panne, _usage(db, [panne.id]).get(panne.id))


@router.post("", response_model=PanneOut, status_code=201)
def create_panne(body: PanneCreate, db: Session = Depends(get_db), _perm=Depends(require_permission("create", "panne"))):
    name = body.name.strip()
    ensure_name_free(db, Panne, name, "Panne")
    get_or_404(db, Typepanne, body.typepanne_id, "Type de panne")
    panne = Panne(name=name, description=body.description, typepanne_id=body.typepanne_id)
    db.add(panne)
    commit_or_400(db)
    db.refresh(panne)
    return _out(panne)


@router.patch("/{panne_id}", response_model=PanneOut)
def update_panne(
    panne_id: int,
    body: PanneUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "panne")),
):
    panne = get_or_404(db, Panne, panne_id, "Panne")
    data = body.model_dump(exclude_unset=True)
    if data.get("name"):
        data["name"] = data["name"].strip()
        ensure_name_free(db, Panne, data["name"], "Panne", exclude_id=panne_id)
    else:
        data.pop("name", None)
    if data.get("typepanne_id"):
        get_or_404(db, Typepanne, data["typepanne_id"], "Type de panne")
    else:
        data.pop("typepanne_id", None)
    apply_updates(panne, data)
    commit_or_400(db)
    db.refresh(panne)
    return _out(panne, _usage(db, [panne.id]).get(panne.id))


@router.delete("/{panne_id}", response_model=OkOut)
def delete_panne(panne_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("delete", "panne"))):
    panne = get_or_404(db, Panne, panne_id, "Panne")
    db.delete(panne)
    commit_or_400(db, "Panne encore utilisée dans des saisies HIM")
    return OkOut(message="Panne supprimée")
