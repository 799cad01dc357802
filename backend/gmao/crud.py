# gmao/crud.py
"""
🧰 Petits helpers partagés par les routeurs CRUD :
- lecture d'une ligne ou 404
- unicité d'un nom (409)
- commit avec traduction des IntegrityError en 400
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_404(db: Session, model: Type[T], obj_id: int, label: str) -> T:
    obj = db.get(model, obj_id)
    if not obj:
        raise HTTPException(status_code=404, detail=f"{label} introuvable")
    return obj


def ensure_name_free(
    db: Session, model, name: str, label: str, exclude_id: Optional[int] = None
) -> None:
    """409 si un autre enregistrement porte déjà ce nom."""
    q = db.query(model).filter(model.name == name)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail=f"{label} '{name}' existe déjà")


def apply_updates(obj: Any, data: Dict[str, Any]) -> None:
    for k, v in data.items():
        setattr(obj, k, v)


def commit_or_400(db: Session, detail: str = "Contrainte d'intégrité violée") -> None:
    """Commit ; une IntegrityError devient une 400 lisible après rollback."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("⚠️ IntegrityError: %s", e.orig)
        raise HTTPException(status_code=400, detail=detail)
