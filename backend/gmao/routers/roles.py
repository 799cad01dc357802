# gmao/routers/roles.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud import commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Permission, Role, User
from ..rbac import SUPER_ADMIN_ROLE_NAME, is_super_admin
from ..schemas import OkOut, RoleCreate, RoleOut, RoleUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/roles", tags=["roles"])


def _permissions_or_404(db: Session, ids: List[int]) -> List[Permission]:
    perms = db.query(Permission).filter(Permission.id.in_(ids)).all()
    missing = set(ids) - {p.id for p in perms}
    if missing:
        raise HTTPException(status_code=404, detail=f"Permission(s) introuvable(s) : {sorted(missing)}")
    return perms


@router.get("", response_model=List[RoleOut])
def list_roles(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "role"))):
    return db.query(Role).order_by(Role.name).all()


@router.get("/{role_id}", response_model=RoleOut)
def get_role(role_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("read", "role"))):
    return get_or_404(db, Role, role_id, "Rôle")


@router.post("", response_model=RoleOut, status_code=201)
def create_role(body: RoleCreate, db: Session = Depends(get_db), _perm=Depends(require_permission("create", "role"))):
    name = body.name.strip()
    ensure_name_free(db, Role, name, "Rôle")
    role = Role(
        name=name,
        description=body.description,
        permissions=_permissions_or_404(db, body.permission_ids),
    )
    db.add(role)
    commit_or_400(db)
    db.refresh(role)
    return role


@router.patch("/{role_id}", response_model=RoleOut)
def update_role(
    role_id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(require_permission("update", "role")),
):
    role = get_or_404(db, Role, role_id, "Rôle")
    data = body.model_dump(exclude_unset=True)

    if data.get("name"):
        name = data["name"].strip()
        touches_super_admin = SUPER_ADMIN_ROLE_NAME in (role.name, name) and name != role.name
        if touches_super_admin and not is_super_admin(current):
            raise HTTPException(status_code=403, detail="Rôle super admin réservé au super admin")
        ensure_name_free(db, Role, name, "Rôle", exclude_id=role_id)
        role.name = name
    if "description" in data:
        role.description = data["description"]

    if data.get("permission_ids") is not None:
        wanted = {p.id: p for p in _permissions_or_404(db, data["permission_ids"])}
        existing = {p.id for p in role.permissions}
        # diff : on retire ce qui n'est plus demandé, on ajoute le reste
        for perm in [p for p in role.permissions if p.id not in wanted]:
            role.permissions.remove(perm)
        for pid, perm in wanted.items():
            if pid not in existing:
                role.permissions.append(perm)

    commit_or_400(db)
    db.refresh(role)
    return role


@router.delete("/{role_id}", response_model=OkOut)
def delete_role(role_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("delete", "role"))):
    role = get_or_404(db, Role, role_id, "Rôle")
    if role.name == SUPER_ADMIN_ROLE_NAME:
        raise HTTPException(status_code=400, detail="Le rôle super admin ne peut pas être supprimé")
    name = role.name
    db.delete(role)
    db.commit()
    logger.info("🗑️ Rôle %s supprimé", name)
    return OkOut(message="Rôle supprimé")
