# gmao/routers/permissions.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud import commit_or_400, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Permission, Role
from ..rbac import assign_permission_to_role, permission_string, remove_permission_from_role
from ..schemas import OkOut, PermissionCreate, PermissionOut, PermissionUpdate

router = APIRouter(prefix="/permissions", tags=["permissions"])


def _ensure_pair_free(db: Session, resource: str, action: str, exclude_id: int = 0) -> None:
    exists = (
        db.query(Permission)
        .filter(Permission.resource == resource, Permission.action == action, Permission.id != exclude_id)
        .first()
    )
    if exists:
        raise HTTPException(
            status_code=409,
            detail=f"La permission {permission_string(action, resource)} existe déjà",
        )


@router.get("", response_model=List[PermissionOut])
def list_permissions(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "permission"))):
    return db.query(Permission).order_by(Permission.resource, Permission.action).all()


@router.get("/{permission_id}", response_model=PermissionOut)
def get_permission(
    permission_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("read", "permission")),
):
    return get_or_404(db, Permission, permission_id, "Permission")


@router.post("", response_model=PermissionOut, status_code=201)
def create_permission(
    body: PermissionCreate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("create", "permission")),
):
    resource = body.resource.strip().lower()
    _ensure_pair_free(db, resource, body.action)
    perm = Permission(
        name=body.name or permission_string(body.action, resource),
        resource=resource,
        action=body.action,
        description=body.description,
    )
    db.add(perm)
    commit_or_400(db)
    db.refresh(perm)
    return perm


@router.patch("/{permission_id}", response_model=PermissionOut)
def update_permission(
    permission_id: int,
    body: PermissionUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "permission")),
):
    perm = get_or_404(db, Permission, permission_id, "Permission")
    data = body.model_dump(exclude_unset=True)
    resource = (data.get("resource") or perm.resource).strip().lower()
    action = data.get("action") or perm.action
    if (resource, action) != (perm.resource, perm.action):
        _ensure_pair_free(db, resource, action, exclude_id=permission_id)

    perm.resource = resource
    perm.action = action
    if "name" in data:
        perm.name = data["name"]
    if "description" in data:
        perm.description = data["description"]
    commit_or_400(db)
    db.refresh(perm)
    return perm


@router.delete("/{permission_id}", response_model=OkOut)
def delete_permission(
    permission_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("delete", "permission")),
):
    perm = get_or_404(db, Permission, permission_id, "Permission")
    db.delete(perm)
    db.commit()
    return OkOut(message="Permission supprimée")


# -------------------------------------------------
# 🔗 Permission ↔ rôle
# -------------------------------------------------
@router.post("/{permission_id}/roles/{role_id}", response_model=OkOut)
def assign_to_role(
    permission_id: int,
    role_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "role")),
):
    perm = get_or_404(db, Permission, permission_id, "Permission")
    role = get_or_404(db, Role, role_id, "Rôle")
    if not assign_permission_to_role(db, perm, role):
        return OkOut(message="Permission déjà attribuée à ce rôle")
    return OkOut(message="Permission attribuée au rôle")


@router.delete("/{permission_id}/roles/{role_id}", response_model=OkOut)
def remove_from_role(
    permission_id: int,
    role_id: int,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "role")),
):
    perm = get_or_404(db, Permission, permission_id, "Permission")
    role = get_or_404(db, Role, role_id, "Rôle")
    if not remove_permission_from_role(db, perm, role):
        raise HTTPException(status_code=404, detail="Cette permission n'est pas attribuée à ce rôle")
    return OkOut(message="Permission retirée du rôle")
