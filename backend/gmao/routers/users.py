# gmao/routers/users.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud import commit_or_400, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Role, User
from ..rbac import SUPER_ADMIN_ROLE_NAME, is_super_admin
from ..schemas import OkOut, UserCreate, UserOut, UserUpdate
from ..security import hash_password

router = APIRouter(prefix="/users", tags=["users"])


def _roles_or_404(db: Session, role_ids: List[int]) -> List[Role]:
    roles = db.query(Role).filter(Role.id.in_(role_ids)).all()
    missing = set(role_ids) - {r.id for r in roles}
    if missing:
        raise HTTPException(status_code=404, detail=f"Rôle(s) introuvable(s) : {sorted(missing)}")
    return roles


def _guard_super_admin_role(current: User, before: List[Role], after: List[Role]) -> None:
    """Seul un super admin donne ou retire le rôle super admin."""
    changed = {r.name for r in before} ^ {r.name for r in after}
    if SUPER_ADMIN_ROLE_NAME in changed and not is_super_admin(current):
        raise HTTPException(status_code=403, detail="Rôle super admin réservé au super admin")


def _ensure_email_free(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(User).filter(User.email == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="Cet email est déjà utilisé")


@router.get("", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "user"))):
    return db.query(User).order_by(User.name, User.email).all()


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("read", "user"))):
    return get_or_404(db, User, user_id, "Utilisateur")


@router.post("", response_model=UserOut, status_code=201)
def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    current: User = Depends(require_permission("create", "user")),
):
    email = body.email.lower()
    _ensure_email_free(db, email)
    roles = _roles_or_404(db, body.role_ids)
    _guard_super_admin_role(current, [], roles)
    user = User(
        name=body.name,
        email=email,
        hashed_password=hash_password(body.password),
        active=body.active,
        roles=roles,
    )
    db.add(user)
    commit_or_400(db, "Cet email est déjà utilisé")
    db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: UserUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(require_permission("update", "user")),
):
    user = get_or_404(db, User, user_id, "Utilisateur")
    # compte super admin : modifiable seulement par un super admin
    _guard_super_admin_role(current, list(user.roles), [])
    data = body.model_dump(exclude_unset=True)

    if data.get("email"):
        email = data["email"].lower()
        _ensure_email_free(db, email, exclude_id=user_id)
        user.email = email
    if data.get("password"):
        user.hashed_password = hash_password(data["password"])
    if "name" in data:
        user.name = data["name"]
    if data.get("active") is not None:
        user.active = data["active"]
    if data.get("role_ids") is not None:
        roles = _roles_or_404(db, data["role_ids"])
        _guard_super_admin_role(current, list(user.roles), roles)
        user.roles = roles

    commit_or_400(db)
    db.refresh(user)
    return user


@router.delete("/{user_id}", response_model=OkOut)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current: User = Depends(require_permission("delete", "user")),
):
    user = get_or_404(db, User, user_id, "Utilisateur")
    _guard_super_admin_role(current, list(user.roles), [])
    db.delete(user)
    db.commit()
    return OkOut(message="Utilisateur supprimé")
