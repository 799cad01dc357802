# gmao/deps.py
"""Dépendances FastAPI : utilisateur courant et contrôle des permissions."""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .db import get_db
from .models import User
from .rbac import has_permission, is_super_admin
from .security import decode_token

# -------------------------------------------------
# 🔐 Auth helpers (JWT + permissions)
# -------------------------------------------------
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """Décode le JWT, récupère l'utilisateur en BDD. 401 si invalide ou inactif."""
    payload = decode_token(token)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token invalide")
    user = db.get(User, int(payload["sub"]))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Utilisateur introuvable")
    if not user.active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Compte désactivé")
    return user


def require_permission(action: str, resource: str):
    """Dépendance qui impose la permission "action:resource" à l'utilisateur."""
    def _dep(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user, action, resource):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission refusée ({action}:{resource})",
            )
        return user
    return _dep


def require_super_admin(user: User = Depends(get_current_user)) -> User:
    if not is_super_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Réservé au super admin")
    return user
