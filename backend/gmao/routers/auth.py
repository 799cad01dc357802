# gmao/routers/auth.py
"""
🔐 Auth : login / register / me (profil, mot de passe) + bootstrap du super admin.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..crud import commit_or_400
from ..db import get_db
from ..deps import get_current_user
from ..models import User
from ..rbac import get_user_permissions, get_user_roles, is_super_admin
from ..schemas import MeOut, OkOut, PasswordChange, ProfileUpdate, SignupIn, TokenOut, UserOut
from ..security import create_access_token, hash_password, verify_password
from ..seed import ensure_super_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def build_me(user: User) -> MeOut:
    return MeOut(
        user=UserOut.model_validate(user),
        roles=get_user_roles(user),
        permissions=sorted(get_user_permissions(user)),
        is_super_admin=is_super_admin(user),
    )


@router.post("/login", response_model=TokenOut)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == form_data.username.strip().lower()).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Identifiants invalides")
    if not user.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Compte inactif, en attente de validation par un administrateur",
        )
    token = create_access_token({"sub": str(user.id), "roles": get_user_roles(user)})
    logger.info("🔑 Connexion de %s", user.email)
    return TokenOut(access_token=token, user=build_me(user))


@router.post("/register", response_model=UserOut, status_code=201)
def register(body: SignupIn, db: Session = Depends(get_db)):
    """Inscription libre : le compte reste inactif jusqu'à validation."""
    email = body.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Cet email est déjà utilisé")
    user = User(
        name=body.name,
        email=email,
        hashed_password=hash_password(body.password),
        active=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.get("/me", response_model=MeOut)
def me(user: User = Depends(get_current_user)):
    return build_me(user)


@router.patch("/me", response_model=MeOut)
def update_profile(body: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Mise à jour de son propre profil (nom, email)."""
    data = body.model_dump(exclude_unset=True)
    if data.get("email"):
        email = data["email"].lower()
        taken = db.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise HTTPException(status_code=400, detail="Cet email est déjà utilisé")
        user.email = email
    if "name" in data:
        user.name = (data["name"] or "").strip() or None
    commit_or_400(db, "Cet email est déjà utilisé")
    db.refresh(user)
    return build_me(user)


@router.put("/me/password", response_model=OkOut)
def change_password(body: PasswordChange, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not verify_password(body.current_password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Mot de passe actuel incorrect")
    user.hashed_password = hash_password(body.new_password)
    db.commit()
    logger.info("🔑 Mot de passe modifié pour %s", user.email)
    return OkOut(message="Mot de passe modifié")


@router.post("/bootstrap", response_model=OkOut)
def bootstrap_super_admin(db: Session = Depends(get_db)):
    """Crée le super admin défini dans les settings (sans effet s'il existe déjà)."""
    user, created = ensure_super_admin(db)
    db.commit()
    if created:
        logger.info("👑 Super admin %s créé", user.email)
        return OkOut(message="Super admin créé avec succès")
    return OkOut(message="Super admin est déjà créé")
