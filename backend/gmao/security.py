# gmao/security.py
"""
Sécurité & authentification de l'API GMAO :
- Hachage des mots de passe (pbkdf2_sha256)
- Création et vérification de tokens JWT
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from .settings import settings

# ==========================================================
# 🔐 PARAMÈTRES JWT
# ==========================================================
ALGORITHM = "HS256"


# ==========================================================
# 🔒 HACHAGE DES MOTS DE PASSE
# ==========================================================
# PBKDF2-SHA256 : pur Python, pas de compilation C (bcrypt)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Retourne le hash pbkdf2 ('$pbkdf2-sha256$...') du mot de passe."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# ==========================================================
# 🪪 GESTION DES JETONS JWT
# ==========================================================
def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    """
    Crée un token JWT signé avec une date d'expiration.

    - `data` contient les claims (ex: {"sub": "12", "roles": ["admin"]})
    - sans `expires_minutes`, la durée vient de ACCESS_TOKEN_EXPIRE_MINUTES
    """
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Payload décodé, ou None si le token est invalide ou expiré."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
