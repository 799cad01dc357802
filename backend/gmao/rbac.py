# gmao/rbac.py
"""
🛡️ Contrôle d'accès par rôles (RBAC)
====================================

Une permission est une paire (action, resource) vue sous la forme
d'une chaîne "action:resource" (ex: "read:engin").

Un utilisateur possède l'union des permissions de ses rôles.
Le rôle "super admin" passe tous les contrôles.
"""

import logging
from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy.orm import Session

from .models import Permission, Role, User

logger = logging.getLogger(__name__)

# -------------------------------------------------
# 👑 Rôles système
# -------------------------------------------------
ADMIN_ROLE_NAME = "admin"
SUPER_ADMIN_ROLE_NAME = "super admin"

# -------------------------------------------------
# 📚 Actions & ressources connues
# -------------------------------------------------
ACTIONS = ("create", "read", "update", "delete")

RESOURCES = (
    "site",
    "typeparc",
    "parc",
    "engin",
    "objectif",
    "typepanne",
    "panne",
    "saisiehrm",
    "lubrifiant",
    "anomalie",
    "organe",
    "rapport",
    "import",
    "user",
    "role",
    "permission",
)


def permission_string(action: str | None, resource: str | None) -> str:
    return f"{action or ''}:{resource or ''}"


def get_user_roles(user: User) -> List[str]:
    """Noms des rôles de l'utilisateur."""
    return [role.name for role in user.roles]


def has_role(user: User, role_name: str) -> bool:
    return role_name in get_user_roles(user)


def is_admin(user: User) -> bool:
    return has_role(user, ADMIN_ROLE_NAME)


def is_super_admin(user: User) -> bool:
    return has_role(user, SUPER_ADMIN_ROLE_NAME)


def get_user_permissions(user: User) -> Set[str]:
    """
    Ensemble des chaînes "action:resource" de l'utilisateur.
    Une permission sans action ou sans ressource est ignorée.
    """
    permissions: Set[str] = set()
    for role in user.roles:
        for perm in role.permissions:
            if perm.action and perm.resource:
                permissions.add(permission_string(perm.action, perm.resource))
    return permissions


def has_permission(user: User, action: str, resource: str) -> bool:
    if not user.active:
        return False
    if is_super_admin(user):
        return True
    return permission_string(action, resource) in get_user_permissions(user)


def check_multiple_permissions(
    user: User, checks: Iterable[Tuple[str, str]]
) -> Dict[str, bool]:
    """Retourne {"action:resource": bool} pour chaque couple demandé."""
    return {
        permission_string(action, resource): has_permission(user, action, resource)
        for action, resource in checks
    }


def has_all_permissions(user: User, checks: Iterable[Tuple[str, str]]) -> bool:
    return all(check_multiple_permissions(user, checks).values())


def has_any_permission(user: User, checks: Iterable[Tuple[str, str]]) -> bool:
    return any(check_multiple_permissions(user, checks).values())


# -------------------------------------------------
# 🔗 Attribution des permissions aux rôles
# -------------------------------------------------
def assign_permission_to_role(db: Session, permission: Permission, role: Role) -> bool:
    """Ajoute la permission au rôle. False si elle y était déjà."""
    if permission in role.permissions:
        return False
    role.permissions.append(permission)
    db.commit()
    logger.info("🔗 Permission %s ajoutée au rôle %s",
                permission_string(permission.action, permission.resource), role.name)
    return True


def remove_permission_from_role(db: Session, permission: Permission, role: Role) -> bool:
    """Retire la permission du rôle. False si elle n'y était pas."""
    if permission not in role.permissions:
        return False
    role.permissions.remove(permission)
    db.commit()
    logger.info("✂️ Permission %s retirée du rôle %s",
                permission_string(permission.action, permission.resource), role.name)
    return True
