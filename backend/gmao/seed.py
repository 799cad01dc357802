# ============================================================
# gmao/seed.py
# ------------------------------------------------------------
# 🌱 Script de “seed” (pré-remplissage) de la base de données.
# - Crée toutes les permissions (ressource × action)
# - Crée les rôles "super admin" et "admin" + le compte super admin
# - Ajoute un jeu de démo (sites, parcs, engins, pannes, saisies)
# - S’exécute automatiquement au démarrage si SEED_ON_START=True
# ============================================================

import logging
import random
from datetime import date, timedelta
from typing import Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .db import SessionLocal
from .models import (
    Engin,
    Lubrifiant,
    Objectif,
    Panne,
    Parc,
    Permission,
    Role,
    Saisiehim,
    Saisiehrm,
    Site,
    Typeconsommationlub,
    Typelubrifiant,
    Typepanne,
    Typeparc,
    User,
)
from .rbac import ACTIONS, ADMIN_ROLE_NAME, RESOURCES, SUPER_ADMIN_ROLE_NAME, permission_string
from .security import hash_password
from .settings import settings

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# 🔐 RBAC de base (idempotent)
# ------------------------------------------------------------
def ensure_permissions(db: Session) -> int:
    """Crée les permissions manquantes ; retourne le nombre ajouté."""
    existing = {(p.resource, p.action) for p in db.query(Permission).all()}
    created = 0
    for resource in RESOURCES:
        for action in ACTIONS:
            if (resource, action) in existing:
                continue
            db.add(Permission(
                name=permission_string(action, resource),
                resource=resource,
                action=action,
                description=f"{action} sur {resource}",
            ))
            created += 1
    db.flush()
    return created


def ensure_role(db: Session, name: str, description: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if not role:
        role = Role(name=name, description=description)
        db.add(role)
        db.flush()
    return role


def ensure_super_admin(
    db: Session,
    email: Optional[str] = None,
    password: Optional[str] = None,
    name: Optional[str] = None,
) -> Tuple[User, bool]:
    """
    Garantit permissions, rôles système et compte super admin.
    Retourne (utilisateur, créé ?). Le commit reste à la charge de l'appelant.
    """
    ensure_permissions(db)
    all_perms = db.query(Permission).all()

    super_role = ensure_role(db, SUPER_ADMIN_ROLE_NAME, "Accès total")
    super_role.permissions = all_perms
    admin_role = ensure_role(db, ADMIN_ROLE_NAME, "Administration de la GMAO")
    if not admin_role.permissions:
        admin_role.permissions = all_perms

    email = (email or settings.super_admin_email).lower()
    user = db.query(User).filter(User.email == email).first()
    created = user is None
    if created:
        user = User(
            email=email,
            name=name or settings.super_admin_name,
            hashed_password=hash_password(password or settings.super_admin_password),
            active=True,
        )
        db.add(user)
    if super_role not in user.roles:
        user.roles.append(super_role)
    db.flush()
    return user, created


# ------------------------------------------------------------
# 🏭 Jeu de démonstration
# ------------------------------------------------------------
DEMO_SITES = ["Site Nord", "Site Sud"]
DEMO_TYPEPARCS = {
    "Chargeuses": ["CH-950", "CH-980"],
    "Camions": ["TR-777"],
}
DEMO_TYPEPANNES = {
    "Mécanique": ["Moteur", "Transmission"],
    "Électrique": ["Démarreur", "Faisceau"],
    "Hydraulique": ["Flexible", "Vérin"],
}
DEMO_LUBRIFIANTS = {"Huile moteur": ["15W40"], "Graisse": ["EP2"]}
DEMO_TYPES_CONSO = ["Appoint", "Vidange"]


def seed_demo(db: Session, days: int = 30) -> None:
    """Référentiel + saisies HRM/HIM des `days` derniers jours (si base vide)."""
    if db.scalar(select(func.count()).select_from(Site)):
        logger.info("↳ Référentiel déjà présent → rien ajouté")
        return

    sites = [Site(name=n) for n in DEMO_SITES]
    db.add_all(sites)

    typepannes = []
    pannes = []
    for tp_name, panne_names in DEMO_TYPEPANNES.items():
        tp = Typepanne(name=tp_name)
        typepannes.append(tp)
        pannes.extend(Panne(name=n, typepanne=tp) for n in panne_names)
    db.add_all(typepannes + pannes)

    for tl_name, lub_names in DEMO_LUBRIFIANTS.items():
        tl = Typelubrifiant(name=tl_name)
        db.add(tl)
        db.add_all(Lubrifiant(name=n, typelubrifiant=tl) for n in lub_names)
    db.add_all(Typeconsommationlub(name=n) for n in DEMO_TYPES_CONSO)
    db.flush()

    engins = []
    annee = date.today().year
    for tp_name, parc_names in DEMO_TYPEPARCS.items():
        typeparc = Typeparc(name=tp_name)
        db.add(typeparc)
        for parc_name in parc_names:
            parc = Parc(name=parc_name, typeparc=typeparc, typepannes=list(typepannes))
            db.add(parc)
            for i, site in enumerate(sites, start=1):
                engins.append(Engin(name=f"{parc_name}-{i:02d}", parc=parc, site=site))
                db.add(Objectif(annee=annee, parc=parc, site=site, dispo=85, mtbf=120, tdm=60))
    db.add_all(engins)
    db.flush()
    logger.info("✔ Référentiel créé : %d sites, %d engins, %d pannes", len(sites), len(engins), len(pannes))

    rng = random.Random(42)
    today = date.today()
    n_hrm = n_him = 0
    for offset in range(days, 0, -1):
        du = today - timedelta(days=offset)
        for engin in engins:
            hrm = Saisiehrm(du=du, engin=engin, site_id=engin.site_id, hrm=rng.randint(8, 20))
            db.add(hrm)
            n_hrm += 1
            # ~1 jour sur 5 : une immobilisation
            if rng.random() < 0.2:
                panne = rng.choice(pannes)
                hrm.saisiehims.append(Saisiehim(
                    panne=panne, engin_id=engin.id, him=rng.randint(1, 4), ni=1,
                ))
                n_him += 1
    db.flush()
    logger.info("✔ Saisies créées : %d HRM, %d HIM", n_hrm, n_him)


def seed(with_demo: bool = True) -> None:
    db: Session = SessionLocal()
    try:
        logger.info("🌱 Seeding DB → %s", db.get_bind().url)

        n_perms = ensure_permissions(db)
        logger.info("✔ Permissions → ajoutées: %d", n_perms)

        user, created = ensure_super_admin(db)
        logger.info("✔ Super admin %s → %s", user.email, "créé" if created else "déjà présent")

        if with_demo:
            seed_demo(db)

        db.commit()
        logger.info("✅ Seed terminé avec succès")
    except Exception:
        db.rollback()
        logger.exception("❌ Seed échoué → rollback")
        raise
    finally:
        db.close()


# ------------------------------------------------------------
# ⚙️ Si exécuté directement (python -m gmao.seed)
# ------------------------------------------------------------
if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    seed()
