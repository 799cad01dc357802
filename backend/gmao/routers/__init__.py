# gmao/routers/__init__.py
"""Routeurs de l'API, montés sous /api par gmao.main."""

from . import (
    anomalies,
    auth,
    engins,
    imports,
    lubrifiants,
    objectifs,
    organes,
    pannes,
    parcs,
    performances,
    permissions,
    rapports,
    roles,
    saisies,
    sites,
    typepannes,
    typeparcs,
    users,
)

ROUTERS = [
    auth.router,
    users.router,
    roles.router,
    permissions.router,
    sites.router,
    typeparcs.router,
    parcs.router,
    engins.router,
    objectifs.router,
    typepannes.router,
    pannes.router,
    lubrifiants.router,
    saisies.router,
    performances.router,
    anomalies.router,
    organes.router,
    rapports.router,
    imports.router,
]
