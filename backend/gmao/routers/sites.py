# gmao/routers/sites.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud import apply_updates, commit_or_400, ensure_name_free, get_or_404
from ..db import get_db
from ..deps import require_permission
from ..models import Site
from ..schemas import OkOut, SiteCreate, SiteOut, SiteUpdate

router = APIRouter(prefix="/sites", tags=["sites"])


def _out(site: Site) -> SiteOut:
    return SiteOut(id=site.id, name=site.name, active=site.active, engins_count=len(site.engins))


@router.get("", response_model=List[SiteOut])
def list_sites(db: Session = Depends(get_db), _perm=Depends(require_permission("read", "site"))):
    return [_out(s) for s in db.query(Site).order_by(Site.name).all()]


@router.get("/{site_id}", response_model=SiteOut)
def get_site(site_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("read", "site"))):
    return _out(get_or_404(db, Site, site_id, "Site"))


@router.post("", response_model=SiteOut, status_code=201)
def create_site(body: SiteCreate, db: Session = Depends(get_db), _perm=Depends(require_permission("create", "site"))):
    name = body.name.strip()
    ensure_name_free(db, Site, name, "Site")
    site = Site(name=name, active=body.active)
    db.add(site)
    commit_or_400(db)
    db.refresh(site)
    return _out(site)


@router.patch("/{site_id}", response_model=SiteOut)
def update_site(
    site_id: int,
    body: SiteUpdate,
    db: Session = Depends(get_db),
    _perm=Depends(require_permission("update", "site")),
):
    site = get_or_404(db, Site, site_id, "Site")
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in data:
        data["name"] = data["name"].strip()
        ensure_name_free(db, Site, data["name"], "Site", exclude_id=site_id)
    apply_updates(site, data)
    commit_or_400(db)
    db.refresh(site)
    return _out(site)


@router.delete("/{site_id}", response_model=OkOut)
def delete_site(site_id: int, db: Session = Depends(get_db), _perm=Depends(require_permission("delete", "site"))):
    site = get_or_404(db, Site, site_id, "Site")
    db.delete(site)
    commit_or_400(db, "Site encore utilisé (engins ou saisies)")
    return OkOut(message="Site supprimé")
