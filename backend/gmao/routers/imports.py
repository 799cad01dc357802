# gmao/routers/imports.py
"""
📥 Import de données : classeur Excel complet ou ligne JSON unique.
"""

import logging
from typing import List
from zipfile import BadZipFile

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_permission
from ..importer import IMPORTERS, import_row, import_workbook
from ..schemas import ImportRowIn, ImportRowResult, ImportSheetOut

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/import",
    tags=["import"],
    dependencies=[Depends(require_permission("create", "import"))],
)


@router.get("/sheets", response_model=List[str])
def supported_sheets():
    return list(IMPORTERS)


@router.post("", response_model=List[ImportSheetOut])
def import_excel(file: UploadFile = File(...), db: Session = Depends(get_db)):
    """Importe chaque onglet reconnu d'un fichier .xlsx."""
    if not (file.filename or "").lower().endswith((".xlsx", ".xlsm")):
        raise HTTPException(status_code=400, detail="Fichier .xlsx attendu")
    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Fichier vide")
    try:
        results = import_workbook(db, content)
    except (BadZipFile, KeyError, OSError) as e:
        logger.warning("⚠️ Classeur illisible %s : %s", file.filename, e)
        raise HTTPException(status_code=400, detail="Classeur Excel illisible")
    if not results:
        raise HTTPException(status_code=400, detail="Aucun onglet reconnu dans le fichier")
    return results


@router.post("/row", response_model=ImportRowResult)
def import_single_row(body: ImportRowIn, db: Session = Depends(get_db)):
    """Importe une ligne envoyée par le client ({sheet_name, data})."""
    if body.sheet_name.lower() not in IMPORTERS:
        raise HTTPException(status_code=400, detail=f"Onglet non supporté: {body.sheet_name}")
    return import_row(db, body.sheet_name, body.data)
