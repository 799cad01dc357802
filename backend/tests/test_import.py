from datetime import date, datetime
from io import BytesIO

import pytest
from openpyxl import Workbook

from gmao import models
from gmao.importer import convert_field, import_row, import_rows, normalize_key


# -------------------------------------------------
# 🔤 Conversion des cellules
# -------------------------------------------------
@pytest.mark.parametrize(
    "value, field_type, expected",
    [
        ("oui", "boolean", True),
        ("Non", "boolean", False),
        (0, "boolean", False),
        ("", "number", None),
        ("12.5", "number", 12.5),
        ("abc", "number", None),
        ("7.0", "int", 7),
        ("  CH-950 ", "string", "CH-950"),
        (45000, "date", date(2023, 3, 15)),
        (1, "date", date(1900, 1, 1)),
        ("15/03/2023", "date", date(2023, 3, 15)),
        ("2023-03-15", "date", date(2023, 3, 15)),
        (datetime(2023, 3, 15, 8, 30), "date", date(2023, 3, 15)),
        ("pas une date", "date", None),
        (99999999, "date", None),
        ("1e12", "date", None),
    ],
)
def test_convert_field(value, field_type, expected):
    assert convert_field(value, field_type) == expected


def test_normalize_key():
    assert normalize_key("typeparcName") == "typeparc_name"
    assert normalize_key("Typeparc Name") == "typeparc_name"
    assert normalize_key("initialHeureChassis") == "initial_heure_chassis"
    assert normalize_key("site_name") == "site_name"


# -------------------------------------------------
# 📄 Import ligne à ligne
# -------------------------------------------------
def test_import_ligne_upsert(db):
    r = import_row(db, "sites", {"name": "Site Nord"})
    assert r["success"] is True
    assert r["message"] == 'Site "Site Nord" créé'

    r = import_row(db, "sites", {"name": "Site Nord", "active": "non"})
    assert r["message"] == 'Site "Site Nord" mis à jour'
    assert r["data"]["active"] is False
    assert db.query(models.Site).count() == 1


def test_import_reference_introuvable(db, ref):
    result = import_rows(db, "Engins", [
        {"name": "CH-950-02", "parcName": "CH-950", "siteName": "Site Nord"},
        {"name": "CH-950-03", "parcName": "Inconnu", "siteName": "Site Nord"},
        {"parcName": "CH-950", "siteName": "Site Nord"},
    ])
    assert result["summary"] == {"total": 3, "success": 1, "errors": 2}
    assert result["results"][1]["message"] == 'Parc "Inconnu" non trouvé'
    assert result["results"][2]["message"] == "Erreur: Le champ 'name' est requis"


def test_import_onglet_inconnu(db):
    with pytest.raises(ValueError):
        import_rows(db, "machines", [{}])


def test_import_saisies(db, ref):
    r = import_row(db, "saisiehrm", {"du": "2025-03-10", "engin_name": "CH-950-01", "hrm": 18})
    assert r["success"] is True
    assert r["data"]["site_id"] == ref.site.id

    r = import_row(db, "saisiehim", {
        "du": "10/03/2025", "engin_name": "CH-950-01", "panne_name": "Moteur", "him": 3, "ni": 1,
    })
    assert r["success"] is True
    assert r["data"]["engin_id"] == ref.engin.id

    r = import_row(db, "saisiehim", {
        "du": "2025-03-11", "engin_name": "CH-950-01", "panne_name": "Moteur", "him": 3,
    })
    assert r["success"] is False


def test_import_utilisateur(db, admin):
    r = import_row(db, "users", {
        "email": "Tech@GMAO.fr", "password": "tech1234", "roles": "admin", "active": "oui",
    })
    assert r["success"] is True
    assert "hashed_password" not in r["data"]
    user = db.query(models.User).filter(models.User.email == "tech@gmao.fr").one()
    assert [role.name for role in user.roles] == ["admin"]

    r = import_row(db, "users", {"email": "sans@gmao.fr"})
    assert r["success"] is False


# -------------------------------------------------
# 📥 Classeur complet via l'API
# -------------------------------------------------
def _workbook() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Engins"
    ws.append(["name", "parcName", "siteName", "initialHeureChassis"])
    ws.append(["CH-950-01", "CH-950", "Site Nord", 1200])
    ws.append([None, None, None, None])

    ws = wb.create_sheet("Sites")
    ws.append(["name"])
    ws.append(["Site Nord"])

    ws = wb.create_sheet("TypeParcs")
    ws.append(["name"])
    ws.append(["Chargeuses"])

    ws = wb.create_sheet("Parcs")
    ws.append(["name", "typeparcName"])
    ws.append(["CH-950", "Chargeuses"])

    ws = wb.create_sheet("Notes")
    ws.append(["texte"])
    ws.append(["ignoré"])

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_import_classeur(client, admin_headers, db):
    r = client.post(
        "/api/import",
        files={"file": ("gmao.xlsx", _workbook(), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
        headers=admin_headers,
    )
    assert r.status_code == 200
    results = r.json()
    # ordre des dépendances, onglets inconnus ignorés
    assert [s["sheet_name"] for s in results] == ["sites", "typeparcs", "parcs", "engins"]
    assert all(s["summary"]["errors"] == 0 for s in results)
    assert results[3]["summary"]["total"] == 1

    engin = db.query(models.Engin).one()
    assert engin.initial_heure_chassis == 1200
    assert engin.parc.typeparc.name == "Chargeuses"


def test_import_mauvais_fichier(client, admin_headers):
    r = client.post("/api/import", files={"file": ("data.csv", b"a,b", "text/csv")}, headers=admin_headers)
    assert r.status_code == 400

    r = client.post("/api/import", files={"file": ("data.xlsx", b"pas un zip", "application/octet-stream")},
                    headers=admin_headers)
    assert r.status_code == 400


def test_import_ligne_api(client, admin_headers):
    r = client.post("/api/import/row", json={"sheet_name": "machines", "data": {}}, headers=admin_headers)
    assert r.status_code == 400

    r = client.post(
        "/api/import/row", json={"sheet_name": "Sites", "data": {"name": "Site Est"}}, headers=admin_headers
    )
    assert r.status_code == 200
    assert r.json()["success"] is True

    sheets = client.get("/api/import/sheets", headers=admin_headers).json()
    assert sheets[0] == "sites"


def test_import_serial_excel_hors_limites(client, admin_headers, db, ref):
    wb = Workbook()
    ws = wb.active
    ws.title = "Sites"
    ws.append(["name"])
    ws.append(["Site Sud"])
    ws = wb.create_sheet("saisiehrm")
    ws.append(["du", "enginName", "hrm"])
    ws.append([99999999, "CH-950-01", 12])
    ws.append(["2025-03-10", "CH-950-01", 12])
    buf = BytesIO()
    wb.save(buf)

    r = client.post("/api/import", files={"file": ("gmao.xlsx", buf.getvalue(), "application/octet-stream")},
                    headers=admin_headers)
    assert r.status_code == 200
    sites, saisies = r.json()
    assert sites["summary"]["success"] == 1
    assert saisies["summary"] == {"total": 2, "success": 1, "errors": 1}
    assert saisies["results"][0]["message"] == "Erreur: Le champ 'du' est requis"
    assert db.query(models.Saisiehrm).count() == 1


def test_import_consommation_lubrifiant_upsert(db, ref, saisie_mars):
    db.add(models.Lubrifiant(name="15W40", typelubrifiant=models.Typelubrifiant(name="Huile moteur")))
    db.commit()
    row = {"du": "2025-03-10", "engin_name": "CH-950-01", "panne_name": "Moteur",
           "lubrifiant_name": "15W40", "qte": 5}

    r = import_row(db, "saisielubrifiant", row)
    assert r["message"] == 'Consommation "15W40" créée'
    r = import_row(db, "saisielubrifiant", {**row, "qte": 8})
    assert r["message"] == 'Consommation "15W40" mise à jour'

    (ligne,) = db.query(models.Saisielubrifiant).all()
    assert ligne.qte == 8


def test_import_super_admin_refuse(db, admin):
    r = import_row(db, "users", {"email": "intrus@gmao.fr", "password": "intrus123", "roles": "super admin"})
    assert r["success"] is False
    assert db.query(models.User).filter(models.User.email == "intrus@gmao.fr").first() is None

    r = import_row(db, "users", {"email": admin.email, "password": "nouveau123"})
    assert r["success"] is False
