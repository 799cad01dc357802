import pytest

from gmao import models
from gmao.rapports import RapportError, rapport_etat_mensuel

from .conftest import auth_headers


def _post(client, headers, nom, body):
    return client.post(f"/api/rapports/{nom}", json=body, headers=headers)


# -------------------------------------------------
# 📅 RJE / état mensuel / état général
# -------------------------------------------------
def test_rje(client, admin_headers, saisie_mars):
    r = _post(client, admin_headers, "rje", {"du": "2025-03-10"})
    assert r.status_code == 200
    (row,) = r.json()
    assert row["engin"] == "CH-950-01"
    assert row["site_name"] == "Site Nord"
    # NI = nombre de lignes HIM (une seule), pas la somme de la colonne ni
    assert (row["nho_j"], row["him_j"], row["hrm_j"], row["ni_j"]) == (24, 4, 20, 1)
    assert row["dispo_j"] == 83.33
    assert row["mtbf_j"] == 20
    assert row["tdm_j"] == 83.33
    assert row["nho_m"] == 240
    assert row["dispo_m"] == 98.33
    assert row["nho_a"] == 24 * 69


def test_rje_sans_date(client, admin_headers):
    r = _post(client, admin_headers, "rje", {})
    assert r.status_code == 400


def test_rapport_interdit_sans_permission(client, db, ref):
    role = models.Role(name="vide")
    user = models.User(email="vide@gmao.fr", hashed_password="x", roles=[role])
    db.add(user)
    db.commit()

    r = _post(client, auth_headers(user), "rje", {"du": "2025-03-10"})
    assert r.status_code == 403


def test_etat_mensuel(db, saisie_mars):
    (tp,) = rapport_etat_mensuel(db, 3, 2025)
    assert tp["typeparc_name"] == "Chargeuses"
    (parc,) = tp["parcs"]
    assert parc["nbre_engins"] == 1
    assert parc["nho_mois"] == 24 * 31
    assert parc["nho_annee"] == 24 * 90
    assert parc["mois"]["him"] == 4
    assert parc["mois"]["hrm"] == 20
    assert parc["mois"]["ni"] == 1
    assert parc["mois"]["mtbf"] == 20
    assert tp["total"]["mois"]["him"] == 4


def test_etat_mensuel_parametres(db):
    with pytest.raises(RapportError):
        rapport_etat_mensuel(db, None, 2025)
    with pytest.raises(RapportError):
        rapport_etat_mensuel(db, 13, 2025)
    with pytest.raises(RapportError):
        rapport_etat_mensuel(db, 3, 10000)


@pytest.mark.parametrize(
    "body",
    [
        {"mois": 3, "annee": 10000},
        {"mois": 3, "annee": 1800},
        {"mois": "abc", "annee": 2025},
        {"mois": 3, "annee": "deux mille"},
        {"mois": 0, "annee": 2025},
    ],
)
def test_mois_annee_invalides_donnent_400(client, admin_headers, body):
    for nom in ("etat-mensuel", "etat-general", "analyse-indisponibilite", "mvt-organe"):
        r = _post(client, admin_headers, nom, body)
        assert r.status_code == 400, nom


def test_mois_annee_en_texte(client, admin_headers, saisie_mars):
    r = _post(client, admin_headers, "etat-mensuel", {"mois": "3", "annee": "2025"})
    assert r.status_code == 200
    assert r.json()[0]["parcs"][0]["mois"]["him"] == 4


def test_etat_general(client, admin_headers, saisie_mars):
    r = _post(client, admin_headers, "etat-general", {"mois": 3, "annee": 2025})
    assert r.status_code == 200
    body = r.json()
    ligne = body["data"][0]["parcs"][0]["engins"][0]
    assert ligne["hrm_mois"] == 20
    assert ligne["heure_chassis_mois"] == 4
    assert ligne["total_heure_chassis"] == 1004
    assert body["sites"] == ["Site Nord"]
    assert body["parcs"] == ["CH-950"]


def test_unite_physique(client, admin_headers, saisie_mars):
    r = _post(client, admin_headers, "unite-physique", {"date": "2025-03-15"})
    assert r.status_code == 200
    (tp,) = r.json()
    stats = tp["parcs"][0]["site_stats"]["Site Nord"]
    assert stats == {"hrm": 20, "him": 4, "nbre": 1}
    assert tp["total"]["annuel"]["total_hrm"] == 20


# -------------------------------------------------
# 📉 Indisponibilité / pareto
# -------------------------------------------------
def test_analyse_indisponibilite(client, admin_headers, saisie_mars):
    r = _post(client, admin_headers, "analyse-indisponibilite", {"mois": 3, "annee": 2025})
    assert r.status_code == 200
    parc = r.json()[0]["parcs"][0]
    assert parc["total"]["indisp_mois"] == 0.54
    # ligne TOTAL ajoutée en tête
    assert parc["typepannes"][0]["typepanne_name"] == "TOTAL"
    mecanique = parc["typepannes"][1]
    (ligne,) = mecanique["pannes"]
    assert ligne["panne_name"] == "Moteur"
    assert ligne["ni_mois"] == 2
    assert ligne["him_mois"] == 4
    assert ligne["coeff_him_mois"] == 0.54


def test_pareto_indispo(client, admin_headers, ref, saisie_mars):
    r = _post(client, admin_headers, "pareto-indispo", {"parc_id": ref.parc.id, "date": "2025-03-01"})
    assert r.status_code == 200
    (ligne,) = r.json()["data"]
    assert ligne["panne"] == "Moteur"
    assert ligne["indispo"] == 0.54
    assert ligne["engins"] == [{"name": "CH-950-01", "him": 4}]
    assert ligne["engins_mtbf"] == [{"name": "CH-950-01", "ni": 2}]


def test_pareto_parc_inconnu(client, admin_headers):
    r = _post(client, admin_headers, "pareto-indispo", {"parc_id": 999, "date": "2025-03-01"})
    assert r.status_code == 404
    r = _post(client, admin_headers, "pareto-mtbf", {"date": "2025-03-01"})
    assert r.status_code == 400


def test_pareto_mtbf(client, admin_headers, ref, saisie_mars):
    r = _post(client, admin_headers, "pareto-mtbf", {"parc_id": ref.parc.id, "date": "2025-06-01"})
    data = r.json()["data"]
    assert len(data) == 12
    assert data[0] == {"mois": "jan", "mtbf": 0, "engins_actifs": 1, "objectif_mtbf": None}
    assert data[2]["mtbf"] == 10


# -------------------------------------------------
# ⚙️ Organes
# -------------------------------------------------
@pytest.fixture()
def mouvements(client, admin_headers, ref, saisie_mars):
    type_id = client.post("/api/type-organes", json={"name": "Moteur"}, headers=admin_headers).json()["id"]
    m1 = client.post("/api/organes", json={"name": "MOT-001", "type_organe_id": type_id}, headers=admin_headers)
    m2 = client.post("/api/organes", json={"name": "MOT-002", "type_organe_id": type_id}, headers=admin_headers)
    m1, m2 = m1.json()["id"], m2.json()["id"]
    for organe_id, jour, type_mvt in (
        (m1, "2025-03-01", "POSE"),
        (m1, "2025-03-20", "DEPOSE"),
        (m2, "2025-03-21", "POSE"),
    ):
        r = client.post(
            "/api/mvt-organes",
            json={
                "organe_id": organe_id,
                "engin_id": ref.engin.id,
                "date_mvt": jour,
                "type_mvt": type_mvt,
                "cause": "Usure" if type_mvt == "DEPOSE" else None,
            },
            headers=admin_headers,
        )
        assert r.status_code == 201
    return m1, m2


def test_mvt_organe(client, admin_headers, mouvements):
    r = _post(client, admin_headers, "mvt-organe", {"mois": 3, "annee": 2025})
    assert r.status_code == 200
    body = r.json()
    (mvt,) = body["data"][0]["parcs"][0]["mouvements"]
    assert mvt["organe_depose"] == "MOT-001"
    assert mvt["date_depose"] == "2025-03-20"
    assert mvt["hrm_depose"] == 20
    assert mvt["organe_pose"] == "MOT-002"
    assert mvt["date_pose"] == "2025-03-21"
    assert mvt["cause_depose"] == "Usure"
    assert body["type_organes"] == ["Moteur"]


def test_heure_marche_organe(client, admin_headers, mouvements):
    r = _post(client, admin_headers, "heure-marche-organe", {"mois": 3, "annee": 2025})
    assert r.status_code == 200
    engin = r.json()["data"][0]["engins"][0]
    organes = {o["organe_name"]: o for o in engin["organes"]}
    assert organes["MOT-001"]["hrm_mensuel"] == 20
    assert organes["MOT-001"]["est_sur_engin"] is False
    assert organes["MOT-002"]["hrm_mensuel"] == 0
    assert organes["MOT-002"]["est_sur_engin"] is True
    assert organes["MOT-002"]["date_depose"] == ""


def test_mouvements_filtres(client, admin_headers, mouvements):
    m1, _ = mouvements
    r = client.get("/api/mvt-organes", params={"organe_id": m1}, headers=admin_headers)
    assert [m["type_mvt"] for m in r.json()] == ["DEPOSE", "POSE"]

    r = client.delete(f"/api/organes/{m1}", headers=admin_headers)
    assert r.status_code == 200
    r = client.get("/api/mvt-organes", params={"organe_id": m1}, headers=admin_headers)
    assert r.json() == []
