from datetime import datetime

import pytest

from gmao import models
from gmao.statistiques import anomalie_evolution, engin_anomalie_stats


def _payload(ref, **extra):
    return {
        "numero_backlog": "TO14-25-001",
        "date_detection": "2025-06-01T08:00:00",
        "description": "Fuite hydraulique sur vérin de levage",
        "source": "VS",
        "priorite": "ELEVEE",
        "engin_id": ref.engin.id,
        "site_id": ref.site.id,
        **extra,
    }


@pytest.fixture()
def anomalie(client, admin_headers, ref):
    r = client.post("/api/anomalies", json=_payload(ref), headers=admin_headers)
    assert r.status_code == 201
    return r.json()


def test_creation_historique_initial(anomalie):
    assert anomalie["statut"] == "ATTENTE_PDR"
    assert anomalie["engin"]["name"] == "CH-950-01"
    (h,) = anomalie["historiques"]
    assert h["ancien_statut"] == "ATTENTE_PDR"
    assert h["nouveau_statut"] == "ATTENTE_PDR"
    assert h["commentaire"] == "Création de l'anomalie"


def test_format_backlog(client, admin_headers, ref):
    r = client.post("/api/anomalies", json=_payload(ref, numero_backlog="123"), headers=admin_headers)
    assert r.status_code == 422


def test_backlog_en_double(client, admin_headers, ref, anomalie):
    r = client.post("/api/anomalies", json=_payload(ref), headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Ce numéro de backlog existe déjà"


def test_changement_de_statut(client, admin_headers, anomalie):
    url = f"/api/anomalies/{anomalie['id']}"
    r = client.patch(
        url,
        json={"statut": "PROGRAMMEE", "commentaire_changement_statut": "Planifié semaine 24"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    historiques = r.json()["historiques"]
    assert len(historiques) == 2
    assert historiques[0]["ancien_statut"] == "ATTENTE_PDR"
    assert historiques[0]["nouveau_statut"] == "PROGRAMMEE"
    assert historiques[0]["commentaire"] == "Planifié semaine 24"

    # sans changement de statut : pas de nouvelle ligne
    r = client.patch(url, json={"equipe": "Équipe B", "reference": ""}, headers=admin_headers)
    assert r.json()["equipe"] == "Équipe B"
    assert r.json()["reference"] is None
    assert len(r.json()["historiques"]) == 2


def test_date_avec_fuseau_stockee_en_utc(client, admin_headers, db, ref):
    r = client.post(
        "/api/anomalies",
        json=_payload(ref, date_detection="2025-06-01T10:00:00+02:00"),
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert db.get(models.Anomalie, r.json()["id"]).date_detection == datetime(2025, 6, 1, 8, 0)


def test_liste_et_filtres(client, admin_headers, ref, anomalie):
    client.post(
        "/api/anomalies",
        json=_payload(ref, numero_backlog="TO14-25-002", priorite="FAIBLE", source="VJ"),
        headers=admin_headers,
    )
    r = client.get("/api/anomalies", headers=admin_headers)
    assert [a["numero_backlog"] for a in r.json()] == ["TO14-25-002", "TO14-25-001"]

    r = client.get("/api/anomalies", params={"priorite": "FAIBLE"}, headers=admin_headers)
    assert [a["numero_backlog"] for a in r.json()] == ["TO14-25-002"]

    r = client.get("/api/anomalies", params={"search": "25-001"}, headers=admin_headers)
    assert [a["numero_backlog"] for a in r.json()] == ["TO14-25-001"]


def test_stats(client, admin_headers, anomalie):
    stats = client.get("/api/anomalies/stats", headers=admin_headers).json()
    assert stats["total"] == 1
    assert stats["par_statut"]["ATTENTE_PDR"] == 1
    assert stats["par_statut"]["EXECUTE"] == 0
    assert stats["par_priorite"] == {"ELEVEE": 1, "MOYENNE": 0, "FAIBLE": 0}
    assert stats["par_source"]["VS"] == 1


def test_suppression(client, admin_headers, db, anomalie):
    r = client.delete(f"/api/anomalies/{anomalie['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert db.query(models.HistoriqueStatutAnomalie).count() == 0


def test_evolution(db, ref):
    db.add_all([
        models.Anomalie(
            numero_backlog="TO14-25-010",
            date_detection=datetime(2025, 6, 1, 8, 0),
            description="Anomalie critique en attente",
            source=models.SourceAnomalie.VS,
            priorite=models.Priorite.ELEVEE,
            statut=models.StatutAnomalie.ATTENTE_PDR,
            engin=ref.engin,
            site=ref.site,
        ),
        models.Anomalie(
            numero_backlog="TO14-25-011",
            date_detection=datetime(2025, 5, 10, 8, 0),
            date_execution=datetime(2025, 5, 12, 8, 0),
            description="Anomalie résolue en mai",
            source=models.SourceAnomalie.INSPECTION,
            priorite=models.Priorite.MOYENNE,
            statut=models.StatutAnomalie.EXECUTE,
            engin=ref.engin,
            site=ref.site,
        ),
    ])
    db.commit()

    evo = anomalie_evolution(db, now=datetime(2025, 6, 15, 12, 0))
    mois = evo["evolution_mensuelle"]
    assert [m["mois"] for m in mois] == ["Janv", "Févr", "Mars", "Avr", "Mai", "Juin"]
    assert [m["anomalies"] for m in mois] == [0, 0, 0, 0, 1, 1]
    assert mois[4]["resolues"] == 1
    assert mois[5]["attente_pdr"] == 1

    assert evo["total_anomalies"] == 2
    assert evo["anomalies_resolues"] == 1
    assert evo["anomalies_critiques"] == 1
    assert evo["anomalies_recentes"] == 0
    assert evo["taux_resolution"] == 50
    assert evo["temps_moyen_resolution"] == 2.0
    assert evo["top_engins"] == [{"engin_id": ref.engin.id, "name": "CH-950-01", "count": 2}]
    assert evo["evolution"]["mensuelle"] == 0
    assert evo["evolution"]["tendance"] == "hausse"
    assert evo["meilleur_mois"] == "Mai"
    assert evo["pire_mois"] == "Juin"


def test_evolution_api(client, admin_headers, anomalie):
    r = client.get("/api/anomalies/evolution", headers=admin_headers)
    assert r.status_code == 200
    assert len(r.json()["evolution_mensuelle"]) == 6


# -------------------------------------------------
# 🚜 Fiche engin
# -------------------------------------------------
def test_fiche_engin(client, admin_headers, ref, anomalie):
    r = client.post(
        "/api/anomalies",
        json=_payload(
            ref,
            numero_backlog="TO14-25-002",
            date_detection="2025-06-05T10:00:00",
            priorite="FAIBLE",
            statut="EXECUTE",
            besoin_pdr=True,
        ),
        headers=admin_headers,
    )
    assert r.status_code == 201

    r = client.get(f"/api/engins/{ref.engin.id}", headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "CH-950-01"
    assert [a["numero_backlog"] for a in body["anomalies"]] == ["TO14-25-002", "TO14-25-001"]
    stats = body["stats"]
    assert stats["total"] == 2
    assert stats["resolues"] == 1
    assert stats["en_cours"] == 1
    assert stats["critiques"] == 1
    assert stats["taux_resolution"] == 50
    assert stats["besoin_pdr"] == 1
    assert stats["dernier_incident"].startswith("2025-06-05T10:00:00")


def test_fiche_engin_sans_anomalie(client, admin_headers, ref):
    r = client.get(f"/api/engins/{ref.engin.id}", headers=admin_headers)
    stats = r.json()["stats"]
    assert r.json()["anomalies"] == []
    assert stats["total"] == 0
    assert stats["taux_resolution"] == 100
    assert stats["dernier_incident"] is None
    assert stats["jours_sans_incident"] == 0


def test_jours_sans_incident():
    anomalies = [
        models.Anomalie(
            statut=models.StatutAnomalie.PROGRAMMEE,
            priorite=models.Priorite.MOYENNE,
            besoin_pdr=False,
            date_detection=datetime(2025, 6, 1, 8, 0),
        ),
        models.Anomalie(
            statut=models.StatutAnomalie.EXECUTE,
            priorite=models.Priorite.ELEVEE,
            besoin_pdr=True,
            date_detection=datetime(2025, 5, 20, 8, 0),
        ),
    ]
    stats = engin_anomalie_stats(anomalies, now=datetime(2025, 6, 15, 12, 0))
    assert stats["dernier_incident"] == datetime(2025, 6, 1, 8, 0)
    assert stats["jours_sans_incident"] == 14
    assert stats["critiques"] == 1
    assert stats["taux_resolution"] == 50
