def test_pannes_usage(client, admin_headers, ref, saisie_mars):
    r = client.get("/api/pannes", headers=admin_headers)
    assert r.status_code == 200
    panne = r.json()[0]
    assert panne["name"] == "Moteur"
    assert panne["typepanne"]["name"] == "Mécanique"
    assert panne["interventions_count"] == 1
    assert panne["derniere_saisie"] == "2025-03-10"


def test_pannes_recherche(client, admin_headers, ref):
    client.post(
        "/api/pannes",
        json={"name": "Démarreur", "typepanne_id": ref.typepanne.id},
        headers=admin_headers,
    )
    r = client.get("/api/pannes", params={"search": "casse"}, headers=admin_headers)
    assert [p["name"] for p in r.json()] == ["Moteur"]

    r = client.get("/api/pannes", params={"typepanne_id": ref.typepanne.id}, headers=admin_headers)
    assert [p["name"] for p in r.json()] == ["Démarreur", "Moteur"]


def test_pannes_stats(client, admin_headers, ref, saisie_mars):
    client.post(
        "/api/pannes",
        json={"name": "Faisceau", "typepanne_id": ref.typepanne.id},
        headers=admin_headers,
    )
    stats = client.get("/api/pannes/stats", headers=admin_headers).json()
    assert stats["total"] == 2
    assert stats["avec_saisies"] == 1
    assert stats["sans_saisies"] == 1
    assert stats["par_type"] == [{"typepanne": "Mécanique", "count": 2}]
    assert stats["plus_utilisees"][0]["name"] == "Moteur"


def test_panne_utilisee_non_supprimable(client, admin_headers, ref, saisie_mars):
    r = client.delete(f"/api/pannes/{ref.panne.id}", headers=admin_headers)
    assert r.status_code == 400


def test_typepanne_avec_pannes_non_supprimable(client, admin_headers, ref):
    r = client.delete(f"/api/typepannes/{ref.typepanne.id}", headers=admin_headers)
    assert r.status_code == 400

    r = client.get(f"/api/typepannes/{ref.typepanne.id}", headers=admin_headers)
    assert r.json()["pannes_count"] == 1
