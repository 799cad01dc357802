from datetime import date

from gmao import models


def _hrm(client, headers, ref, du="2025-03-11", **extra):
    payload = {"du": du, "engin_id": ref.engin.id, "site_id": ref.site.id, "hrm": 18, **extra}
    return client.post("/api/saisiehrms", json=payload, headers=headers)


# -------------------------------------------------
# ⏱️ HRM / HIM
# -------------------------------------------------
def test_saisiehrm_doublon(client, admin_headers, ref):
    assert _hrm(client, admin_headers, ref).status_code == 201
    r = _hrm(client, admin_headers, ref)
    assert r.status_code == 400
    assert r.json()["detail"] == "Une saisie HRM existe déjà pour cet engin à cette date"


def test_saisiehrm_hrm_negatif(client, admin_headers, ref):
    r = _hrm(client, admin_headers, ref, hrm=-1)
    assert r.status_code == 422


def test_saisiehim_reprend_engin_du_parent(client, admin_headers, ref):
    hrm_id = _hrm(client, admin_headers, ref).json()["id"]
    payload = {"saisiehrm_id": hrm_id, "panne_id": ref.panne.id, "him": 3, "ni": 1}
    r = client.post("/api/saisiehims", json=payload, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["engin_id"] == ref.engin.id

    r = client.post("/api/saisiehims", json=payload, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Cette panne est déjà saisie pour cette saisie HRM"


def test_suppression_hrm_en_cascade(client, admin_headers, db, ref, saisie_mars):
    r = client.delete(f"/api/saisiehrms/{saisie_mars.id}", headers=admin_headers)
    assert r.status_code == 200
    assert db.query(models.Saisiehim).count() == 0


def test_saisiehrms_jour_pagination(client, admin_headers, db, ref):
    for i in range(2, 5):
        db.add(models.Engin(name=f"CH-950-0{i}", parc=ref.parc, site=ref.site))
    db.commit()
    for engin in db.query(models.Engin).all():
        db.add(models.Saisiehrm(du=date(2025, 3, 12),
                                engin_id=engin.id, site_id=ref.site.id, hrm=10))
    db.commit()

    params = {"date": "2025-03-12", "page_size": 3}
    page1 = client.get("/api/saisiehrms/jour", params=params, headers=admin_headers).json()
    assert page1["total"] == 4
    assert page1["total_pages"] == 2
    assert page1["has_more"] is True
    assert len(page1["items"]) == 3

    page2 = client.get("/api/saisiehrms/jour", params={**params, "page": 2}, headers=admin_headers).json()
    assert len(page2["items"]) == 1
    assert page2["has_more"] is False

    tout = client.get(
        "/api/saisiehrms/jour", params={**params, "show_all": "true"}, headers=admin_headers
    ).json()
    assert len(tout["items"]) == 4
    assert tout["page_size"] == 4


def test_saisiehims_jour(client, admin_headers, ref, saisie_mars):
    r = client.get(
        "/api/saisiehims/jour",
        params={"date": "2025-03-10", "typepanne_id": ref.typepanne.id},
        headers=admin_headers,
    )
    assert r.status_code == 200
    item = r.json()["items"][0]
    assert item["du"] == "2025-03-10"
    assert item["engin"]["name"] == "CH-950-01"
    assert item["panne"]["name"] == "Moteur"


# -------------------------------------------------
# 🛢️ Consommations
# -------------------------------------------------
def test_saisielubrifiant(client, admin_headers, db, ref, saisie_mars):
    tl = client.post("/api/typelubrifiants", json={"name": "Huile"}, headers=admin_headers).json()
    lub = client.post(
        "/api/lubrifiants", json={"name": "15W40", "typelubrifiant_id": tl["id"]}, headers=admin_headers
    ).json()
    him_id = saisie_mars.saisiehims[0].id

    r = client.post(
        "/api/saisielubrifiants",
        json={"saisiehim_id": him_id, "lubrifiant_id": lub["id"], "qte": 12.5},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["lubrifiant"]["name"] == "15W40"

    r = client.patch(f"/api/saisielubrifiants/{r.json()['id']}", json={"qte": 5}, headers=admin_headers)
    assert r.json()["qte"] == 5

    r = client.delete(f"/api/lubrifiants/{lub['id']}", headers=admin_headers)
    assert r.status_code == 400


# -------------------------------------------------
# 📋 Saisie imbriquée (performances)
# -------------------------------------------------
def _performance(ref, lub_id, **extra):
    return {
        "du": "2025-03-15",
        "engin_id": ref.engin.id,
        "site_id": ref.site.id,
        "hrm": 16,
        "saisiehims": [
            {
                "panne_id": ref.panne.id,
                "him": 5,
                "ni": 1,
                "saisielubrifiants": [{"lubrifiant_id": lub_id, "qte": 20}],
            }
        ],
        **extra,
    }


def test_performances(client, admin_headers, db, ref):
    tl = models.Typelubrifiant(name="Huile")
    lub = models.Lubrifiant(name="15W40", typelubrifiant=tl)
    autre = models.Panne(name="Vérin", typepanne=ref.typepanne)
    db.add_all([tl, lub, autre])
    db.commit()

    r = client.post("/api/performances", json=_performance(ref, lub.id), headers=admin_headers)
    assert r.status_code == 201
    saisie = r.json()
    assert saisie["saisiehims"][0]["engin_id"] == ref.engin.id
    assert saisie["saisiehims"][0]["saisielubrifiants"][0]["qte"] == 20

    r = client.post("/api/performances", json=_performance(ref, lub.id), headers=admin_headers)
    assert r.status_code == 400

    remplace = _performance(ref, lub.id, hrm=12)
    remplace["saisiehims"] = [{"panne_id": autre.id, "him": 2, "ni": 3}]
    r = client.put(f"/api/performances/{saisie['id']}", json=remplace, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["hrm"] == 12
    assert [h["panne_id"] for h in r.json()["saisiehims"]] == [autre.id]
    assert db.query(models.Saisielubrifiant).count() == 0

    stats = client.get("/api/performances/statistiques", headers=admin_headers).json()
    assert stats["totaux"]["hrm"] == 12
    assert stats["totaux"]["him"] == 2
    assert stats["par_engin"]["CH-950-01"]["saisies"] == 1
    assert list(stats["par_mois"]) == ["2025-03"]


def test_performance_panne_en_double(client, admin_headers, db, ref):
    payload = _performance(ref, 0)
    payload["saisiehims"] = [
        {"panne_id": ref.panne.id, "him": 1, "ni": 1},
        {"panne_id": ref.panne.id, "him": 2, "ni": 1},
    ]
    r = client.post("/api/performances", json=payload, headers=admin_headers)
    assert r.status_code == 400
