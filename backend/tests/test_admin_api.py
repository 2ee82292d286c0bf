def _create_venue(client, name: str = "Club Lumen") -> dict:
    response = client.post("/api/admin/venues", json={"name": name})
    assert response.status_code == 200
    return response.json()


def _policy_payload(name: str, **overrides) -> dict:
    payload = {
        "name": name,
        "set_fee": 3000,
        "set_duration_minutes": 60,
        "extension_fee": 1000,
        "extension_duration_minutes": 30,
        "nomination_fee": 5000,
    }
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").json()["service"] == "nightbase-floor"


def test_venue_names_are_unique(client):
    _create_venue(client)
    assert client.post("/api/admin/venues", json={"name": "Club Lumen"}).status_code == 400
    assert client.post("/api/admin/venues", json={"name": "   "}).status_code == 400
    assert [v["name"] for v in client.get("/api/admin/venues").json()] == ["Club Lumen"]


def test_tables_and_profiles(client):
    venue = _create_venue(client)
    base = f"/api/admin/venues/{venue['id']}"

    assert client.post(f"{base}/tables", json={"name": "T1"}).status_code == 200
    assert client.post(f"{base}/tables", json={"name": "T1"}).status_code == 400
    assert [t["name"] for t in client.get(f"{base}/tables").json()] == ["T1"]

    client.post(f"{base}/profiles", json={"display_name": "Mio", "role": "cast"})
    client.post(f"{base}/profiles", json={"display_name": "Tanaka", "role": "guest"})
    assert client.post(f"{base}/profiles", json={"display_name": "X", "role": "owner"}).status_code == 422
    casts = client.get(f"{base}/profiles", params={"role": "cast"}).json()
    assert [p["display_name"] for p in casts] == ["Mio"]

    assert client.get("/api/admin/venues/999/tables").status_code == 404


def test_hidden_menus_are_listed_on_request(client):
    venue = _create_venue(client)
    base = f"/api/admin/venues/{venue['id']}/menus"
    client.post(base, json={"name": "Highball", "price": 800})
    client.post(base, json={"name": "Staff drink", "price": 0, "is_hidden": True})

    assert [m["name"] for m in client.get(base).json()] == ["Highball"]
    assert len(client.get(base, params={"include_hidden": True}).json()) == 2


def test_only_one_default_pricing_policy(client):
    venue = _create_venue(client)
    base = f"/api/admin/venues/{venue['id']}/pricing-policies"

    first = client.post(base, json=_policy_payload("Standard", is_default=True)).json()
    second = client.post(base, json=_policy_payload("Weekend", is_default=True)).json()

    defaults = {p["id"]: p["is_default"] for p in client.get(base).json()}
    assert defaults == {first["id"]: False, second["id"]: True}

    response = client.patch(f"/api/admin/pricing-policies/{first['id']}", json={"is_default": True, "set_fee": 4000})
    assert response.status_code == 200
    assert response.json()["set_fee"] == 4000
    defaults = {p["id"]: p["is_default"] for p in client.get(base).json()}
    assert defaults == {first["id"]: True, second["id"]: False}


def test_pricing_policy_validation(client):
    venue = _create_venue(client)
    base = f"/api/admin/venues/{venue['id']}/pricing-policies"

    bad = _policy_payload("Broken", extension_duration_minutes=0)
    assert client.post(base, json=bad).status_code == 422
    assert client.post(base, json=_policy_payload("Free", extension_fee=0, extension_duration_minutes=0)).status_code == 200
    assert client.patch("/api/admin/pricing-policies/missing", json={"set_fee": 1}).status_code == 404


def test_staff_duration_can_be_cleared(client):
    venue = _create_venue(client)
    policy = client.post(
        f"/api/admin/venues/{venue['id']}/pricing-policies",
        json=_policy_payload("Standard", nomination_set_duration_minutes=45),
    ).json()
    assert policy["nomination_set_duration_minutes"] == 45

    response = client.patch(
        f"/api/admin/pricing-policies/{policy['id']}",
        json={"nomination_set_duration_minutes": None, "set_fee": None},
    )
    assert response.status_code == 200
    assert response.json()["nomination_set_duration_minutes"] is None
    assert response.json()["set_fee"] == 3000


def test_bill_settings_upsert(client):
    venue = _create_venue(client)
    url = f"/api/admin/venues/{venue['id']}/bill-settings"
    assert client.get(url).status_code == 404

    payload = {"service_rate": "0.2", "tax_rate": "0.1", "rounding_enabled": True, "rounding_method": "ceil", "rounding_unit": 100}
    assert client.put(url, json=payload).status_code == 200
    payload["rounding_method"] = "floor"
    assert client.put(url, json=payload).status_code == 200

    data = client.get(url).json()
    assert data["rounding_method"] == "floor"
    assert data["rounding_unit"] == 100
    assert float(data["service_rate"]) == 0.2

    assert client.put(url, json={"rounding_method": "banker"}).status_code == 422
