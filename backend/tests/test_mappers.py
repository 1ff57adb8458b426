from conftest import IKEJA, auth_headers


def test_public_listing_puts_live_mappers_first(client, mapper, make_mapper):
    make_mapper(email="live@example.com", name="Live Mapper", is_live=True)
    make_mapper(email="gone@example.com", name="Gone Mapper", is_active=False)

    r = client.get("/api/mappers")
    assert r.status_code == 200
    mappers = r.json()["mappers"]
    assert [m["name"] for m in mappers] == ["Live Mapper", "Tunde Bakare"]
    assert "email" not in mappers[0]
    assert "bankAccount" not in mappers[0]

    live = client.get("/api/mappers", params={"isLive": "true"}).json()
    assert live["pagination"]["total"] == 1


def test_profile_update(client, mapper):
    r = client.put(
        "/api/mappers/profile",
        json={"phone": "+2348099999999", "vehicleType": "KEKE_NAPEP", "bankName": "Access"},
        headers=auth_headers(mapper),
    )
    assert r.status_code == 200
    profile = r.json()["mapper"]
    assert profile["phone"] == "+2348099999999"
    assert profile["vehicleType"] == "KEKE_NAPEP"
    assert profile["bankName"] == "Access"
    assert profile["name"] == mapper.name

    assert client.get("/api/mappers/profile", headers=auth_headers(mapper)).json()["mapper"]["vehicleType"] == "KEKE_NAPEP"


def test_live_location(client, mapper):
    r = client.put(
        "/api/mappers/location",
        json={"lat": IKEJA[0], "lon": IKEJA[1], "isLive": True},
        headers=auth_headers(mapper),
    )
    assert r.status_code == 200
    assert r.json()["mapper"]["isLive"] is True
    assert r.json()["mapper"]["currentLocation"] == {"lat": IKEJA[0], "lon": IKEJA[1]}


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert client.get("/").json()["app"] == "SafetyMapper"
