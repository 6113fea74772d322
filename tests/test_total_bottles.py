import pytest


async def test_read_without_record_is_not_found(client):
    resp = await client.get("/total-bottles")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "TOTAL_BOTTLES_404"


async def test_put_creates_the_record(client, totals):
    resp = await client.put("/total-bottles", json={"total_bottles": 1000})
    assert resp.status_code == 200, resp.text
    body = await totals()
    assert body["total_bottles"] == 1000
    assert body["available_bottles"] == 1000
    assert body["used_bottles"] == 0
    assert body["version"] == 1


async def test_create_must_balance(client):
    resp = await client.put(
        "/total-bottles",
        json={"total_bottles": 1000, "available_bottles": 900, "used_bottles": 50},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["bound"] == "== available_bottles + used_bottles"


async def test_damaged_adjustment_leaves_the_pool(client, make_total_bottles):
    await make_total_bottles(total=1000, damaged=5)

    resp = await client.put("/total-bottles", json={"damaged_bottles": 8})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["total_bottles"] == 997
    assert body["available_bottles"] == 997
    assert body["damaged_bottles"] == 8
    assert body["version"] == 2


async def test_total_and_used_adjustments(client, make_total_bottles, totals):
    await make_total_bottles(total=1000)

    resp = await client.put("/total-bottles", json={"total_bottles": 1100})
    assert resp.status_code == 200
    resp = await client.put("/total-bottles", json={"used_bottles": 100})
    assert resp.status_code == 200

    body = await totals()
    assert body["total_bottles"] == 1100
    assert body["available_bottles"] == 1000
    assert body["used_bottles"] == 100
    assert body["total_bottles"] == body["available_bottles"] + body["used_bottles"]


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"available_bottles": 1200}, "TotalBottles.available_bottles"),
        ({"used_bottles": 1200}, "TotalBottles.used_bottles"),
    ],
)
async def test_adjustments_cannot_exceed_total(client, make_total_bottles, totals, payload, field):
    await make_total_bottles(total=1000)

    resp = await client.put("/total-bottles", json=payload)
    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == field
    assert (await totals())["available_bottles"] == 1000


async def test_empty_adjustment_is_rejected(client, make_total_bottles):
    await make_total_bottles(total=1000)
    resp = await client.put("/total-bottles", json={})
    assert resp.status_code == 422
