import pytest


@pytest.fixture
async def open_day(make_total_bottles, issue):
    await make_total_bottles(total=1000)
    resp = await issue(100, caps=5)
    assert resp.status_code == 200, resp.text


async def _misc(client, **values):
    return await client.post("/miscellaneous", json={"customer_name": "walk-in", **values})


async def test_unpaid_misc_delivery_records_no_payment(client, open_day, usage):
    resp = await _misc(client, is_paid=False, payment=500, filled_bottles=5)
    assert resp.status_code == 201, resp.text
    assert resp.json()["payment"] == 0

    row = await usage()
    assert (row["sales"], row["remaining_bottles"], row["revenue"]) == (5, 95, 0)


async def test_damaged_misc_bottles_leave_the_pool(client, open_day, totals):
    resp = await _misc(client, is_paid=True, payment=100, filled_bottles=2, damaged_bottles=2)
    assert resp.status_code == 201, resp.text
    tb = await totals()
    assert (tb["damaged_bottles"], tb["total_bottles"], tb["available_bottles"]) == (2, 998, 898)


async def test_misc_bottle_usage(client, open_day, usage, totals):
    resp = await client.post("/miscellaneous/bottle-usage", json={})
    assert resp.status_code == 422

    await _misc(client, filled_bottles=5)
    resp = await client.post("/miscellaneous/bottle-usage", json={"empty_bottles": 3, "damaged_bottles": 1})
    assert resp.status_code == 200, resp.text
    assert resp.json()["empty_bottles"] == 3
    assert resp.json()["damaged_bottles"] == 1
    assert (await totals())["damaged_bottles"] == 1

    resp = await client.post("/miscellaneous/bottle-usage", json={"empty_bottles": 10})
    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == "BottleUsage.empty_bottles"


async def test_admin_update_and_delete_misc(client, open_day, usage):
    misc = (await _misc(client, is_paid=True, payment=100, filled_bottles=5)).json()

    resp = await client.patch(f"/admin/miscellaneous/{misc['id']}", json={"filled_bottles": 8, "payment": 160})
    assert resp.status_code == 200, resp.text
    row = await usage()
    assert (row["sales"], row["remaining_bottles"], row["revenue"]) == (8, 92, 160)

    resp = await client.patch(f"/admin/miscellaneous/{misc['id']}", json={"is_paid": False})
    assert resp.status_code == 200
    assert resp.json()["payment"] == 0
    assert (await usage())["revenue"] == 0

    resp = await client.delete(f"/admin/miscellaneous/{misc['id']}")
    assert resp.status_code == 204
    row = await usage()
    assert (row["sales"], row["remaining_bottles"], row["revenue"]) == (0, 100, 0)

    resp = await client.delete(f"/admin/miscellaneous/{misc['id']}")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "MISC_404"


async def test_misc_closed_day(client, open_day):
    await client.post("/bottle-usage/done", json={"done": True})
    resp = await _misc(client, filled_bottles=1)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "DAY_CLOSED"


async def test_list_misc(client, open_day):
    await _misc(client, filled_bottles=1)
    await _misc(client, filled_bottles=2)
    items = (await client.get("/miscellaneous")).json()
    assert sorted(m["filled_bottles"] for m in items) == [1, 2]
