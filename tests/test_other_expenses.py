import pytest


@pytest.fixture
async def day_with_empties(make_total_bottles, issue, client):
    await make_total_bottles(total=1000)
    resp = await issue(100, caps=5)
    assert resp.status_code == 200, resp.text
    resp = await client.post(
        "/miscellaneous", json={"customer_name": "walk-in", "filled_bottles": 10, "empty_bottles": 6}
    )
    assert resp.status_code == 201, resp.text


async def test_refill_is_clamped_to_empties_and_caps(client, day_with_empties, usage):
    resp = await client.post("/other-expenses", json={"amount": 300, "description": "refill", "refilled_bottles": 10})
    assert resp.status_code == 201, resp.text
    assert resp.json()["refilled_bottles"] == 5

    row = await usage()
    assert row["empty_bottles"] == 1
    assert row["caps"] == 0
    assert row["refilled_bottles"] == 5
    assert row["remaining_bottles"] == 95
    assert row["expense"] == 300


async def test_moderator_delete_reverses_the_expense(client, day_with_empties, usage):
    expense = (await client.post("/other-expenses", json={"amount": 300, "refilled_bottles": 10})).json()

    resp = await client.delete(f"/other-expenses/{expense['id']}")
    assert resp.status_code == 204

    row = await usage()
    assert (row["empty_bottles"], row["caps"], row["refilled_bottles"]) == (6, 5, 0)
    assert (row["remaining_bottles"], row["expense"]) == (90, 0)


async def test_admin_update_expense(client, day_with_empties, usage):
    expense = (await client.post("/other-expenses", json={"amount": 300, "refilled_bottles": 5})).json()

    resp = await client.patch(f"/admin/other-expenses/{expense['id']}", json={"amount": 500})
    assert resp.status_code == 200, resp.text
    assert (await usage())["expense"] == 500

    resp = await client.patch(f"/admin/other-expenses/{expense['id']}", json={"refilled_bottles": 8})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_CAPS"
    assert (await usage())["refilled_bottles"] == 5


async def test_admin_delete_expense(client, day_with_empties, usage):
    expense = (await client.post("/other-expenses", json={"amount": 250})).json()

    resp = await client.delete(f"/admin/other-expenses/{expense['id']}")
    assert resp.status_code == 204
    assert (await usage())["expense"] == 0

    resp = await client.delete(f"/admin/other-expenses/{expense['id']}")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "EXPENSE_404"


async def test_list_expenses(client, day_with_empties):
    await client.post("/other-expenses", json={"amount": 100, "description": "fuel"})
    items = (await client.get("/other-expenses")).json()
    assert [(e["amount"], e["description"], e["moderator_name"]) for e in items] == [(100, "fuel", "ali")]
