import pytest


@pytest.fixture
async def open_day(make_total_bottles, issue):
    await make_total_bottles(total=1000)
    resp = await issue(100)
    assert resp.status_code == 200, resp.text


async def _deliver(client, code, **values):
    return await client.post("/deliveries", json={"customer_id": code, **values})


async def _customer(client, code):
    customers = (await client.get("/customers")).json()
    return next(c for c in customers if c["customer_id"] == code)


async def test_delivery_then_admin_delete_restores_everything(client, open_day, customer, usage, notifier):
    resp = await _deliver(client, "C001", filled_bottles=30, empty_bottles=20, payment=1000)
    assert resp.status_code == 201, resp.text
    delivery = resp.json()
    assert delivery["customer_code"] == "c001"

    row = await usage()
    assert (row["sales"], row["remaining_bottles"], row["empty_bottles"], row["revenue"]) == (30, 70, 20, 1000)
    c = await _customer(client, "c001")
    assert c["bottles"] == 10
    assert c["balance"] == 1000 - 30 * 100

    resp = await client.delete(f"/admin/deliveries/{delivery['id']}")
    assert resp.status_code == 204

    row = await usage()
    assert (row["sales"], row["remaining_bottles"], row["empty_bottles"], row["revenue"]) == (0, 100, 0, 0)
    c = await _customer(client, "c001")
    assert (c["bottles"], c["balance"]) == (0, 0)

    assert len(notifier.sent) == 1
    phone, message = notifier.sent[0]
    assert phone == customer.phone
    assert "has been deleted" in message
    assert "- Filled Bottles: 30" in message


async def test_free_of_charge_bottles_are_not_billed(client, open_day, customer):
    resp = await _deliver(client, "c001", filled_bottles=10, foc=4)
    assert resp.status_code == 201
    assert (await _customer(client, "c001"))["balance"] == -600


async def test_foc_above_filled_is_rejected(client, open_day, customer):
    resp = await _deliver(client, "c001", filled_bottles=2, foc=3)
    assert resp.status_code == 422


async def test_cannot_sell_more_than_remaining(client, open_day, customer, usage):
    resp = await _deliver(client, "c001", filled_bottles=150)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_BOTTLES"
    assert (await usage())["sales"] == 0


async def test_delivery_needs_a_day_row(client, make_total_bottles, customer):
    await make_total_bottles(total=1000)
    resp = await _deliver(client, "c001", filled_bottles=1)
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "BOTTLE_USAGE_404"


async def test_unknown_and_inactive_customers(client, open_day, make_customer):
    await make_customer(customer_id="c404", is_active=False)

    resp = await _deliver(client, "nobody", filled_bottles=1)
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "CUSTOMER_404"

    resp = await _deliver(client, "c404", filled_bottles=1)
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "CUSTOMER_INACTIVE"


async def test_admin_update_applies_the_diff(client, open_day, customer, usage, totals):
    resp = await _deliver(client, "c001", filled_bottles=30, empty_bottles=20, payment=1000)
    delivery_id = resp.json()["id"]

    resp = await client.patch(f"/admin/deliveries/{delivery_id}", json={"filled_bottles": 40, "damaged_bottles": 2})
    assert resp.status_code == 200, resp.text
    assert resp.json()["filled_bottles"] == 40

    row = await usage()
    assert (row["sales"], row["remaining_bottles"], row["damaged_bottles"]) == (40, 60, 2)
    tb = await totals()
    assert (tb["total_bottles"], tb["available_bottles"], tb["damaged_bottles"]) == (998, 898, 2)
    c = await _customer(client, "c001")
    assert (c["bottles"], c["balance"]) == (20, 1000 - 40 * 100)

    resp = await client.patch(f"/admin/deliveries/{delivery_id}", json={"foc": 50})
    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == "Delivery.foc"


async def test_moderator_delete_requires_an_open_day(client, open_day, customer, usage, notifier):
    first = (await _deliver(client, "c001", filled_bottles=5)).json()
    second = (await _deliver(client, "c001", filled_bottles=3)).json()

    resp = await client.delete(f"/deliveries/{first['id']}")
    assert resp.status_code == 204
    assert (await usage())["sales"] == 3
    assert len(notifier.sent) == 1

    await client.post("/bottle-usage/done", json={"done": True})
    resp = await client.delete(f"/deliveries/{second['id']}")
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "DAY_CLOSED"
    assert len(notifier.sent) == 1


async def test_moderator_cannot_delete_someone_elses_delivery(client, open_day, customer, make_moderator, login_as):
    delivery = (await _deliver(client, "c001", filled_bottles=5)).json()

    login_as(await make_moderator(name="sara"))
    resp = await client.delete(f"/deliveries/{delivery['id']}")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "DELIVERY_404"


async def test_list_todays_deliveries(client, open_day, customer):
    await _deliver(client, "c001", filled_bottles=5, payment=500)

    resp = await client.get("/deliveries")
    assert resp.status_code == 200
    items = resp.json()
    assert len(items) == 1
    assert items[0]["customer_name"] == customer.name
    assert items[0]["moderator_name"] == "ali"
