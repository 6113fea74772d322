NEW_CUSTOMER = {
    "customer_id": "C777",
    "name": "Bilal",
    "address": "House 7",
    "area": "north",
    "phone": "03007777777",
    "bottle_price": 120,
}


async def test_deposit_leaves_the_pool_and_delete_restores_it(client, make_total_bottles, totals):
    await make_total_bottles(total=1000, used=100)

    resp = await client.post("/customers", json={**NEW_CUSTOMER, "deposit": 5})
    assert resp.status_code == 201, resp.text
    created = resp.json()
    assert created["customer_id"] == "c777"

    tb = await totals()
    assert (tb["available_bottles"], tb["deposit_bottles"], tb["total_bottles"]) == (895, 5, 995)

    resp = await client.delete(f"/customers/{created['id']}")
    assert resp.status_code == 204
    tb = await totals()
    assert (tb["available_bottles"], tb["deposit_bottles"], tb["total_bottles"]) == (900, 0, 1000)


async def test_delete_returns_bottles_held_by_the_customer(client, make_total_bottles, totals):
    await make_total_bottles(total=1000)
    created = (await client.post("/customers", json={**NEW_CUSTOMER, "deposit": 5})).json()
    resp = await client.patch(f"/customers/{created['id']}", json={"bottles": 10})
    assert resp.status_code == 200, resp.text
    tb = await totals()
    assert (tb["available_bottles"], tb["used_bottles"]) == (985, 10)

    resp = await client.delete(f"/customers/{created['id']}")
    assert resp.status_code == 204
    tb = await totals()
    assert (tb["total_bottles"], tb["available_bottles"], tb["used_bottles"], tb["deposit_bottles"]) == (1000, 1000, 0, 0)


async def test_delete_reverses_the_customers_deliveries(client, make_total_bottles, customer, issue, usage, totals):
    await make_total_bottles(total=1000)
    await issue(100)
    resp = await client.post(
        "/deliveries",
        json={
            "customer_id": customer.customer_id,
            "filled_bottles": 30,
            "empty_bottles": 20,
            "damaged_bottles": 2,
            "payment": 500,
        },
    )
    assert resp.status_code == 201, resp.text
    assert (await totals())["damaged_bottles"] == 2

    resp = await client.delete(f"/customers/{customer.id}")
    assert resp.status_code == 204

    row = await usage()
    assert (row["sales"], row["remaining_bottles"], row["empty_bottles"], row["revenue"]) == (0, 100, 0, 0)
    assert row["damaged_bottles"] == 0
    tb = await totals()
    assert (tb["total_bottles"], tb["available_bottles"], tb["used_bottles"], tb["damaged_bottles"]) == (1000, 900, 100, 0)
    assert (await client.get("/deliveries")).json() == []


async def test_duplicate_code_is_a_conflict(client, make_total_bottles, customer):
    await make_total_bottles(total=1000)
    resp = await client.post("/customers", json={**NEW_CUSTOMER, "customer_id": "C001"})
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "DUPLICATE"


async def test_deposit_beyond_available(client, make_total_bottles, totals):
    await make_total_bottles(total=10)
    resp = await client.post("/customers", json={**NEW_CUSTOMER, "deposit": 11})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_BOTTLES"
    assert (await client.get("/customers")).json() == []


async def test_blank_fields_are_rejected(client, make_total_bottles):
    await make_total_bottles(total=10)
    resp = await client.post("/customers", json={**NEW_CUSTOMER, "phone": "  "})
    assert resp.status_code == 422


async def test_update_applies_bottle_and_deposit_diffs(client, make_total_bottles, totals):
    await make_total_bottles(total=1000)
    created = (await client.post("/customers", json={**NEW_CUSTOMER, "deposit": 5})).json()

    resp = await client.patch(
        f"/customers/{created['id']}",
        json={"bottles": 3, "deposit": 7, "name": "Bilal Khan"},
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert (body["bottles"], body["deposit"], body["name"]) == (3, 7, "Bilal Khan")

    tb = await totals()
    assert tb["total_bottles"] == 993
    assert tb["available_bottles"] == 990
    assert tb["used_bottles"] == 3
    assert tb["deposit_bottles"] == 7
    assert tb["total_bottles"] == tb["available_bottles"] + tb["used_bottles"]


async def test_update_to_an_existing_code(client, make_total_bottles, make_customer):
    await make_total_bottles(total=1000)
    await make_customer(customer_id="c001")
    other = await make_customer(customer_id="c002")

    resp = await client.patch(f"/customers/{other.id}", json={"customer_id": "c001"})
    assert resp.status_code == 409


async def test_customers_by_area_lists_active_only(client, make_customer):
    await make_customer(customer_id="c001", area="north", name="Zara")
    await make_customer(customer_id="c002", area="north", name="Adil")
    await make_customer(customer_id="c003", area="north", is_active=False)
    await make_customer(customer_id="c004", area="south")

    resp = await client.get("/customers/by-area/north")
    assert resp.status_code == 200
    assert [c["customer_id"] for c in resp.json()] == ["c002", "c001"]


async def test_delete_unknown_customer(client, make_total_bottles, moderator):
    await make_total_bottles(total=10)
    resp = await client.delete(f"/customers/{moderator.id}")
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "CUSTOMER_404"
