"""HTTP surface: routing, request aliases, status codes and error translation."""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tests.conftest import USER_ID
from wayfare.database import get_db
from wayfare.dependencies import get_current_user_id, get_pipeline
from wayfare.main import app


@pytest_asyncio.fixture
async def client(session_factory, pipeline, catalog):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    app.dependency_overrides[get_pipeline] = lambda: pipeline

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def created(client, catalog) -> dict:
    response = await client.post(
        "/api/itinerary",
        json={
            "startDate": "2026-12-01",
            "destinationId": str(catalog.destination.id),
            "cities": [str(catalog.bangkok.id), str(catalog.phuket.id)],
            "activities": [
                str(catalog.activities["Grand Palace"].id),
                str(catalog.activities["Big Buddha"].id),
            ],
            "rooms": [{"adults": 2}],
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client) -> None:
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "wayfare"}


@pytest.mark.asyncio
async def test_create_and_fetch(client, created) -> None:
    assert created["version"] == 1
    assert created["user_id"] == str(USER_ID)
    assert created["grand_total"] == 16688.0
    assert [leg["city_name"] for leg in created["tree"]["legs"]] == ["Bangkok", "Phuket"]
    assert created["tree"]["legs"][0]["transport"]["mode"] == "Flight"

    response = await client.get(f"/api/itinerary/{created['id']}")

    assert response.status_code == 200
    assert response.json()["tree"] == created["tree"]


@pytest.mark.asyncio
async def test_create_validates_body(client, catalog) -> None:
    response = await client.post(
        "/api/itinerary",
        json={"startDate": "2026-12-01", "destinationId": str(catalog.destination.id), "cities": []},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_itinerary_is_404(client) -> None:
    response = await client.get(f"/api/itinerary/{uuid.uuid4()}")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_activities_in_tree_order(client, created) -> None:
    response = await client.get(f"/api/itinerary/{created['id']}/activities")

    assert response.status_code == 200
    items = response.json()
    assert [(a["name"], a["price"], a["leg_index"], a["day_date"]) for a in items] == [
        ("Grand Palace", 1000.0, 0, "2026-12-01"),
        ("Big Buddha", 0.0, 1, "2026-12-02"),
    ]


@pytest.mark.asyncio
async def test_city_endpoints(client, created) -> None:
    base = f"/api/itinerary/{created['id']}/cities"

    response = await client.patch(f"{base}/add-city", json={"newCity": "Krabi", "position": 2})
    assert response.status_code == 200
    assert [leg["city_name"] for leg in response.json()["tree"]["legs"]] == ["Bangkok", "Phuket", "Krabi"]

    response = await client.patch(f"{base}/2/replace-city", json={"newCity": "Bangkok"})
    assert response.status_code == 200
    assert response.json()["tree"]["legs"][2]["city_name"] == "Bangkok"

    response = await client.patch(f"{base}/0/delete-city")
    assert response.status_code == 200
    assert response.json()["version"] == 4
    assert len(response.json()["tree"]["legs"]) == 2


@pytest.mark.asyncio
async def test_day_endpoints(client, created) -> None:
    base = f"/api/itinerary/{created['id']}/cities/0"

    response = await client.patch(f"{base}/add-days", json={"additionalDays": 2})
    assert response.status_code == 200
    assert response.json()["tree"]["total_days"] == 4

    response = await client.patch(f"{base}/delete-days", json={"daysToDelete": 3})
    assert response.status_code == 400
    assert "cannot delete 3" in response.json()["detail"]

    response = await client.patch(f"{base}/delete-days", json={"daysToDelete": 2})
    assert response.status_code == 200
    assert response.json()["tree"]["total_days"] == 2


@pytest.mark.asyncio
async def test_transport_mode_endpoint(client, created) -> None:
    base = f"/api/itinerary/{created['id']}/cities"

    response = await client.patch(f"{base}/0/transport-mode", json={"newMode": "Ferry"})
    assert response.status_code == 200
    assert response.json()["tree"]["legs"][0]["transport"]["mode"] == "Ferry"
    assert response.json()["ferries_price"] == 1200.0
    assert response.json()["flights_price"] == 0.0

    response = await client.patch(f"{base}/0/transport-mode", json={"newMode": "Balloon"})
    assert response.status_code == 400

    response = await client.patch(f"{base}/1/transport-mode", json={"newMode": "Car"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_activity_endpoints(client, created, catalog) -> None:
    scheduled_id = created["tree"]["legs"][0]["days"][0]["activities"][0]
    base = f"/api/itinerary/{created['id']}/activity/{scheduled_id}"

    response = await client.patch(f"{base}/replace", json={"newActivityId": str(catalog.activities["Wat Arun"].id)})
    assert response.status_code == 200
    assert response.json()["activities_price"] == 400.0

    response = await client.patch(f"{base}/replaceLeisure")
    assert response.status_code == 200
    assert response.json()["activities_price"] == 0.0

    response = await client.patch(f"{base}/replaceLeisure")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_details_endpoint(client, created) -> None:
    response = await client.patch(
        f"/api/itinerary/{created['id']}/update-details",
        json={"newStartDate": "2027-02-01", "travellingWith": "Family", "rooms": [{"adults": 1}, {"adults": 1}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["start_date"] == "2027-02-01"
    assert body["travelling_with"] == "Family"
    assert len(body["rooms"]) == 2
    assert body["tree"]["legs"][1]["days"][0]["date"] == "2027-02-02"


@pytest.mark.asyncio
async def test_versions_and_delete(client, created) -> None:
    base = f"/api/itinerary/{created['id']}"
    await client.patch(f"{base}/update-details", json={"travellingWith": "Solo"})

    response = await client.get(f"{base}/versions")
    assert response.status_code == 200
    assert [v["version_number"] for v in response.json()] == [2, 1]

    response = await client.delete(base)
    assert response.status_code == 204
    assert (await client.get(base)).status_code == 404


@pytest.mark.asyncio
async def test_discount_endpoints(client, created) -> None:
    response = await client.post(
        "/api/discounts",
        json={
            "name": "Hotel Saver",
            "discountPercentage": 10,
            "maxDiscount": 100,
            "applicableOn": {"package": True, "hotels": True},
            "noOfUsesPerUser": 3,
        },
    )
    assert response.status_code == 201, response.text
    discount = response.json()
    assert discount["applicable_on"]["hotels"] is True

    response = await client.patch(f"/api/itinerary/{created['id']}/addCoupon/{discount['id']}")
    assert response.status_code == 200
    assert response.json()["general_discount"] == 100.0
    assert response.json()["discounts"] == [discount["id"]]

    response = await client.patch(f"/api/itinerary/{created['id']}/addCoupon/{discount['id']}")
    assert response.status_code == 409

    response = await client.post("/api/discounts/apply", json={"discountId": discount["id"], "totalAmount": 500})
    assert response.status_code == 200
    assert response.json() == {
        "discount_id": discount["id"],
        "amount": 50.0,
        "applied": True,
        "message": "Discount applied",
    }

    response = await client.get(f"/api/discounts/{discount['id']}")
    assert response.json()["total_discount_usage_count"] == 2


@pytest.mark.asyncio
async def test_discount_validation_and_archive(client) -> None:
    response = await client.post(
        "/api/discounts",
        json={"name": "Backwards", "discountPercentage": 5, "startDate": "2026-12-10", "endDate": "2026-12-01"},
    )
    assert response.status_code == 400

    response = await client.post("/api/discounts", json={"name": "Too much", "discountPercentage": 150})
    assert response.status_code == 422

    created = (await client.post("/api/discounts", json={"name": "Spring", "discountPercentage": 5})).json()
    response = await client.patch(f"/api/discounts/{created['id']}", json={"archived": True})
    assert response.status_code == 200
    assert response.json()["archived"] is True

    listed = (await client.get("/api/discounts")).json()
    assert created["id"] not in [d["id"] for d in listed]

    response = await client.post("/api/discounts/apply", json={"discountId": str(uuid.uuid4()), "totalAmount": 10})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_missing_token_is_401(client) -> None:
    del app.dependency_overrides[get_current_user_id]

    response = await client.get(f"/api/itinerary/{uuid.uuid4()}")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
