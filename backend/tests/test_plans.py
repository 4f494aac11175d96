"""Plan catalog API tests."""

import uuid

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def _plan_payload(code: str = "growth", **overrides) -> dict:  # type: ignore[no-untyped-def]
    payload = {
        "code": code,
        "name": code.title(),
        "monthly_price_cents": 10000,
        "annual_discount_percentage": "10",
        "features": [{"code": "pos", "name": "Point of sale"}],
        "add_ons": [
            {"code": "inventory", "name": "Inventory", "price_cents": 500, "pricing_scope": "branch"},
            {"code": "analytics", "name": "Analytics", "price_cents": 2000},
        ],
        "volume_discount_tiers": [
            {"name": "Small", "min_branches": 1, "max_branches": 4, "discount_percentage": "0"},
            {"name": "Large", "min_branches": 5, "discount_percentage": "10"},
        ],
    }
    payload.update(overrides)
    return payload


class TestPlansAPI:
    def test_create_plan(self, client: TestClient) -> None:
        response = client.post("/v1/plans/", json=_plan_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["code"] == "growth"
        assert data["monthly_price_cents"] == 10000
        assert data["currency"] == "USD"
        assert [f["code"] for f in data["features"]] == ["pos"]
        assert [a["code"] for a in data["add_ons"]] == ["inventory", "analytics"]
        assert data["add_ons"][0]["pricing_scope"] == "branch"
        assert data["add_ons"][1]["pricing_scope"] == "organization"
        assert [t["name"] for t in data["volume_discount_tiers"]] == ["Small", "Large"]
        assert data["volume_discount_tiers"][1]["max_branches"] is None

    def test_create_duplicate_code(self, client: TestClient) -> None:
        client.post("/v1/plans/", json=_plan_payload())

        response = client.post("/v1/plans/", json=_plan_payload())

        assert response.status_code == 409
        assert response.json()["detail"] == "Plan with this code already exists"

    def test_create_invalid_tier_range(self, client: TestClient) -> None:
        payload = _plan_payload(
            volume_discount_tiers=[{"name": "Bad", "min_branches": 5, "max_branches": 2, "discount_percentage": "5"}]
        )

        response = client.post("/v1/plans/", json=payload)

        assert response.status_code == 422

    def test_create_negative_price(self, client: TestClient) -> None:
        response = client.post("/v1/plans/", json=_plan_payload(monthly_price_cents=-1))
        assert response.status_code == 422

    def test_list_plans(self, client: TestClient) -> None:
        client.post("/v1/plans/", json=_plan_payload("growth", display_order=2))
        client.post("/v1/plans/", json=_plan_payload("starter", display_order=1))

        response = client.get("/v1/plans/")

        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "2"
        assert [p["code"] for p in response.json()] == ["starter", "growth"]

    def test_list_pagination(self, client: TestClient) -> None:
        for i in range(3):
            client.post("/v1/plans/", json=_plan_payload(f"plan{i}", display_order=i))

        response = client.get("/v1/plans/?skip=1&limit=1")

        assert [p["code"] for p in response.json()] == ["plan1"]
        assert response.headers["X-Total-Count"] == "3"

    def test_get_plan(self, client: TestClient, plan) -> None:  # type: ignore[no-untyped-def]
        response = client.get(f"/v1/plans/{plan.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Growth"
        assert len(data["add_ons"]) == 3

    def test_get_plan_not_found(self, client: TestClient) -> None:
        response = client.get(f"/v1/plans/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Plan not found"


class TestQuoteAPI:
    def test_quote(self, client: TestClient, plan, plan_response) -> None:  # type: ignore[no-untyped-def]
        inventory = next(a for a in plan_response.add_ons if a.code == "inventory")

        response = client.post(
            f"/v1/plans/{plan.id}/quote",
            json={
                "billing_cycle": "yearly",
                "branch_count": 3,
                "selected_add_ons": [
                    {
                        "addonId": str(inventory.id),
                        "branches": [
                            {"branchIndex": 0, "branchName": "Main", "isSelected": True},
                            {"branchIndex": 1, "branchName": "North", "isSelected": False},
                        ],
                    }
                ],
            },
        )

        assert response.status_code == 200
        assert response.json() == {
            "plan_total_cents": 324000,
            "branch_addon_total_cents": 5400,
            "org_addon_total_cents": 0,
            "total_cents": 329400,
            "volume_discount_percentage": 0.0,
        }

    def test_quote_volume_tier(self, client: TestClient, plan) -> None:  # type: ignore[no-untyped-def]
        response = client.post(f"/v1/plans/{plan.id}/quote", json={"billing_cycle": "monthly", "branch_count": 10})

        assert response.status_code == 200
        assert response.json()["plan_total_cents"] == 80000
        assert response.json()["volume_discount_percentage"] == 20.0

    def test_quote_branch_count_above_maximum(self, client: TestClient, plan) -> None:  # type: ignore[no-untyped-def]
        response = client.post(f"/v1/plans/{plan.id}/quote", json={"billing_cycle": "monthly", "branch_count": 101})

        assert response.status_code == 422
        assert "cannot exceed" in response.json()["detail"]

    def test_quote_zero_branches(self, client: TestClient, plan) -> None:  # type: ignore[no-untyped-def]
        response = client.post(f"/v1/plans/{plan.id}/quote", json={"billing_cycle": "monthly", "branch_count": 0})
        assert response.status_code == 422

    def test_quote_unknown_addon(self, client: TestClient, plan) -> None:  # type: ignore[no-untyped-def]
        response = client.post(
            f"/v1/plans/{plan.id}/quote",
            json={"billing_cycle": "monthly", "branch_count": 1, "selected_add_ons": [{"addonId": str(uuid.uuid4())}]},
        )

        assert response.status_code == 422
        assert "not offered" in response.json()["detail"]

    def test_quote_plan_not_found(self, client: TestClient) -> None:
        response = client.post(f"/v1/plans/{uuid.uuid4()}/quote", json={"billing_cycle": "monthly", "branch_count": 1})
        assert response.status_code == 404
