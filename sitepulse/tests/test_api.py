"""
HTTP API tests
"""
import pytest

from sitepulse.api.dependencies import get_delay_prediction_service
from sitepulse.main import app
from sitepulse.services.delay_prediction import DelayPredictionService, PredictAllDelaysResponse


class TestGeneral:

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}


class TestBudget:

    @pytest.mark.asyncio
    async def test_default_budget_created(self, client, document_store):
        response = await client.get("/api/projects/p1/budget")

        assert response.status_code == 200
        data = response.json()
        assert data["totalBudget"] == 250000
        assert [c["id"] for c in data["categories"]] == ["equipment", "materials"]
        assert data["categories"][0]["isPrimary"] is True
        assert await document_store.get_budget("p1") is not None

    @pytest.mark.asyncio
    async def test_material_spend_reflected(self, client, registry):
        await client.get("/api/projects/p1/budget")
        response = await client.post(
            "/api/projects/p1/materials",
            json={"name": "Cement", "quantity": 10, "total_bought": 20, "price": 250},
        )
        assert response.status_code == 200

        await registry.drain()
        data = (await client.get("/api/projects/p1/budget")).json()

        materials = next(c for c in data["categories"] if c["id"] == "materials")
        assert materials["spentAmount"] == 5000
        assert data["totalSpent"] == 5000

    @pytest.mark.asyncio
    async def test_summary_flags_overspend(self, client, registry):
        await client.post(
            "/api/projects/p1/equipment",
            json={"name": "Crane", "type": "rental", "rental_cost": 60000},
        )
        await registry.drain()

        summary = (await client.get("/api/projects/p1/budget/summary")).json()

        equipment = next(c for c in summary["categories"] if c["id"] == "equipment")
        assert equipment["over_budget_message"] == "Over Budget by ₱10,000.00"
        assert summary["contingency_amount"] == 25000

    @pytest.mark.asyncio
    async def test_category_lifecycle(self, client):
        response = await client.post(
            "/api/projects/p1/budget/categories",
            json={"name": "Permits", "allocated_amount": 5000, "spent_amount": 1200},
        )
        assert response.status_code == 200
        category = next(c for c in response.json()["categories"] if c["name"] == "Permits")
        assert response.json()["totalSpent"] == 1200

        response = await client.put(
            f"/api/projects/p1/budget/categories/{category['id']}",
            json={"name": "Permits", "allocated_amount": 6000, "spent_amount": 1500},
        )
        assert response.status_code == 200
        assert response.json()["totalSpent"] == 1500

        response = await client.delete(f"/api/projects/p1/budget/categories/{category['id']}")
        assert response.status_code == 200
        assert len(response.json()["categories"]) == 2

    @pytest.mark.asyncio
    async def test_primary_category_delete_rejected(self, client):
        response = await client.delete("/api/projects/p1/budget/categories/materials")
        assert response.status_code == 400
        assert "cannot be deleted" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_category(self, client):
        response = await client.put(
            "/api/projects/p1/budget/categories/nope",
            json={"name": "X", "allocated_amount": 1, "spent_amount": 0},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_settings(self, client):
        response = await client.put(
            "/api/projects/p1/budget/settings",
            json={"total_budget": 500000, "contingency_percentage": 12},
        )
        assert response.status_code == 200
        assert response.json()["contingencyPercentage"] == 12

        response = await client.put("/api/projects/p1/budget/settings", json={"contingency_percentage": 80})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_reconcile(self, client):
        response = await client.post("/api/projects/p1/budget/reconcile")
        assert response.status_code == 200
        assert response.json()["totalSpent"] == 0

    @pytest.mark.asyncio
    async def test_reconcile_picks_up_outside_writes(self, client, document_store):
        await client.get("/api/projects/p1/budget")
        await document_store.add("materials", "p1", {"name": "Sand", "quantity": 4, "price": 250})

        response = await client.post("/api/projects/p1/budget/reconcile")

        assert response.status_code == 200
        assert response.json()["totalSpent"] == 1000
        assert (await document_store.get_budget("p1")).total_spent == 1000


class TestResources:

    @pytest.mark.asyncio
    async def test_worker_crud(self, client):
        created = (await client.post("/api/projects/p1/workers", json={"name": "Ana", "rate": 700})).json()

        response = await client.put(f"/api/projects/p1/workers/{created['id']}", json={"rate": 750})
        assert response.json()["rate"] == 750

        listed = (await client.get("/api/projects/p1/workers")).json()
        assert [w["rate"] for w in listed] == [750]

        response = await client.delete(f"/api/projects/p1/workers/{created['id']}")
        assert response.status_code == 200
        assert (await client.get("/api/projects/p1/workers")).json() == []

    @pytest.mark.asyncio
    async def test_budget_log_updates_user_category(self, client, registry):
        await client.post(
            "/api/projects/p1/budget/categories",
            json={"name": "Labor", "allocated_amount": 20000, "spent_amount": 0},
        )
        await client.post(
            "/api/projects/p1/budget-logs",
            json={"category": "labor", "amount": 4500, "type": "expense"},
        )
        await registry.drain()

        data = (await client.get("/api/projects/p1/budget")).json()
        labor = next(c for c in data["categories"] if c["name"] == "Labor")
        assert labor["spentAmount"] == 4500

    @pytest.mark.asyncio
    async def test_missing_item(self, client):
        response = await client.delete("/api/projects/p1/equipment/nope")
        assert response.status_code == 404


class TestTasks:

    @pytest.mark.asyncio
    async def test_task_create_and_update(self, client):
        task = (await client.post("/api/projects/p1/tasks", json={"title": "Pour slab"})).json()

        response = await client.put(f"/api/projects/p1/tasks/{task['id']}", json={"status": "done"})
        assert response.json()["status"] == "done"

        response = await client.put(f"/api/projects/p2/tasks/{task['id']}", json={"status": "x"})
        assert response.status_code == 404

        tasks = (await client.get("/api/projects/p1/tasks")).json()
        assert len(tasks) == 1

    @pytest.mark.asyncio
    async def test_delay_predictions_not_configured(self, client):
        app.dependency_overrides[get_delay_prediction_service] = lambda: DelayPredictionService(base_url="")

        response = await client.get("/api/projects/p1/delay-predictions")

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_delay_predictions(self, client):
        class StubService(DelayPredictionService):
            async def predict_all_delays(self, project_id):
                return PredictAllDelaysResponse(project_id=project_id)

        app.dependency_overrides[get_delay_prediction_service] = lambda: StubService(base_url="https://x")

        response = await client.get("/api/projects/p1/delay-predictions")

        assert response.status_code == 200
        assert response.json()["projectId"] == "p1"
