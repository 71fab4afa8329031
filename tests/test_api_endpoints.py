"""API endpoint tests.

Tests the FastAPI endpoints against an in-memory database, one request
per unit of work as in production.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from staff_payroll.api.app import create_app
from staff_payroll.api.dependencies import get_db_session
from staff_payroll.models import StaffMember

API = "/api/v1/payroll"


@pytest.fixture
async def client(session_factory):
    """HTTP client whose requests each get their own committed session."""
    app = create_app()

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def staff(session_factory, tenant_id) -> dict[str, StaffMember]:
    async with session_factory() as session:
        members = {
            "a": StaffMember(tenant_id=tenant_id, role="TEACHER", first_name="Alice", last_name="Achieng"),
            "b": StaffMember(tenant_id=tenant_id, role="FINANCE", first_name="Brian", last_name="Otieno"),
            "c": StaffMember(tenant_id=tenant_id, role="LIBRARIAN", username="carol"),
        }
        session.add_all(members.values())
        await session.commit()
    return members


@pytest.fixture
def headers(tenant_id) -> dict[str, str]:
    return {"X-Tenant-ID": str(tenant_id), "X-User-ID": str(uuid4())}


@pytest.fixture
async def assigned(client, headers, staff):
    """A: BASIC 1000. B: BASIC 800 + DEDUCTION 100. C: nothing."""
    basic = await client.post(
        f"{API}/components", headers=headers, json={"name": "Basic Salary", "type": "BASIC"}
    )
    loan = await client.post(
        f"{API}/components", headers=headers, json={"name": "Loan", "type": "DEDUCTION"}
    )
    assert basic.status_code == 201
    assert loan.status_code == 201

    for member, component, amount in (
        (staff["a"], basic, "1000"),
        (staff["b"], basic, "800"),
        (staff["b"], loan, "100"),
    ):
        response = await client.post(
            f"{API}/assignments",
            headers=headers,
            json={
                "staff_id": str(member.staff_id),
                "pay_component_id": component.json()["pay_component_id"],
                "amount": amount,
            },
        )
        assert response.status_code == 201
    return staff


async def create_run(client, headers, staff_ids, period="2025-03"):
    return await client.post(
        f"{API}/runs",
        headers=headers,
        json={"period": period, "staff_ids": [str(s) for s in staff_ids]},
    )


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "healthy"
        assert response.json()["status"] == "healthy"

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestHeaders:
    async def test_tenant_header_required(self, client: AsyncClient):
        response = await client.get(f"{API}/runs")
        assert response.status_code == 400

    async def test_tenant_header_must_be_uuid(self, client: AsyncClient):
        response = await client.get(f"{API}/runs", headers={"X-Tenant-ID": "acme"})
        assert response.status_code == 400


class TestSalaryRunEndpoints:
    """Test the run lifecycle over HTTP."""

    async def test_create_run(self, client, headers, assigned):
        response = await create_run(
            client, headers, [assigned["a"].staff_id, assigned["b"].staff_id]
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "DRAFT"
        assert data["staff_count"] == 2
        assert Decimal(data["total_gross"]) == Decimal("1800")
        assert Decimal(data["total_net"]) == Decimal("1700")
        brian = next(i for i in data["items"] if i["staff_name"] == "Brian Otieno")
        assert brian["breakdown"]["Loan"] == {
            "amount": 100.0,
            "type": "DEDUCTION",
            "autoAssigned": False,
        }

    async def test_zero_total_is_a_client_error(self, client, headers, assigned):
        response = await create_run(client, headers, [assigned["c"].staff_id])

        assert response.status_code == 400
        assert response.json()["code"] == "ZERO_TOTAL"
        listing = await client.get(f"{API}/runs", headers=headers)
        assert listing.json()["total"] == 0

    async def test_validation_errors(self, client, headers, assigned):
        bad_period = await create_run(client, headers, [assigned["a"].staff_id], period="2025-3")
        no_staff = await create_run(client, headers, [])
        unknown = await create_run(client, headers, [uuid4()])

        assert bad_period.status_code == 400
        assert no_staff.status_code == 400
        assert unknown.status_code == 400

    async def test_duplicate_period_conflicts(self, client, headers, assigned):
        await create_run(client, headers, [assigned["a"].staff_id])
        response = await create_run(client, headers, [assigned["b"].staff_id])

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE"

    async def test_full_lifecycle(self, client, headers, assigned):
        run = (await create_run(client, headers, [assigned["a"].staff_id, assigned["b"].staff_id])).json()
        run_url = f"{API}/runs/{run['salary_run_id']}"

        for step, expected in (
            ("prepare", "PREPARED"),
            ("submit", "SUBMITTED"),
            ("approve", "APPROVED"),
            ("finalize", "FINALIZED"),
        ):
            response = await client.put(f"{run_url}/{step}", headers=headers)
            assert response.status_code == 200, response.text
            assert response.json()["status"] == expected

        again = await client.put(f"{run_url}/finalize", headers=headers)
        first_expense = response.json()["posted_expense_id"]
        assert again.status_code == 200
        assert first_expense is not None
        assert again.json()["posted_expense_id"] == first_expense

        history = await client.get(f"{run_url}/history", headers=headers)
        assert [h["action"] for h in history.json()] == [
            "CREATED",
            "PREPARED",
            "SUBMITTED",
            "APPROVED",
            "FINALIZED",
        ]

    async def test_invalid_transition_conflicts(self, client, headers, assigned):
        run = (await create_run(client, headers, [assigned["a"].staff_id])).json()

        response = await client.put(f"{API}/runs/{run['salary_run_id']}/approve", headers=headers)

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"
        current = await client.get(f"{API}/runs/{run['salary_run_id']}", headers=headers)
        assert current.json()["status"] == "DRAFT"

    async def test_reject_with_reason(self, client, headers, assigned):
        run = (await create_run(client, headers, [assigned["a"].staff_id])).json()
        run_url = f"{API}/runs/{run['salary_run_id']}"
        await client.put(f"{run_url}/prepare", headers=headers)
        await client.put(f"{run_url}/submit", headers=headers)

        response = await client.put(
            f"{run_url}/reject", headers=headers, json={"reason": "Check deductions"}
        )

        assert response.json()["status"] == "REJECTED"
        history = (await client.get(f"{run_url}/history", headers=headers)).json()
        assert history[-1]["comments"] == "Check deductions"

    async def test_get_items_and_not_found(self, client, headers, assigned):
        run = (await create_run(client, headers, [assigned["a"].staff_id, assigned["b"].staff_id])).json()

        items = await client.get(f"{API}/runs/{run['salary_run_id']}/items", headers=headers)
        missing = await client.get(f"{API}/runs/{uuid4()}", headers=headers)
        other_tenant = await client.get(
            f"{API}/runs/{run['salary_run_id']}", headers={"X-Tenant-ID": str(uuid4())}
        )

        assert [i["staff_name"] for i in items.json()] == ["Alice Achieng", "Brian Otieno"]
        assert missing.status_code == 404
        assert other_tenant.status_code == 404

    async def test_delete_draft(self, client, headers, assigned):
        run = (await create_run(client, headers, [assigned["a"].staff_id])).json()

        response = await client.delete(f"{API}/runs/{run['salary_run_id']}", headers=headers)

        assert response.status_code == 204
        listing = await client.get(f"{API}/runs", headers=headers)
        assert listing.json()["total"] == 0

    async def test_list_runs(self, client, headers, assigned):
        for period in ("2025-01", "2025-02"):
            await create_run(client, headers, [assigned["a"].staff_id], period=period)

        response = await client.get(f"{API}/runs", headers=headers, params={"limit": 1})

        data = response.json()
        assert data["total"] == 2
        assert data["limit"] == 1
        assert [r["period"] for r in data["items"]] == ["2025-02"]

    async def test_staff_with_salaries(self, client, headers, assigned):
        response = await client.get(f"{API}/staff-with-salaries", headers=headers)

        by_name = {s["name"]: s for s in response.json()}
        assert Decimal(by_name["Brian Otieno"]["net_pay"]) == Decimal("700")
        assert by_name["carol"]["has_assignments"] is False


class TestCatalogEndpoints:
    async def test_component_crud(self, client, headers):
        created = await client.post(
            f"{API}/components",
            headers=headers,
            json={"name": "House Allowance", "type": "ALLOWANCE", "department": "Teaching", "default_amount": "300"},
        )
        assert created.status_code == 201
        component = created.json()
        assert component["code"] == "HOUSE_ALLOWANCE_TEACHING"
        url = f"{API}/components/{component['pay_component_id']}"

        updated = await client.put(url, headers=headers, json={"auto_assign": True})
        assert updated.json()["auto_assign"] is True

        duplicate = await client.post(
            f"{API}/components",
            headers=headers,
            json={"name": "House Allowance", "type": "ALLOWANCE", "department": "Teaching"},
        )
        assert duplicate.status_code == 409

        assert (await client.delete(url, headers=headers)).status_code == 204
        assert (await client.get(url, headers=headers)).status_code == 404

    async def test_invalid_component_type(self, client, headers):
        response = await client.post(
            f"{API}/components", headers=headers, json={"name": "Tips", "type": "BONUS"}
        )
        assert response.status_code == 400

    async def test_assignment_list_and_soft_delete(self, client, headers, assigned):
        listing = await client.get(
            f"{API}/assignments", headers=headers, params={"staff_id": str(assigned["b"].staff_id)}
        )
        assert len(listing.json()) == 2

        target = listing.json()[0]["staff_pay_assignment_id"]
        assert (await client.delete(f"{API}/assignments/{target}", headers=headers)).status_code == 204

        kept = await client.get(f"{API}/assignments/{target}", headers=headers)
        assert kept.json()["is_active"] is False
        remaining = await client.get(
            f"{API}/assignments", headers=headers, params={"staff_id": str(assigned["b"].staff_id)}
        )
        assert len(remaining.json()) == 1
