"""Tests for the integrations list, the manual sync trigger and the benchmark seed."""

import pytest
from sqlalchemy import select

from simplegrowth.models import AuditLog, IndustryBenchmark, Integration
from simplegrowth.seed.benchmarks import INDUSTRY_BENCHMARKS, seed_industry_benchmarks


# =============================================================================
# Integrations
# =============================================================================

class TestIntegrations:
    """Tests for /api/integrations."""

    @pytest.mark.asyncio
    async def test_list_sorted_by_provider(self, client, db, member, make_organization, headers_for):
        other = await make_organization()
        db.add_all([
            Integration(organization_id=member.organization_id, provider="square", status="connected"),
            Integration(organization_id=member.organization_id, provider="gusto", status="pending"),
            Integration(organization_id=other.id, provider="xero", status="connected"),
        ])
        await db.commit()

        response = await client.get("/api/integrations", headers=headers_for(member))

        providers = [i["provider"] for i in response.json()["integrations"]]
        assert providers == ["gusto", "square"]

    @pytest.mark.asyncio
    async def test_sync_connected(self, client, db, session_factory, member, headers_for):
        integration = Integration(organization_id=member.organization_id, provider="square",
                                  status="connected", sync_error="timeout")
        db.add(integration)
        await db.commit()

        response = await client.post(f"/api/integrations/{integration.id}/sync", headers=headers_for(member))

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Sync completed successfully"
        assert body["integration"]["last_sync_status"] == "success"
        assert body["integration"]["sync_error"] is None
        assert body["integration"]["last_sync_at"] is not None

        async with session_factory() as fresh:
            action = (await fresh.execute(select(AuditLog.action))).scalar_one()
            assert action == "integration_synced"

    @pytest.mark.asyncio
    async def test_sync_not_connected(self, client, db, member, headers_for):
        integration = Integration(organization_id=member.organization_id, provider="gusto", status="pending")
        db.add(integration)
        await db.commit()

        response = await client.post(f"/api/integrations/{integration.id}/sync", headers=headers_for(member))

        assert response.status_code == 400
        assert response.json()["detail"] == "Integration is not connected"

    @pytest.mark.asyncio
    async def test_sync_other_organization(self, client, db, member, make_organization, headers_for):
        other = await make_organization()
        integration = Integration(organization_id=other.id, provider="square", status="connected")
        db.add(integration)
        await db.commit()

        response = await client.post(f"/api/integrations/{integration.id}/sync", headers=headers_for(member))

        assert response.status_code == 404


# =============================================================================
# Benchmark seed
# =============================================================================

class TestSeedBenchmarks:
    """Tests for the industry benchmark seed."""

    @pytest.mark.asyncio
    async def test_seed_is_repeatable(self, db):
        first = await seed_industry_benchmarks(db)
        second = await seed_industry_benchmarks(db)

        assert first == {"status": "seeded", "created": 12, "updated": 0}
        assert second == {"status": "seeded", "created": 0, "updated": 12}

        rows = (await db.execute(select(IndustryBenchmark))).scalars().all()
        assert sorted(r.industry for r in rows) == sorted(INDUSTRY_BENCHMARKS)

        retail = next(r for r in rows if r.industry == "retail")
        assert retail.avg_days_to_pay == 28.0
        assert retail.sample_size == 12000

    @pytest.mark.asyncio
    async def test_route_requires_admin(self, client, member, headers_for):
        response = await client.post("/api/admin/seed/benchmarks", headers=headers_for(member))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_route_as_admin(self, client, admin, headers_for):
        response = await client.post("/api/admin/seed/benchmarks", headers=headers_for(admin))

        assert response.status_code == 200
        assert response.json()["created"] == len(INDUSTRY_BENCHMARKS)
