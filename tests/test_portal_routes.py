"""
Tests for the client portal API.

Website projects, change requests, admin notes, onboarding and lead capture.
"""

import pytest
from sqlalchemy import func, select

from simplegrowth.models import (
    AuditLog,
    Lead,
    Organization,
    ProjectNote,
    Subscription,
    User,
    WebsiteProject,
)
from simplegrowth.portal.leads_routes import (
    business_name_from_url,
    build_quick_challenges,
    is_quick_capture,
)
from simplegrowth.portal.schemas import AnalysisSummary, QuickLeadCreate


PROJECT = {
    "project_name": "Bakery Site",
    "project_type": "new_build",
    "target_audience": "Local families",
    "desired_features": ["online ordering", "gallery"],
    "design_preferences": {"style": "warm", "colors": "cream and brown"},
}

CHANGE_REQUEST = {
    "title": "Add holiday menu",
    "description": "Please add a seasonal holiday menu page with prices.",
    "type": "content",
}


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _create_project(client, user, headers_for, **overrides) -> dict:
    response = await client.post("/api/projects", json={**PROJECT, **overrides}, headers=headers_for(user))
    assert response.status_code == 201
    return response.json()["project"]


# =============================================================================
# Projects
# =============================================================================

class TestCreateProject:
    """Tests for POST /api/projects."""

    @pytest.mark.asyncio
    async def test_first_project_creates_one_organization(self, client, make_user, headers_for, session_factory):
        user = await make_user(email="new@example.com")

        project = await _create_project(client, user, headers_for, additional_notes="We open in May")

        assert project["status"] == "submitted"
        assert project["priority"] == 0
        assert project["desired_features"] == ["online ordering", "gallery"]
        assert project["design_preferences"]["style"] == "warm"

        async with session_factory() as check:
            assert await _count(check, Organization) == 1
            assert await _count(check, WebsiteProject) == 1

            organization = (await check.execute(select(Organization))).scalar_one()
            assert organization.name == "Bakery Site Organization"
            assert project["organization_id"] == organization.id

            stored = (await check.execute(select(User).where(User.id == user.id))).scalar_one()
            assert stored.organization_id == organization.id

            note = (await check.execute(select(ProjectNote))).scalar_one()
            assert note.content == "We open in May"
            assert note.is_internal is False

            actions = (await check.execute(select(AuditLog.action).order_by(AuditLog.action))).scalars().all()
            assert actions == ["organization_created", "project_created"]

    @pytest.mark.asyncio
    async def test_member_project_joins_existing_organization(self, client, member, organization, headers_for, session_factory):
        project = await _create_project(client, member, headers_for)

        assert project["organization_id"] == organization.id
        async with session_factory() as check:
            assert await _count(check, Organization) == 1

    @pytest.mark.asyncio
    async def test_empty_existing_url_allowed(self, client, member, headers_for):
        project = await _create_project(client, member, headers_for, existing_url="")

        assert project["existing_url"] is None

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, client, member, headers_for):
        response = await client.post(
            "/api/projects",
            json={**PROJECT, "existing_url": "not a url"},
            headers=headers_for(member),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.post("/api/projects", json=PROJECT)

        assert response.status_code == 401


class TestProjectAccess:
    """Tests for listing and reading projects across organizations."""

    @pytest.mark.asyncio
    async def test_list_only_own_organization(self, client, member, make_user, make_organization, headers_for):
        other_org = await make_organization("Rival Cafe")
        outsider = await make_user(email="rival@example.com", organization_id=other_org.id)
        await _create_project(client, member, headers_for)
        await _create_project(client, outsider, headers_for, project_name="Rival Site")

        response = await client.get("/api/projects", headers=headers_for(member))

        names = [p["project_name"] for p in response.json()["projects"]]
        assert names == ["Bakery Site"]

    @pytest.mark.asyncio
    async def test_list_without_organization_is_empty(self, client, make_user, headers_for):
        loner = await make_user(email="loner@example.com")

        response = await client.get("/api/projects", headers=headers_for(loner))

        assert response.json() == {"projects": []}

    @pytest.mark.asyncio
    async def test_other_organization_forbidden(self, client, member, make_user, make_organization, headers_for):
        project = await _create_project(client, member, headers_for)
        other_org = await make_organization("Rival Cafe")
        outsider = await make_user(email="rival@example.com", organization_id=other_org.id)

        response = await client.get(f"/api/projects/{project['id']}", headers=headers_for(outsider))

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"

    @pytest.mark.asyncio
    async def test_missing_project(self, client, member, headers_for):
        response = await client.get("/api/projects/proj_missing", headers=headers_for(member))

        assert response.status_code == 404
        assert response.json()["detail"] == "Project not found"

    @pytest.mark.asyncio
    async def test_internal_notes_hidden_from_clients(self, client, member, admin, headers_for):
        project = await _create_project(client, member, headers_for)
        await client.post(
            f"/api/admin/projects/{project['id']}/notes",
            json={"content": "Client is slow to reply"},
            headers=headers_for(admin),
        )
        await client.post(
            f"/api/admin/projects/{project['id']}/notes",
            json={"content": "Design draft is ready", "is_internal": False},
            headers=headers_for(admin),
        )

        as_member = await client.get(f"/api/projects/{project['id']}", headers=headers_for(member))
        as_admin = await client.get(f"/api/projects/{project['id']}", headers=headers_for(admin))

        assert [n["content"] for n in as_member.json()["project"]["notes"]] == ["Design draft is ready"]
        assert len(as_admin.json()["project"]["notes"]) == 2


class TestUpdateProject:
    """Tests for PATCH /api/projects/{id}."""

    @pytest.mark.asyncio
    async def test_clients_cannot_update(self, client, member, headers_for):
        project = await _create_project(client, member, headers_for)

        response = await client.patch(
            f"/api/projects/{project['id']}", json={"status": "completed"}, headers=headers_for(member),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"

    @pytest.mark.asyncio
    async def test_admin_completes_project(self, client, member, admin, headers_for, session_factory):
        project = await _create_project(client, member, headers_for)

        response = await client.patch(
            f"/api/projects/{project['id']}",
            json={"status": "completed", "deployed_url": "https://acmebakery.example"},
            headers=headers_for(admin),
        )

        assert response.status_code == 200
        updated = response.json()["project"]
        assert updated["status"] == "completed"
        assert updated["deployed_url"] == "https://acmebakery.example"
        assert updated["actual_completion"] is not None

        async with session_factory() as check:
            entries = (await check.execute(
                select(AuditLog).where(AuditLog.entity_type == "project", AuditLog.action == "update")
            )).scalars().all()
            assert {e.field_name for e in entries} == {"status", "deployed_url"}
            assert all(e.source == "admin" for e in entries)


# =============================================================================
# Change requests
# =============================================================================

class TestChangeRequests:
    """Tests for creating, listing and resolving change requests."""

    @pytest.mark.asyncio
    async def test_create_defaults(self, client, member, headers_for):
        project = await _create_project(client, member, headers_for)

        response = await client.post(
            f"/api/projects/{project['id']}/change-requests", json=CHANGE_REQUEST, headers=headers_for(member),
        )

        assert response.status_code == 201
        change_request = response.json()["change_request"]
        assert change_request["status"] == "pending"
        assert change_request["priority"] == "normal"
        assert change_request["requester_id"] == member.id

    @pytest.mark.asyncio
    async def test_short_description_rejected(self, client, member, headers_for):
        project = await _create_project(client, member, headers_for)

        response = await client.post(
            f"/api/projects/{project['id']}/change-requests",
            json={**CHANGE_REQUEST, "description": "too short"},
            headers=headers_for(member),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_scoped_to_organization(
        self, client, member, admin, make_user, make_organization, headers_for,
    ):
        mine = await _create_project(client, member, headers_for)
        other_org = await make_organization("Rival Cafe")
        outsider = await make_user(email="rival@example.com", organization_id=other_org.id)
        theirs = await _create_project(client, outsider, headers_for, project_name="Rival Site")

        await client.post(f"/api/projects/{mine['id']}/change-requests", json=CHANGE_REQUEST, headers=headers_for(member))
        await client.post(f"/api/projects/{theirs['id']}/change-requests", json=CHANGE_REQUEST, headers=headers_for(outsider))

        own = await client.get("/api/change-requests", headers=headers_for(member))
        everything = await client.get("/api/change-requests", headers=headers_for(admin))

        assert [c["project"]["project_name"] for c in own.json()["change_requests"]] == ["Bakery Site"]
        assert len(everything.json()["change_requests"]) == 2

    @pytest.mark.asyncio
    async def test_admin_resolves(self, client, member, admin, headers_for):
        project = await _create_project(client, member, headers_for)
        created = await client.post(
            f"/api/projects/{project['id']}/change-requests", json=CHANGE_REQUEST, headers=headers_for(member),
        )
        change_request_id = created.json()["change_request"]["id"]

        response = await client.patch(
            f"/api/admin/change-requests/{change_request_id}",
            json={"status": "completed", "resolution": "Menu page published"},
            headers=headers_for(admin),
        )

        assert response.status_code == 200
        assert response.json()["change_request"]["status"] == "completed"
        assert response.json()["change_request"]["resolution"] == "Menu page published"

    @pytest.mark.asyncio
    async def test_admin_resolve_missing(self, client, admin, headers_for):
        response = await client.patch(
            "/api/admin/change-requests/cr_missing", json={"status": "approved"}, headers=headers_for(admin),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Change request not found"


class TestAdminProjects:
    """Tests for GET /api/admin/projects."""

    @pytest.mark.asyncio
    async def test_lists_all_with_organization(self, client, member, admin, organization, headers_for):
        await _create_project(client, member, headers_for)

        response = await client.get("/api/admin/projects", headers=headers_for(admin))

        [project] = response.json()["projects"]
        assert project["organization"] == {"id": organization.id, "name": "Acme Bakery"}

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, member, headers_for):
        response = await client.get("/api/admin/projects", headers=headers_for(member))

        assert response.status_code == 403


# =============================================================================
# Onboarding
# =============================================================================

class TestOnboarding:
    """Tests for the two onboarding steps."""

    @pytest.mark.asyncio
    async def test_create_organization_makes_owner(self, client, make_user, headers_for, session_factory):
        user = await make_user(email="founder@example.com")

        response = await client.post(
            "/api/onboarding/organization", json={"name": "Founder Co", "industry": "retail"},
            headers=headers_for(user),
        )

        assert response.status_code == 201
        organization = response.json()["organization"]
        assert organization["subscription_tier"] == "starter"
        assert organization["subscription_status"] == "trial"

        async with session_factory() as check:
            stored = (await check.execute(select(User).where(User.id == user.id))).scalar_one()
            assert stored.role == "owner"
            assert stored.organization_id == organization["id"]

    @pytest.mark.asyncio
    async def test_second_organization_rejected(self, client, member, headers_for):
        response = await client.post(
            "/api/onboarding/organization", json={"name": "Another"}, headers=headers_for(member),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "User already belongs to an organization"

    @pytest.mark.asyncio
    async def test_products_need_organization(self, client, make_user, headers_for):
        user = await make_user(email="early@example.com")

        response = await client.post(
            "/api/onboarding/products", json={"products": ["chauffeur"]}, headers=headers_for(user),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Organization required. Please complete step 1 first."

    @pytest.mark.asyncio
    async def test_products_start_trials_once(self, client, member, headers_for, session_factory):
        first = await client.post(
            "/api/onboarding/products",
            json={"products": ["website_management", "chauffeur"]},
            headers=headers_for(member),
        )
        second = await client.post(
            "/api/onboarding/products",
            json={"products": ["chauffeur"]},
            headers=headers_for(member),
        )

        assert first.status_code == 200
        assert [s["status"] for s in first.json()["subscriptions"]] == ["trialing", "trialing"]
        assert second.json()["subscriptions"][0]["id"] == first.json()["subscriptions"][1]["id"]

        async with session_factory() as check:
            subscriptions = (await check.execute(select(Subscription))).scalars().all()
            assert len(subscriptions) == 2
            prices = {s.plan: s.price_monthly for s in subscriptions}
            assert prices == {"website_management": 7900, "chauffeur": 19900}

    @pytest.mark.asyncio
    async def test_canceled_plan_gets_new_trial(self, client, db, member, headers_for, session_factory):
        canceled = Subscription(organization_id=member.organization_id, plan="chauffeur", status="canceled")
        db.add(canceled)
        await db.commit()

        response = await client.post(
            "/api/onboarding/products",
            json={"products": ["chauffeur"]},
            headers=headers_for(member),
        )

        assert response.status_code == 200
        subscription = response.json()["subscriptions"][0]
        assert subscription["id"] != canceled.id
        assert subscription["status"] == "trialing"

        async with session_factory() as check:
            statuses = sorted(s.status for s in (await check.execute(select(Subscription))).scalars())
            assert statuses == ["canceled", "trialing"]

    @pytest.mark.asyncio
    async def test_empty_selection(self, client, member, headers_for):
        response = await client.post("/api/onboarding/products", json={"products": []}, headers=headers_for(member))

        assert response.json() == {"subscriptions": []}


# =============================================================================
# Leads
# =============================================================================

class TestLeadHelpers:
    """Tests for quick-capture helpers."""

    def test_quick_capture_detection(self):
        assert is_quick_capture({"source": "url-analyzer", "email": "a@b.co", "business_name": "X"})
        assert is_quick_capture({"email": "a@b.co"})
        assert not is_quick_capture({"email": "a@b.co", "business_name": "Shop"})

    @pytest.mark.parametrize("url,name", [
        ("https://www.acmebakery.com/menu", "acmebakery.com"),
        ("acmebakery.com", "acmebakery.com"),
        (None, "Website Analysis Lead"),
        ("", "Website Analysis Lead"),
    ])
    def test_business_name_from_url(self, url, name):
        assert business_name_from_url(url) == name

    def test_quick_challenges(self):
        data = QuickLeadCreate(
            email="a@b.co",
            analysis_data=AnalysisSummary(score=72.0, improvements=5),
        )

        assert build_quick_challenges(data) == (
            "Source: url-analyzer | Website Score: 72/100 | 5 improvements identified"
        )


class TestLeadRoutes:
    """Tests for the public lead form and the admin inbox."""

    @pytest.mark.asyncio
    async def test_full_questionnaire(self, client, session_factory):
        response = await client.post("/api/leads", json={
            "business_name": "Corner Shop",
            "contact_name": "Sam",
            "email": "sam@cornershop.example",
            "has_website": "no",
            "challenges": "No online presence",
        })

        assert response.status_code == 201
        lead = response.json()["lead"]
        assert lead["has_website"] is False
        assert lead["status"] == "new"

        async with session_factory() as check:
            entry = (await check.execute(select(AuditLog))).scalar_one()
            assert entry.action == "lead_created"
            assert entry.user_id is None

    @pytest.mark.asyncio
    async def test_quick_capture(self, client):
        response = await client.post("/api/leads", json={
            "email": "visitor@example.com",
            "source": "url-analyzer",
            "website_url": "https://www.acmebakery.com",
            "analysis_data": {"score": 64, "improvements": 3},
        })

        assert response.status_code == 201
        lead = response.json()["lead"]
        assert lead["business_name"] == "acmebakery.com"
        assert lead["contact_name"] == "Website Visitor"
        assert lead["has_website"] is True
        assert lead["challenges"] == "Source: url-analyzer | Website Score: 64/100 | 3 improvements identified"

    @pytest.mark.asyncio
    async def test_invalid_submission(self, client, session_factory):
        response = await client.post("/api/leads", json={
            "business_name": "Corner Shop",
            "contact_name": "Sam",
            "email": "not-an-email",
            "has_website": "maybe",
        })

        assert response.status_code == 422
        async with session_factory() as check:
            assert await _count(check, Lead) == 0

    @pytest.mark.asyncio
    async def test_admin_inbox(self, client, admin, member, headers_for):
        created = await client.post("/api/leads", json={"email": "visitor@example.com"})
        lead_id = created.json()["lead"]["id"]

        forbidden = await client.get("/api/leads", headers=headers_for(member))
        listing = await client.get("/api/leads", headers=headers_for(admin))
        updated = await client.patch(
            f"/api/leads/{lead_id}", json={"status": "contacted", "notes": "Called Tuesday"},
            headers=headers_for(admin),
        )
        missing = await client.get("/api/leads/lead_missing", headers=headers_for(admin))

        assert forbidden.status_code == 403
        assert [lead["id"] for lead in listing.json()["leads"]] == [lead_id]
        assert updated.json()["lead"]["status"] == "contacted"
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Lead not found"

    @pytest.mark.asyncio
    async def test_blank_status_rejected(self, client, admin, headers_for):
        created = await client.post("/api/leads", json={"email": "visitor@example.com"})
        lead_id = created.json()["lead"]["id"]

        response = await client.patch(f"/api/leads/{lead_id}", json={"status": "  "}, headers=headers_for(admin))

        assert response.status_code == 422
