"""
Tests for the chat assistant.

Context building runs against the in-memory database; the model is always
patched out.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest
import pytest_asyncio
from sqlalchemy import select

from simplegrowth.assistant.context import build_unified_context, format_context_for_ai
from simplegrowth.assistant.prompts import (
    MAX_SUGGESTIONS,
    generate_actions,
    generate_suggestions,
    identify_related_data,
)
from simplegrowth.config import settings
from simplegrowth.models import ChatMessage, Client, Invoice, Subscription, utcnow


@pytest_asyncio.fixture
async def overdue_book(db, organization):
    """One client owing $1,000.00 for 20 days."""
    slow = Client(organization_id=organization.id, name="Slow Payer Co", payment_score=30)
    db.add(slow)
    await db.flush()
    db.add(Invoice(
        organization_id=organization.id,
        client_id=slow.id,
        invoice_number="INV-100",
        amount=100000,
        due_date=utcnow() - timedelta(days=20, hours=1),
        status="overdue",
    ))
    await db.commit()
    return slow


def _rate_limit_error() -> openai.RateLimitError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.RateLimitError("busy", response=httpx.Response(429, request=request), body=None)


# =============================================================================
# Context
# =============================================================================

class TestBuildContext:
    """Tests for build_unified_context and its markdown rendering."""

    @pytest.mark.asyncio
    async def test_unknown_organization(self, db):
        assert await build_unified_context(db, "org_missing") is None

    @pytest.mark.asyncio
    async def test_empty_organization(self, db, organization):
        db.add(Subscription(organization_id=organization.id, plan="website_management", status="trialing"))
        await db.commit()

        context = await build_unified_context(db, organization.id)

        assert context.organization_name == "Acme Bakery"
        assert context.active_platforms == ["website_management"]
        assert context.cash_flow is None
        assert context.chauffeur is None
        assert context.data_quality.completeness == 0

        summary = format_context_for_ai(context)
        assert summary.startswith("# Acme Bakery")
        assert "Active platforms: Website Management" in summary
        assert "No invoices, metrics or payroll have been added yet." in summary

    @pytest.mark.asyncio
    async def test_overdue_clients_ranked(self, db, organization, overdue_book):
        context = await build_unified_context(db, organization.id)

        assert "cashflow_ai" in context.active_platforms
        assert context.data_quality.has_invoices is True
        assert context.data_quality.completeness == 25

        top = context.cash_flow.top_overdue_clients
        assert [(c.name, c.amount_overdue, c.days_overdue) for c in top] == [("Slow Payer Co", 100000, 20)]

        summary = format_context_for_ai(context)
        assert "- Total receivables: **$1,000.00**" in summary
        assert "- Slow Payer Co: $1,000.00 (20 days overdue)" in summary


# =============================================================================
# Prompt helpers
# =============================================================================

class TestPromptHelpers:
    """Tests for suggestions, related data and navigation actions."""

    @pytest.mark.asyncio
    async def test_suggestions_lead_with_overdue_follow_up(self, db, organization, overdue_book):
        context = await build_unified_context(db, organization.id)

        suggestions = generate_suggestions(context, "hello")

        assert suggestions[0] == "Which clients should I follow up with first?"
        assert len(suggestions) <= MAX_SUGGESTIONS

    @pytest.mark.asyncio
    async def test_suggestions_skip_the_question_just_asked(self, db, organization, overdue_book):
        context = await build_unified_context(db, organization.id)

        suggestions = generate_suggestions(context, "Which clients should I follow up with first?")

        assert "Which clients should I follow up with first?" not in suggestions

    @pytest.mark.asyncio
    async def test_related_data_by_name(self, db, organization, overdue_book):
        context = await build_unified_context(db, organization.id)

        related = identify_related_data(context, "Slow Payer Co owes the most right now.")

        assert related == [{"type": "client", "id": overdue_book.id, "title": "Slow Payer Co"}]

    def test_actions_follow_topic(self):
        actions = generate_actions("Who is overdue?", "")

        assert [a["label"] for a in actions] == ["View Overdue Invoices"]
        assert actions[0]["params"] == {"path": "/dashboard/cashflow/invoices?status=overdue"}

    def test_actions_capped(self):
        actions = generate_actions("overdue client health payroll", "")

        assert len(actions) == 3
        assert "View Payroll Analytics" not in [a["label"] for a in actions]


# =============================================================================
# Chat routes
# =============================================================================

class TestChat:
    """Tests for POST /api/chat."""

    @pytest.mark.asyncio
    async def test_requires_organization(self, client, make_user, headers_for):
        loner = await make_user(email="loner@example.com")

        response = await client.post("/api/chat", json={"message": "hi"}, headers=headers_for(loner))

        assert response.status_code == 400
        assert response.json()["detail"] == "No organization found"

    @pytest.mark.asyncio
    async def test_blank_message(self, client, member, headers_for):
        response = await client.post("/api/chat", json={"message": "   "}, headers=headers_for(member))

        assert response.status_code == 400
        assert response.json()["detail"] == "Message is required"

    @pytest.mark.asyncio
    async def test_without_ai_key_returns_summary(self, client, member, headers_for):
        response = await client.post("/api/chat", json={"message": "How am I doing?"}, headers=headers_for(member))

        assert response.status_code == 200
        body = response.json()
        assert body["ai_enabled"] is False
        assert "# Acme Bakery" in body["message"]
        assert body["suggestions"]

    @pytest.mark.asyncio
    async def test_reply_stored_and_linked(self, client, member, headers_for, overdue_book, session_factory):
        history = [
            {"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"}
            for i in range(12)
        ]
        complete = AsyncMock(return_value="Slow Payer Co has the largest overdue balance.")

        with patch.object(settings, "OPENAI_API_KEY", "sk-test"), patch("simplegrowth.llm.complete", new=complete):
            response = await client.post(
                "/api/chat",
                json={"message": "Who should I chase about overdue invoices?", "conversation_history": history},
                headers=headers_for(member),
            )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Slow Payer Co has the largest overdue balance."
        assert body["ai_enabled"] is True
        assert body["related_data"] == [{"type": "client", "id": overdue_book.id, "title": "Slow Payer Co"}]
        assert body["actions"][0]["label"] == "View Overdue Invoices"

        messages = complete.await_args.args[0]
        assert messages[0]["role"] == "system"
        assert [m["content"] for m in messages[1:-1]] == [f"turn {i}" for i in range(2, 12)]
        assert messages[-1]["content"].endswith("User Question: Who should I chase about overdue invoices?")
        assert "Slow Payer Co" in messages[-1]["content"]

        async with session_factory() as fresh:
            stored = (await fresh.execute(select(ChatMessage))).scalars().all()
            assert sorted(m.role for m in stored) == ["assistant", "user"]

    @pytest.mark.asyncio
    async def test_provider_rate_limit(self, client, member, headers_for):
        with patch.object(settings, "OPENAI_API_KEY", "sk-test"), patch(
            "simplegrowth.llm.complete", new=AsyncMock(side_effect=_rate_limit_error()),
        ):
            response = await client.post("/api/chat", json={"message": "hi"}, headers=headers_for(member))

        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_provider_failure(self, client, member, headers_for, session_factory):
        with patch.object(settings, "OPENAI_API_KEY", "sk-test"), patch(
            "simplegrowth.llm.complete", new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            response = await client.post("/api/chat", json={"message": "hi"}, headers=headers_for(member))

        assert response.status_code == 500
        async with session_factory() as fresh:
            assert (await fresh.execute(select(ChatMessage))).scalars().all() == []


class TestHistory:
    """Tests for GET /api/chat."""

    @pytest.mark.asyncio
    async def test_chronological_and_limited(self, client, db, member, headers_for):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        db.add_all([
            ChatMessage(
                organization_id=member.organization_id,
                user_id=member.id,
                role="user" if i % 2 == 0 else "assistant",
                content=f"message {i}",
                created_at=start + timedelta(minutes=i),
            )
            for i in range(5)
        ])
        await db.commit()

        response = await client.get("/api/chat", params={"limit": 3}, headers=headers_for(member))

        contents = [m["content"] for m in response.json()["messages"]]
        assert contents == ["message 2", "message 3", "message 4"]

    @pytest.mark.asyncio
    async def test_requires_organization(self, client, make_user, headers_for):
        loner = await make_user(email="loner@example.com")

        response = await client.get("/api/chat", headers=headers_for(loner))

        assert response.status_code == 400
        assert response.json()["detail"] == "No organization found"
