"""System prompt and response helpers for the chat assistant."""
from typing import Dict, List

from simplegrowth.assistant.context import UnifiedContext


MAX_SUGGESTIONS = 4
MAX_RELATED = 5
MAX_ACTIONS = 3

SYSTEM_PROMPT = """You are the AI assistant for Simple Growth Solutions, a unified business intelligence platform. You serve as the user's "ultimate business sidekick" - helping them understand their business data, make informed decisions, and grow their business.

## Your Platforms

1. **CashFlow AI** - Accounts receivable management
   - Tracks invoices, payments, and client payment behaviors
   - Calculates health scores and risk levels
   - Provides collection recommendations
   - Forecasts cash inflows 30/60/90 days out
   - Charges 8% of collected amounts

2. **Business Chauffeur** - Operations intelligence ($199/month)
   - Connects to POS systems (Square, Clover, Toast)
   - Connects to accounting (QuickBooks, Xero)
   - Connects to review platforms (Google, Yelp)
   - Connects to payroll (Gusto)
   - Correlates data across systems into insights

3. **Cybersecurity Platform**
   - Security monitoring and protection

## Your Personality

- Be friendly, professional, and genuinely helpful
- Speak like a trusted business advisor, not a robot
- Use simple language - avoid jargon unless the user uses it first
- Be concise but thorough - respect the user's time

## Critical Language Requirements

ALWAYS use suggestive, non-directive language:
- Say "could", "might", "consider", "potential" instead of "should", "must", "need to"
- Frame suggestions as possibilities: "You could consider..." not "You should..."
- Use hedging: "Based on the data, one approach could be..."
- Never give direct financial, legal, or business advice
- Always remind users to consult qualified professionals for major decisions

## Response Guidelines

1. Answer the question directly first, then provide context
2. Use specific numbers from their data when available
3. Connect dots across systems when relevant
4. Suggest next steps as possibilities, not directives
5. Be honest about data limitations or uncertainty

## When You Don't Have Data

- Acknowledge the limitation
- Explain what integration or data would help
- Offer to help with what you do know

## Formatting

- Use markdown for readability
- Use bullet points for lists
- Bold key numbers and insights
- Keep responses focused and scannable"""


def generate_suggestions(context: UnifiedContext, user_message: str) -> List[str]:
    """Follow-up questions relevant to the data on hand, skipping ones the user just asked."""
    suggestions: List[str] = []

    cf = context.cash_flow
    if cf:
        if cf.overdue_receivables > 0:
            suggestions.append("Which clients should I follow up with first?")
        if cf.pending_recommendations:
            suggestions.append("What are your top recommendations for improving collections?")
        suggestions.append("How does my cash flow look for next month?")

    bc = context.chauffeur
    if bc:
        if bc.payroll:
            suggestions.append("Is my payroll cost healthy compared to revenue?")
        suggestions.append("What's affecting my business health score?")
        suggestions.append("Are there any patterns I should know about?")

    suggestions.append("How can I improve my overall business health?")
    suggestions.append("What should I focus on this week?")

    message = user_message.lower()
    filtered = [s for s in suggestions if s.lower()[:20] not in message]
    return filtered[:MAX_SUGGESTIONS]


def identify_related_data(context: UnifiedContext, response: str) -> List[Dict[str, str]]:
    """Clients and recommendations the reply mentions by name."""
    text = response.lower()
    related: List[Dict[str, str]] = []

    if context.cash_flow:
        for client in context.cash_flow.top_overdue_clients:
            if client.name and client.name.lower() in text:
                related.append({"type": "client", "id": client.id, "title": client.name})
        for rec in context.cash_flow.pending_recommendations:
            if rec.title.lower() in text:
                related.append({"type": "recommendation", "id": rec.type, "title": rec.title})

    return related[:MAX_RELATED]


def generate_actions(user_message: str, response: str) -> List[Dict]:
    """Navigation shortcuts matching the topic of the exchange."""
    message = user_message.lower()
    reply = response.lower()
    actions = []

    if "overdue" in message or "collect" in message or "overdue" in reply:
        actions.append({
            "label": "View Overdue Invoices",
            "action": "navigate",
            "params": {"path": "/dashboard/cashflow/invoices?status=overdue"},
        })
    if "client" in message or "client" in reply:
        actions.append({
            "label": "View Clients",
            "action": "navigate",
            "params": {"path": "/dashboard/cashflow/clients"},
        })
    if "health" in message or "insight" in message:
        actions.append({
            "label": "View Business Health",
            "action": "navigate",
            "params": {"path": "/dashboard/chauffeur/unified"},
        })
    if "payroll" in message or "employee" in message:
        actions.append({
            "label": "View Payroll Analytics",
            "action": "navigate",
            "params": {"path": "/dashboard/payroll"},
        })

    return actions[:MAX_ACTIONS]
