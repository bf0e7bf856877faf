"""Chat assistant API routes."""
import logging

import openai
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth import llm
from simplegrowth.assistant.context import build_unified_context, format_context_for_ai
from simplegrowth.assistant.prompts import (
    SYSTEM_PROMPT,
    generate_actions,
    generate_suggestions,
    identify_related_data,
)
from simplegrowth.assistant.schemas import (
    ChatHistoryResponse,
    ChatRequest,
    ChatResponse,
    HistoryMessage,
)
from simplegrowth.auth.dependencies import get_current_user, require_organization
from simplegrowth.config import settings
from simplegrowth.database import get_db
from simplegrowth.middleware.rate_limit import limiter, LIMITS
from simplegrowth.models import ChatMessage, User, as_utc

logger = logging.getLogger(__name__)

router = APIRouter()

HISTORY_WINDOW = 10


@router.post("", response_model=ChatResponse)
@limiter.limit(LIMITS["ai"])
async def chat(
    request: Request,
    data: ChatRequest,
    current_user: User = Depends(get_current_user),
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """
    Answer a question about the business using its cash flow and operations data.

    Without an OpenAI key the reply is the data summary itself. Messages are
    stored for history; a storage failure does not fail the request.
    """
    message = (data.message or "").strip()
    if not message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    context = await build_unified_context(db, organization_id)
    if context is None:
        raise HTTPException(status_code=500, detail="Failed to load business context")

    summary = format_context_for_ai(context)

    if not settings.is_ai_configured:
        return ChatResponse(
            message=(
                "I'd love to help you with that! However, the AI assistant isn't configured yet.\n\n"
                "Here's what I can tell you from your data:\n\n"
                f"{summary}"
            ),
            suggestions=generate_suggestions(context, message),
            actions=generate_actions(message, ""),
            ai_enabled=False,
        )

    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    messages += [
        {"role": m.role, "content": m.content}
        for m in data.conversation_history[-HISTORY_WINDOW:]
    ]
    messages.append({
        "role": "user",
        "content": f"Current Business Data:\n---\n{summary}\n---\n\nUser Question: {message}",
    })

    try:
        reply = await llm.complete(messages)
    except openai.RateLimitError:
        logger.warning("AI provider rate limit hit in chat")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="AI service is busy. Please try again in a moment.",
        )
    except Exception:
        logger.exception("Chat completion failed")
        raise HTTPException(status_code=500, detail="Failed to process your message. Please try again.")

    try:
        db.add(ChatMessage(
            organization_id=organization_id,
            user_id=current_user.id,
            role="user",
            content=message,
        ))
        db.add(ChatMessage(
            organization_id=organization_id,
            user_id=current_user.id,
            role="assistant",
            content=reply,
            context={"data_quality": context.to_dict()["data_quality"]},
        ))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.warning(f"Failed to store chat messages: {e}")

    return ChatResponse(
        message=reply,
        suggestions=generate_suggestions(context, message),
        related_data=identify_related_data(context, reply),
        actions=generate_actions(message, reply),
    )


@router.get("", response_model=ChatHistoryResponse)
async def get_history(
    limit: int = Query(50, ge=1),
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """Most recent messages for the organization, oldest first."""
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.organization_id == organization_id)
        .order_by(ChatMessage.created_at.desc())
        .limit(min(limit, 100))
    )
    recent = list(result.scalars().all())
    recent.reverse()

    return ChatHistoryResponse(
        messages=[
            HistoryMessage(role=m.role, content=m.content, timestamp=as_utc(m.created_at))
            for m in recent
        ]
    )
