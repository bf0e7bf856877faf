"""Main FastAPI application."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from simplegrowth.config import settings
from simplegrowth.middleware import setup_rate_limiting
from simplegrowth.auth import routes as auth_routes
from simplegrowth.cashflow import routes as cashflow_routes
from simplegrowth.chauffeur import routes as chauffeur_routes
from simplegrowth.assistant import routes as assistant_routes
from simplegrowth.portal import routes as portal_routes
from simplegrowth.portal import admin_routes as portal_admin_routes
from simplegrowth.portal import onboarding_routes
from simplegrowth.portal import leads_routes
from simplegrowth.billing import routes as billing_routes
from simplegrowth.payroll import routes as payroll_routes
from simplegrowth.integrations import routes as integration_routes
from simplegrowth.seed import routes as seed_routes

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# Create FastAPI app
app = FastAPI(
    title="Simple Growth Solutions API",
    description="Client portal, billing, cash flow AI and business insights for small businesses",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_rate_limiting(app)

# Include routers
prefix = settings.API_V1_PREFIX
app.include_router(auth_routes.router, prefix=f"{prefix}/auth", tags=["Auth"])
app.include_router(cashflow_routes.router, prefix=f"{prefix}/cashflow", tags=["Cash Flow"])
app.include_router(chauffeur_routes.router, prefix=f"{prefix}/chauffeur", tags=["Business Chauffeur"])
app.include_router(assistant_routes.router, prefix=f"{prefix}/chat", tags=["Assistant"])
app.include_router(portal_routes.router, prefix=prefix, tags=["Projects"])
app.include_router(portal_admin_routes.router, prefix=f"{prefix}/admin", tags=["Admin"])
app.include_router(seed_routes.router, prefix=f"{prefix}/admin", tags=["Admin"])
app.include_router(onboarding_routes.router, prefix=f"{prefix}/onboarding", tags=["Onboarding"])
app.include_router(leads_routes.router, prefix=f"{prefix}/leads", tags=["Leads"])
app.include_router(billing_routes.router, prefix=f"{prefix}/billing", tags=["Billing"])
app.include_router(payroll_routes.router, prefix=f"{prefix}/payroll", tags=["Payroll"])
app.include_router(integration_routes.router, prefix=f"{prefix}/integrations", tags=["Integrations"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Simple Growth Solutions API",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "simplegrowth.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
