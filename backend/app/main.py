from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.routers import payments, plans, tenants

OPENAPI_TAGS = [
    {"name": "Plans", "description": "Browse the plan catalog and price a selection."},
    {"name": "Tenants", "description": "Register tenants, verify contact details, assign a plan."},
    {"name": "Payments", "description": "Initiate payments, poll their status, activate tenants."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Tenant onboarding API. "
        "Register a tenant, verify its email and phone, choose a plan with add-ons, "
        "pay, and activate the account."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", "Idempotency-Replayed"],
)


app.include_router(plans.router, prefix="/v1/plans", tags=["Plans"])
app.include_router(tenants.router, prefix="/v1/tenants", tags=["Tenants"])
app.include_router(payments.router, prefix="/v1/payments", tags=["Payments"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
