"""Health check: database connectivity and whether Stripe credentials are present."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from paywall.core.config import get_settings
from paywall.core.database import check_db_connected, get_db
from paywall.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Return service health for load balancers and monitoring.

    Stripe is reported as configured when both the API key and webhook secret are set;
    no call is made to Stripe.
    """
    settings = get_settings()
    stripe_ready = (
        settings.STRIPE_SECRET_KEY is not None and settings.STRIPE_WEBHOOK_SECRET is not None
    )
    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database="connected" if check_db_connected(db) else "disconnected",
        stripe="configured" if stripe_ready else "not_configured",
    )
