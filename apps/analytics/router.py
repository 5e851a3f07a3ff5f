from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlmodel import Session

from database import get_session
from apps.analytics.services import AnalyticsService
from apps.auth.deps import require_user
from apps.auth.models import User
from apps.core.templating import templates
from apps.garage.models import PartCategory

router = APIRouter(prefix="/analytics", tags=["analytics"])

def get_service(session: Session = Depends(get_session)) -> AnalyticsService:
    return AnalyticsService(session)

@router.get("/", response_class=HTMLResponse)
def analytics_page(
    request: Request,
    vehicle: str = "",
    user: User = Depends(require_user),
    service: AnalyticsService = Depends(get_service)
):
    analytics = service.for_user(user.id, vehicle_id=vehicle or None)
    peak = max((m["amount"] for m in analytics.spending_by_month), default=0)

    return templates.TemplateResponse(request, "analytics/analytics.html", {
        "user": user,
        "analytics": analytics,
        "vehicles": service.garage.list_vehicles(user.id),
        "selected_vehicle": vehicle,
        "labels": {c.value: c.label for c in PartCategory},
        "peak_month": peak,
    })

@router.get("/data")
def analytics_data(
    vehicle: str = "",
    user: User = Depends(require_user),
    service: AnalyticsService = Depends(get_service)
):
    return service.for_user(user.id, vehicle_id=vehicle or None).to_dict()
