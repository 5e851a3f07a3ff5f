import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlmodel import Session

from config import settings
from database import get_session
from apps.auth.deps import require_user
from apps.auth.models import User
from apps.auth.subscription_service import can_add_vehicle, get_plan
from apps.analytics.services import compute_analytics
from apps.core.errors import BackendTimeout, NotFoundError, VehicleLimitError
from apps.core.flash import flash
from apps.core.storage import PART_IMAGES, VEHICLE_IMAGES, remove_urls
from apps.core.templating import templates
from apps.core.uploads import store_upload, store_uploads
from apps.garage.models import PartCategory, PartForm, VehicleForm
from apps.garage.services import ALL, GarageService, money_saved

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/garage", tags=["garage"])

def get_service(session: Session = Depends(get_session)) -> GarageService:
    return GarageService(session)

def validation_message(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        problems.append(f"{field.replace('_', ' ')}: {error['msg']}")
    return "Please check the form. " + "; ".join(problems)

def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)

# --- DASHBOARD ---

@router.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    stats = service.get_dashboard_stats(user.id)
    return templates.TemplateResponse(request, "garage/dashboard.html", {
        "stats": stats,
        "user": user,
        "plan": get_plan(user),
        "subscriptions_enabled": settings.ENABLE_SUBSCRIPTION,
    })

# --- VEHICLES ---

@router.get("/vehicles", response_class=HTMLResponse, name="list_vehicles")
def list_vehicles(
    request: Request,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    vehicles = service.list_vehicles(user.id)
    return templates.TemplateResponse(request, "garage/vehicles.html", {
        "vehicles": vehicles,
        "user": user,
        "can_add": can_add_vehicle(user, len(vehicles)),
    })

@router.get("/vehicles/new", response_class=HTMLResponse)
def new_vehicle_page(request: Request, user: User = Depends(require_user)):
    return templates.TemplateResponse(request, "garage/vehicle_form.html", {"user": user, "vehicle": None})

@router.post("/vehicles")
async def create_vehicle(
    request: Request,
    name: str = Form(...),
    make: str = Form(...),
    model: str = Form(...),
    year: str = Form(...),
    color: str = Form(""),
    mileage: str = Form("0"),
    vin: str = Form(None),
    description: str = Form(None),
    image: UploadFile = File(default=None),
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        form = VehicleForm.model_validate({
            "name": name, "make": make, "model": model, "year": year, "color": color,
            "mileage": mileage or 0, "vin": vin, "description": description,
        })
    except ValidationError as e:
        flash(request, validation_message(e), "error")
        return redirect("/garage/vehicles/new")

    # Refuse before anything is uploaded
    try:
        service.check_vehicle_limit(user)
    except VehicleLimitError as e:
        flash(request, str(e), "error")
        return redirect("/garage/vehicles")

    image_url = await store_upload(request, VEHICLE_IMAGES, user.id, image)

    try:
        vehicle = service.create_vehicle(user, form, image_url)
    except (VehicleLimitError, BackendTimeout) as e:
        remove_urls(VEHICLE_IMAGES, [image_url])
        flash(request, str(e), "error")
        return redirect("/garage/vehicles" if isinstance(e, VehicleLimitError) else "/garage/vehicles/new")

    flash(request, "Vehicle added successfully!", "success")
    return redirect(f"/garage/vehicles/{vehicle.id}")

@router.get("/vehicles/{vehicle_id}", response_class=HTMLResponse)
def vehicle_details(
    request: Request,
    vehicle_id: int,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        vehicle = service.get_vehicle(user.id, vehicle_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    parts = service.list_parts(user.id, vehicle_id=vehicle.id)
    return templates.TemplateResponse(request, "garage/vehicle_details.html", {
        "user": user,
        "vehicle": vehicle,
        "parts": parts,
        "analytics": compute_analytics(parts),
        "money_saved": money_saved(parts),
    })

@router.get("/vehicles/{vehicle_id}/edit", response_class=HTMLResponse)
def edit_vehicle_page(
    request: Request,
    vehicle_id: int,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        vehicle = service.get_vehicle(user.id, vehicle_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return templates.TemplateResponse(request, "garage/vehicle_form.html", {"user": user, "vehicle": vehicle})

@router.post("/vehicles/{vehicle_id}")
async def update_vehicle(
    request: Request,
    vehicle_id: int,
    name: str = Form(...),
    make: str = Form(...),
    model: str = Form(...),
    year: str = Form(...),
    color: str = Form(""),
    mileage: str = Form("0"),
    vin: str = Form(None),
    description: str = Form(None),
    remove_image: bool = Form(False),
    image: UploadFile = File(default=None),
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        form = VehicleForm.model_validate({
            "name": name, "make": make, "model": model, "year": year, "color": color,
            "mileage": mileage or 0, "vin": vin, "description": description,
        })
    except ValidationError as e:
        flash(request, validation_message(e), "error")
        return redirect(f"/garage/vehicles/{vehicle_id}/edit")

    try:
        service.get_vehicle(user.id, vehicle_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    image_url = await store_upload(request, VEHICLE_IMAGES, user.id, image)

    try:
        service.update_vehicle(user.id, vehicle_id, form, image_url=image_url, remove_image=remove_image)
    except BackendTimeout as e:
        remove_urls(VEHICLE_IMAGES, [image_url])
        flash(request, str(e), "error")
        return redirect(f"/garage/vehicles/{vehicle_id}/edit")

    flash(request, "Vehicle updated successfully!", "success")
    return redirect(f"/garage/vehicles/{vehicle_id}")

@router.post("/vehicles/{vehicle_id}/delete")
def delete_vehicle(
    request: Request,
    vehicle_id: int,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        service.delete_vehicle(user.id, vehicle_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Vehicle not found")

    flash(request, "Vehicle deleted.", "success")
    return redirect("/garage/vehicles")

# --- PARTS ---

@router.get("/parts", response_class=HTMLResponse)
def list_parts(
    request: Request,
    q: str = "",
    category: str = ALL,
    vehicle: str = ALL,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    parts = service.list_parts(user.id, search=q, category=category, vehicle_id=vehicle)
    total_spent = sum(p.total_cost for p in parts)

    return templates.TemplateResponse(request, "garage/parts.html", {
        "user": user,
        "parts": parts,
        "vehicles": service.list_vehicles(user.id),
        "categories": list(PartCategory),
        "filters": {"q": q, "category": category, "vehicle": vehicle},
        "total_spent": total_spent,
        "average_cost": total_spent / len(parts) if parts else 0,
        "money_saved": money_saved(parts),
    })

@router.get("/parts/new", response_class=HTMLResponse)
def new_part_page(
    request: Request,
    vehicle_id: Optional[int] = None,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    vehicles = service.list_vehicles(user.id)
    if not vehicles:
        flash(request, "Add a vehicle before logging parts.", "info")
        return redirect("/garage/vehicles/new")

    return templates.TemplateResponse(request, "garage/part_form.html", {
        "user": user,
        "part": None,
        "vehicles": vehicles,
        "selected_vehicle": vehicle_id,
        "categories": list(PartCategory),
    })

def _part_form(vehicle_id, name, category, brand, part_number, cost, installation_cost,
               mileage, date, description, warranty, notes, links) -> PartForm:
    return PartForm.model_validate({
        "vehicle_id": vehicle_id, "name": name, "category": category, "brand": brand,
        "part_number": part_number, "cost": cost, "installation_cost": installation_cost,
        "mileage": mileage or 0, "date": date, "description": description,
        "warranty": warranty, "notes": notes, "links": links,
    })

@router.post("/parts")
async def create_part(
    request: Request,
    vehicle_id: str = Form(...),
    name: str = Form(...),
    category: str = Form(...),
    cost: str = Form(...),
    date: str = Form(...),
    brand: str = Form(None),
    part_number: str = Form(None),
    installation_cost: str = Form(None),
    mileage: str = Form("0"),
    description: str = Form(None),
    warranty: str = Form(None),
    notes: str = Form(None),
    links: List[str] = Form(default=[]),
    images: List[UploadFile] = File(default=[]),
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        form = _part_form(vehicle_id, name, category, brand, part_number, cost, installation_cost,
                          mileage, date, description, warranty, notes, links)
    except ValidationError as e:
        flash(request, validation_message(e), "error")
        return redirect("/garage/parts/new")

    try:
        service.get_vehicle(user.id, form.vehicle_id)
    except NotFoundError:
        flash(request, "Choose one of your vehicles.", "error")
        return redirect("/garage/parts/new")

    image_urls = await store_uploads(request, PART_IMAGES, user.id, images)

    try:
        part = service.create_part(user.id, form, image_urls)
    except BackendTimeout as e:
        remove_urls(PART_IMAGES, image_urls)
        flash(request, str(e), "error")
        return redirect("/garage/parts/new")

    flash(request, "Part added successfully!", "success")
    return redirect(f"/garage/parts/{part.id}")

@router.get("/parts/{part_id}", response_class=HTMLResponse)
def part_details(
    request: Request,
    part_id: int,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        part = service.get_part(user.id, part_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Part not found")

    return templates.TemplateResponse(request, "garage/part_details.html", {
        "user": user,
        "part": part,
        "vehicle": part.vehicle,
        "category": PartCategory(part.category),
    })

@router.get("/parts/{part_id}/edit", response_class=HTMLResponse)
def edit_part_page(
    request: Request,
    part_id: int,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        part = service.get_part(user.id, part_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Part not found")

    return templates.TemplateResponse(request, "garage/part_form.html", {
        "user": user,
        "part": part,
        "vehicles": service.list_vehicles(user.id),
        "selected_vehicle": part.vehicle_id,
        "categories": list(PartCategory),
    })

@router.post("/parts/{part_id}")
async def update_part(
    request: Request,
    part_id: int,
    vehicle_id: str = Form(...),
    name: str = Form(...),
    category: str = Form(...),
    cost: str = Form(...),
    date: str = Form(...),
    brand: str = Form(None),
    part_number: str = Form(None),
    installation_cost: str = Form(None),
    mileage: str = Form("0"),
    description: str = Form(None),
    warranty: str = Form(None),
    notes: str = Form(None),
    links: List[str] = Form(default=[]),
    keep_images: List[str] = Form(default=[]),
    images: List[UploadFile] = File(default=[]),
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        form = _part_form(vehicle_id, name, category, brand, part_number, cost, installation_cost,
                          mileage, date, description, warranty, notes, links)
    except ValidationError as e:
        flash(request, validation_message(e), "error")
        return redirect(f"/garage/parts/{part_id}/edit")

    try:
        service.get_part(user.id, part_id)
        service.get_vehicle(user.id, form.vehicle_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Part not found")

    new_urls = await store_uploads(request, PART_IMAGES, user.id, images)

    try:
        service.update_part(user.id, part_id, form, keep_images=keep_images, new_image_urls=new_urls)
    except BackendTimeout as e:
        remove_urls(PART_IMAGES, new_urls)
        flash(request, str(e), "error")
        return redirect(f"/garage/parts/{part_id}/edit")

    flash(request, "Part updated successfully!", "success")
    return redirect(f"/garage/parts/{part_id}")

@router.post("/parts/{part_id}/delete")
def delete_part(
    request: Request,
    part_id: int,
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    try:
        service.delete_part(user.id, part_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Part not found")

    flash(request, "Part deleted.", "success")
    return redirect("/garage/parts")

# --- EXPORT ---

@router.get("/export.csv")
def export_parts(
    user: User = Depends(require_user),
    service: GarageService = Depends(get_service)
):
    return Response(
        content=service.export_parts_csv(user.id),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="mod-garage-parts.csv"'},
    )
