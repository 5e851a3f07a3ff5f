import csv
import io
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import select

from apps.auth.models import SubscriptionTier, User
from apps.auth.subscription_service import can_add_vehicle, get_plan
from apps.core.base_service import BaseService
from apps.core.errors import NotFoundError, VehicleLimitError
from apps.core.storage import PART_IMAGES, VEHICLE_IMAGES, remove_urls
from apps.core.utils import utcnow
from apps.garage.models import (
    DEFAULT_INSTALL_COST,
    Part,
    PartCategory,
    PartForm,
    Vehicle,
    VehicleForm,
)

logger = logging.getLogger(__name__)

ALL = "all"

EXPORT_COLUMNS = [
    "vehicle", "name", "category", "brand", "part_number", "cost", "installation_cost",
    "total_cost", "mileage", "date", "warranty", "description", "notes", "links", "images",
]


def money_saved(parts: Iterable[Part]) -> float:
    """What the owner would have paid a shop to fit these parts.

    Uses the recorded installation cost when there is one, otherwise the
    category's estimate.
    """
    total = 0.0
    for part in parts:
        if part.installation_cost and part.installation_cost > 0:
            total += part.installation_cost
        else:
            try:
                total += PartCategory(part.category).estimated_install_cost
            except ValueError:
                total += DEFAULT_INSTALL_COST
    return round(total, 2)


def filter_parts(parts: Iterable[Part], search: str = "", category: str = ALL, vehicle_id=ALL) -> List[Part]:
    term = (search or "").strip().lower()
    results = []
    for part in parts:
        matches_search = not term or term in part.name.lower() or term in (part.brand or "").lower()
        matches_category = category in (None, "", ALL) or part.category == category
        matches_vehicle = vehicle_id in (None, "", ALL) or str(part.vehicle_id) == str(vehicle_id)
        if matches_search and matches_category and matches_vehicle:
            results.append(part)
    return results


class GarageService(BaseService):

    # --- VEHICLES ---

    def list_vehicles(self, user_id: int) -> List[Vehicle]:
        return self.session.exec(
            select(Vehicle)
            .where(Vehicle.user_id == user_id)
            .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        ).all()

    def get_vehicle(self, user_id: int, vehicle_id: int) -> Vehicle:
        vehicle = self.session.get(Vehicle, vehicle_id)
        if not vehicle or vehicle.user_id != user_id:
            raise NotFoundError(f"Vehicle {vehicle_id} not found")
        return vehicle

    def check_vehicle_limit(self, user: User) -> None:
        """Raise VehicleLimitError when the user's plan has no room for another vehicle."""
        count = len(self.list_vehicles(user.id))
        if not can_add_vehicle(user, count):
            raise VehicleLimitError(
                f"Your {SubscriptionTier(user.subscription).value} plan allows {get_plan(user).max_vehicles} vehicle(s). "
                "Upgrade to Premium for unlimited vehicles."
            )

    def create_vehicle(self, user: User, form: VehicleForm, image_url: Optional[str] = None) -> Vehicle:
        self.check_vehicle_limit(user)

        vehicle = Vehicle(user_id=user.id, image=image_url, total_spent=0, **form.model_dump())
        self.save(vehicle)
        logger.info("User %s added vehicle %s (%s %s)", user.id, vehicle.id, vehicle.make, vehicle.model)
        return vehicle

    def update_vehicle(self, user_id: int, vehicle_id: int, form: VehicleForm,
                       image_url: Optional[str] = None, remove_image: bool = False) -> Vehicle:
        vehicle = self.get_vehicle(user_id, vehicle_id)
        for key, value in form.model_dump().items():
            setattr(vehicle, key, value)

        replaced = []
        if image_url or remove_image:
            replaced = [vehicle.image] if vehicle.image else []
            vehicle.image = image_url

        vehicle.updated_at = utcnow()
        self.save(vehicle)
        self._remove_images(VEHICLE_IMAGES, replaced)
        return vehicle

    def delete_vehicle(self, user_id: int, vehicle_id: int) -> None:
        vehicle = self.get_vehicle(user_id, vehicle_id)
        parts = self.session.exec(select(Part).where(Part.vehicle_id == vehicle.id)).all()

        part_images = []
        for part in parts:
            part_images.extend(part.images or [])
            self.session.delete(part)
        vehicle_image = vehicle.image

        self.session.delete(vehicle)
        self.session.commit()
        logger.info("User %s deleted vehicle %s and %d parts", user_id, vehicle_id, len(parts))

        self._remove_images(PART_IMAGES, part_images)
        if vehicle_image:
            self._remove_images(VEHICLE_IMAGES, [vehicle_image])

    def recalculate_total_spent(self, vehicle: Vehicle) -> Vehicle:
        parts = self.session.exec(select(Part).where(Part.vehicle_id == vehicle.id)).all()
        vehicle.total_spent = round(sum(p.total_cost for p in parts), 2)
        vehicle.updated_at = utcnow()
        return self.save(vehicle)

    # --- PARTS ---

    def list_parts(self, user_id: int, search: str = "", category: str = ALL, vehicle_id=ALL) -> List[Part]:
        parts = self.session.exec(
            select(Part)
            .join(Vehicle)
            .where(Vehicle.user_id == user_id)
            .order_by(Part.created_at.desc(), Part.id.desc())
        ).all()
        return filter_parts(parts, search, category, vehicle_id)

    def get_part(self, user_id: int, part_id: int) -> Part:
        part = self.session.get(Part, part_id)
        if not part or part.vehicle is None or part.vehicle.user_id != user_id:
            raise NotFoundError(f"Part {part_id} not found")
        return part

    def create_part(self, user_id: int, form: PartForm, image_urls: Optional[List[str]] = None) -> Part:
        vehicle = self.get_vehicle(user_id, form.vehicle_id)

        part = Part(
            total_cost=form.total_cost,
            images=list(image_urls or []),
            **form.model_dump(),
        )
        self.save(part)
        self.recalculate_total_spent(vehicle)
        logger.info("Part %s added to vehicle %s (%.2f)", part.id, vehicle.id, part.total_cost)
        return part

    def update_part(self, user_id: int, part_id: int, form: PartForm,
                    keep_images: Optional[List[str]] = None, new_image_urls: Optional[List[str]] = None) -> Part:
        """Apply the form to a part and reconcile its photos.

        ``keep_images`` lists the current URLs to retain; the rest are deleted
        from storage. ``None`` keeps them all, for callers that only edit fields.
        """
        part = self.get_part(user_id, part_id)
        old_vehicle = part.vehicle
        new_vehicle = self.get_vehicle(user_id, form.vehicle_id)

        current = list(part.images or [])
        kept = current if keep_images is None else [url for url in current if url in keep_images]
        dropped = [url for url in current if url not in kept]

        for key, value in form.model_dump().items():
            setattr(part, key, value)
        part.total_cost = form.total_cost
        part.images = kept + list(new_image_urls or [])
        part.updated_at = utcnow()
        self.save(part)

        self.recalculate_total_spent(new_vehicle)
        if old_vehicle.id != new_vehicle.id:
            self.recalculate_total_spent(old_vehicle)

        self._remove_images(PART_IMAGES, dropped)
        return part

    def delete_part(self, user_id: int, part_id: int) -> None:
        part = self.get_part(user_id, part_id)
        vehicle = part.vehicle
        images = list(part.images or [])

        self.session.delete(part)
        self.session.commit()
        self.recalculate_total_spent(vehicle)
        self._remove_images(PART_IMAGES, images)

    # --- DASHBOARD & EXPORT ---

    def get_dashboard_stats(self, user_id: int) -> Dict[str, Any]:
        vehicles = self.list_vehicles(user_id)
        parts = self.list_parts(user_id)

        total_spent = round(sum(v.total_spent for v in vehicles), 2)
        total_parts = len(parts)

        return {
            "vehicles": vehicles,
            "total_vehicles": len(vehicles),
            "total_parts": total_parts,
            "total_spent": total_spent,
            "average_part_cost": round(total_spent / total_parts, 2) if total_parts else 0,
            "money_saved": money_saved(parts),
            "recent_parts": parts[:5],
        }

    def export_parts_csv(self, user_id: int) -> str:
        vehicles = {v.id: v.name for v in self.list_vehicles(user_id)}
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
        writer.writeheader()

        for part in self.list_parts(user_id):
            writer.writerow({
                "vehicle": vehicles.get(part.vehicle_id, ""),
                "name": part.name,
                "category": PartCategory(part.category).value,
                "brand": part.brand or "",
                "part_number": part.part_number or "",
                "cost": f"{part.cost:.2f}",
                "installation_cost": f"{part.installation_cost:.2f}" if part.installation_cost is not None else "",
                "total_cost": f"{part.total_cost:.2f}",
                "mileage": part.mileage,
                "date": part.date.isoformat(),
                "warranty": part.warranty or "",
                "description": part.description or "",
                "notes": part.notes or "",
                "links": " ".join(part.links or []),
                "images": " ".join(part.images or []),
            })
        return buffer.getvalue()

    def _remove_images(self, bucket: str, urls: List[str]) -> None:
        # The rows are already gone; orphaned objects are only logged
        remove_urls(bucket, urls)
