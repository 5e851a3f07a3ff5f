import logging
from typing import Any, Dict, Optional
from sqlmodel import select

from apps.auth.models import User
from apps.core.base_service import BaseService
from apps.core.storage import AVATARS, PART_IMAGES, VEHICLE_IMAGES, remove_urls
from apps.garage.models import Vehicle, Part

logger = logging.getLogger(__name__)

class AuthService(BaseService):

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def get_or_create_user(self, user_info: Dict[str, Any]) -> User:
        """Map an identity provider profile (sub, email, name, picture) to a local User."""
        email = user_info.get('email')
        if not email:
            raise ValueError("Identity provider did not return an email")

        user = self.get_user_by_email(email)
        if not user:
            user = User(
                email=email,
                external_id=user_info.get('sub'),
                name=user_info.get('name'),
                profile_image=user_info.get('picture'),
            )
            logger.info("Creating user for %s", email)
        else:
            if not user.external_id:
                user.external_id = user_info.get('sub')
            if not user.profile_image:
                user.profile_image = user_info.get('picture')
        return self.save(user)

    # --- PROFILE MANAGEMENT ---

    def update_profile(self, user: User, name: Optional[str] = None, image_url: Optional[str] = None) -> User:
        """Set the display name and/or an already-uploaded profile photo."""
        if name:
            user.name = name.strip()

        if image_url:
            previous = user.profile_image
            user.profile_image = image_url
            self.save(user)
            remove_urls(AVATARS, [previous] if previous else [])
            return user

        return self.save(user)

    def delete_account(self, user: User) -> None:
        """Delete the user, their vehicles and parts, and their stored photos."""
        vehicles = self.session.exec(select(Vehicle).where(Vehicle.user_id == user.id)).all()
        stored = {VEHICLE_IMAGES: [], PART_IMAGES: [], AVATARS: []}

        for vehicle in vehicles:
            parts = self.session.exec(select(Part).where(Part.vehicle_id == vehicle.id)).all()
            for part in parts:
                stored[PART_IMAGES].extend(part.images or [])
                self.session.delete(part)
            if vehicle.image:
                stored[VEHICLE_IMAGES].append(vehicle.image)
            self.session.delete(vehicle)
        if user.profile_image:
            stored[AVATARS].append(user.profile_image)

        self.session.delete(user)
        self.session.commit()
        logger.info("Deleted account %s with %d vehicles", user.email, len(vehicles))

        for bucket, urls in stored.items():
            remove_urls(bucket, urls)
