import asyncio
import logging
from authlib.integrations.base_client import OAuthError
from fastapi import APIRouter, Depends, Form, Request, UploadFile, File
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from config import settings
from database import get_session
from apps.auth.deps import get_current_user, require_user
from apps.auth.models import User
from apps.auth.services import AuthService
from apps.auth.subscription_service import SubscriptionService, get_plan
from apps.auth.utils import oauth, logout_url
from apps.core.errors import BackendTimeout
from apps.core.flash import flash
from apps.core.storage import AVATARS, remove_urls
from apps.core.templating import templates
from apps.core.uploads import store_upload
from apps.garage.services import GarageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

def get_service(session: Session = Depends(get_session)) -> AuthService:
    return AuthService(session)

# --- AUTH0 ROUTES ---

@router.get("/login")
async def login(request: Request):
    auth0 = oauth.create_client("auth0")
    if not auth0:
        flash(request, "Authentication service not configured", "error")
        return RedirectResponse(url="/", status_code=303)

    redirect_uri = request.url_for('auth_callback')
    return await auth0.authorize_redirect(request, redirect_uri)

@router.get("/callback", name="auth_callback")
async def auth_callback(request: Request, service: AuthService = Depends(get_service)):
    auth0 = oauth.create_client("auth0")
    if not auth0:
        return RedirectResponse(url="/", status_code=303)

    try:
        token = await asyncio.wait_for(auth0.authorize_access_token(request), timeout=settings.SESSION_TIMEOUT)
    except asyncio.TimeoutError:
        logger.error("Session check timed out after %s seconds", settings.SESSION_TIMEOUT)
        flash(request, "Sign-in timed out. Please try again.", "error")
        return RedirectResponse(url="/", status_code=303)
    except OAuthError as e:
        # Consent declined, expired state, bad code
        logger.warning("Auth0 callback rejected: %s", e)
        flash(request, "Sign-in was cancelled or failed. Please try again.", "error")
        return RedirectResponse(url="/", status_code=303)

    user_info = token.get('userinfo')
    if not user_info:
        flash(request, "Failed to get user info", "error")
        return RedirectResponse(url="/", status_code=303)

    try:
        user = service.get_or_create_user(dict(user_info))
    except (ValueError, BackendTimeout) as e:
        logger.error("Could not sign in %s: %s", user_info.get('sub'), e)
        flash(request, f"Sign-in failed: {e}", "error")
        return RedirectResponse(url="/", status_code=303)

    request.session['user_id'] = user.id
    request.session['user_email'] = user.email
    logger.info("User %s signed in", user.id)

    return RedirectResponse(url="/garage/", status_code=303)

@router.get("/logout")
def logout(request: Request):
    request.session.clear()

    if not settings.AUTH0_DOMAIN:
        return RedirectResponse(url="/", status_code=303)
    return RedirectResponse(url=logout_url(str(request.base_url)), status_code=303)

# Sign-up happens on the Auth0 hosted page
@router.get("/register")
def register_page():
    return RedirectResponse(url="/auth/login", status_code=303)

# --- SETTINGS ROUTES ---

@router.get("/settings")
def settings_page(
    request: Request,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    if not user:
        return RedirectResponse(url="/auth/login", status_code=303)

    stats = GarageService(session).get_dashboard_stats(user.id)
    return templates.TemplateResponse(request, "auth/settings.html", {
        "user": user,
        "stats": stats,
        "plan": get_plan(user),
        "subscriptions_enabled": settings.ENABLE_SUBSCRIPTION,
    })

@router.post("/profile")
async def update_profile(
    request: Request,
    name: str = Form(default=None),
    profile_image: UploadFile = File(default=None),
    service: AuthService = Depends(get_service),
    user: User = Depends(require_user)
):
    image_url = await store_upload(request, AVATARS, user.id, profile_image)

    try:
        service.update_profile(user, name, image_url=image_url)
    except BackendTimeout as e:
        remove_urls(AVATARS, [image_url])
        logger.error("Profile update failed for user %s: %s", user.id, e)
        flash(request, f"Profile update failed: {e}", "error")
        return RedirectResponse(url="/auth/settings", status_code=303)

    flash(request, "Profile updated.", "success")
    return RedirectResponse(url="/auth/settings", status_code=303)

@router.post("/delete")
def delete_account(
    request: Request,
    confirm: str = Form(""),
    service: AuthService = Depends(get_service),
    user: User = Depends(require_user)
):
    if confirm != user.email:
        flash(request, "Type your email address to confirm account deletion.", "error")
        return RedirectResponse(url="/auth/settings", status_code=303)

    service.delete_account(user)
    request.session.clear()
    return RedirectResponse(url="/", status_code=303)

@router.get("/subscribe")
def subscribe_premium(
    request: Request,
    user: User = Depends(require_user),
    session: Session = Depends(get_session)
):
    sub_service = SubscriptionService(session)
    return_url = str(request.url_for('settings_page'))

    checkout_url = sub_service.create_checkout_session(user, return_url, return_url)

    if checkout_url:
        return RedirectResponse(checkout_url, status_code=303)

    flash(request, "Payments are not configured yet.", "error")
    return RedirectResponse("/auth/settings", status_code=303)
