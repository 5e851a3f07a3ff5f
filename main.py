from fastapi import FastAPI, Request, Depends
from fastapi.staticfiles import StaticFiles
from fastapi.responses import RedirectResponse, HTMLResponse
from contextlib import asynccontextmanager
import uvicorn
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from config import settings
from database import create_db_and_tables
from apps.core.logging import setup_logging
from apps.core.storage import get_storage
from apps.core.templating import templates
from apps.auth.deps import get_current_user
from apps.auth.models import User
from apps.auth.router import router as auth_router
from apps.auth.webhook_router import router as webhook_router
from apps.garage.router import router as garage_router
from apps.analytics.router import router as analytics_router

setup_logging(settings.LOG_LEVEL)

@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    get_storage().ensure_buckets()
    yield

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Middlewares
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY, https_only=False, same_site="lax")

# Static & Templates
settings.STATIC_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/static", StaticFiles(directory=str(settings.STATIC_DIR)), name="static")

# Routers
app.include_router(auth_router)
app.include_router(webhook_router)
app.include_router(garage_router)
app.include_router(analytics_router)

@app.get("/", response_class=HTMLResponse)
def home(request: Request, user: User | None = Depends(get_current_user)):
    # Signed-in users go straight to their garage
    if user:
        return RedirectResponse(url="/garage/", status_code=303)
    return templates.TemplateResponse(request, "landing.html", {"user": None})


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
