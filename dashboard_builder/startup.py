import logging

from nicegui import app, ui
from starlette.middleware.base import BaseHTTPMiddleware

from dashboard_builder.config import Settings
from dashboard_builder.reporting_client import ReportingClient
from dashboard_builder.store import DashboardStore
from dashboard_builder.widget_ui import DashboardPage

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def startup(settings: Settings) -> None:
    """Application startup - register the dashboard page"""
    logger.info("Starting application initialization...")

    @ui.page("/")
    def index():
        # one store and one client per page session; nothing outlives the page
        store = DashboardStore()
        client = ReportingClient.from_settings(settings)
        ui.context.client.on_disconnect(client.aclose)
        DashboardPage(store, client, settings).render_dashboard()

    logger.info(f"Dashboard ready, reporting API at {settings.reporting_base_url}")


def create_app(settings: Settings) -> None:
    """Wire health endpoint, middleware and startup hook into the NiceGUI app"""

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "service": "dashboard-builder",
            "reporting_api": "configured" if settings.reporting_configured else "missing",
        }

    app.on_startup(lambda: startup(settings))
    app.add_middleware(SecurityHeadersMiddleware)


def run(settings: Settings) -> None:
    create_app(settings)
    ui.run(
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        show=False,
        storage_secret=settings.storage_secret,
        title="Dashboard Builder",
    )
