"""HTTP routers mounted by orderdesk.main.create_app."""

from orderdesk.api import admin, auth, public, webhooks

ROUTERS = [webhooks.router, auth.router, admin.router, public.router]

__all__ = ["ROUTERS"]
