"""
API route modules.
"""
from app.api.routes import analysis, auth, billing, history, plan, webhooks

__all__ = ["analysis", "auth", "billing", "history", "plan", "webhooks"]
