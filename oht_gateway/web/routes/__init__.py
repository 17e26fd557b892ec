"""Route blueprints for the web application."""

from .callback import callback_bp
from .jobs import jobs_bp, items_bp
from .settings import settings_bp
from .sweeps import sweeps_bp

__all__ = [
    "callback_bp",
    "jobs_bp",
    "items_bp",
    "settings_bp",
    "sweeps_bp",
]
