# backend/filmstock/routes/dashboard.py
from flask import Blueprint

from ..services.dashboard_service import get_dashboard_summary

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
def dashboard_route():
    return get_dashboard_summary()
