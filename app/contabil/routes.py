from flask import Blueprint, redirect, render_template, url_for

from app.contabil.context import current_context

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    if current_context().is_authenticated:
        return redirect(url_for("dashboard.index"))
    return render_template("public/index.html")


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200
