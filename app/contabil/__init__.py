import logging
import os
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv

from app.contabil.config import load_config
from app.contabil.db import init_db, teardown_db_session
from app.contabil.context import load_auth_context
from app.contabil.routes import bp as routes_bp
from app.contabil.auth import bp as auth_bp
from app.contabil.dashboard import bp as dashboard_bp
from app.contabil.profile import bp as profile_bp
from app.contabil.modules.clients.routes import bp as clients_bp
from app.contabil.modules.tasks.routes import bp as tasks_bp

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.contabil.constants import PERSON_TYPE_LABELS, TASK_TYPE_LABELS
    from app.contabil.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_globals() -> dict:
        return {
            "csrf_token": ensure_csrf_token(),
            "auth": getattr(g, "auth", None),
            "task_type_labels": TASK_TYPE_LABELS,
            "person_type_labels": PERSON_TYPE_LABELS,
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%d/%m/%Y") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Auth forms run before a session exists (login/register/reset).
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="Token CSRF ausente ou inválido."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(tasks_bp)

    app.before_request(load_auth_context)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return render_template("errors/400.html"), 400

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        app.logger.warning("Forbidden: path=%s request_id=%s", request.path, getattr(g, "request_id", None))
        return render_template("errors/403.html"), 403

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    logger.info("create_app() complete; app ready to serve")

    return app
