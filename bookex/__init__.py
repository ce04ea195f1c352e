import logging

from flask import Flask, abort, jsonify, request, session

from .config import get_config
from .errors import WorkflowError
from .extensions import db, migrate

PUBLIC_ENDPOINTS = {"health", "index", "routes"}


def create_app(config_overrides: dict | None = None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(get_config())

    # ✅ Apply overrides BEFORE db.init_app so SQLAlchemy uses test DB
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    app.logger.info("BookEx - init app")

    db.init_app(app)

    # load models so Alembic detects tables / metadata exists
    from . import models  # noqa: F401

    migrate.init_app(app, db)

    from .services.notifications import init_notifier
    init_notifier(app)

    from .blueprints.purchase_requests.routes import bp as purchase_requests_bp
    from .blueprints.delivery.routes import bp as delivery_bp
    from .blueprints.notifications.routes import bp as notifications_bp
    from .blueprints.reviews.routes import bp as reviews_bp

    app.register_blueprint(purchase_requests_bp)
    app.register_blueprint(delivery_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(reviews_bp)

    # -----------------------------
    # Error handlers (JSON)
    # -----------------------------
    @app.errorhandler(WorkflowError)
    def err_workflow(e):
        app.logger.info(
            "%s (%s) | endpoint=%s method=%s path=%s user_id=%s",
            e.code, e.status_code, request.endpoint, request.method, request.path,
            session.get("user_id"),
        )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def err_400(e):
        return jsonify(error="bad_request"), 400

    @app.errorhandler(401)
    def err_401(e):
        return jsonify(error="unauthorized"), 401

    @app.errorhandler(403)
    def err_403(e):
        return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def err_404(e):
        return jsonify(error="not_found"), 404

    @app.errorhandler(405)
    def err_405(e):
        return jsonify(error="method_not_allowed"), 405

    # -----------------------------
    # Enforcement global: login + usuarios bloqueados
    # -----------------------------
    @app.before_request
    def enforce_global_access_min():
        # 0) endpoint None suele ser 404 / rutas no resueltas
        if request.endpoint is None:
            return

        # 1) permitir preflight CORS
        if request.method == "OPTIONS":
            return

        # 2) permitir estáticos y públicos
        if request.endpoint == "static" or request.endpoint in PUBLIC_ENDPOINTS:
            return

        # 3) a partir de aquí: requiere login
        user_id = session.get("user_id")
        if not user_id:
            app.logger.info(
                "DENY 401: no session user_id | endpoint=%s method=%s path=%s",
                request.endpoint, request.method, request.path,
            )
            abort(401)

        # 4) bloqueo global
        from .models import User
        user = db.session.get(User, user_id)

        if user is not None and user.is_blocked:
            app.logger.info(
                "DENY 403: blocked user_id=%s | endpoint=%s method=%s path=%s",
                user_id, request.endpoint, request.method, request.path,
            )
            abort(403)

    @app.get("/health")
    def health():
        return jsonify(status="ok")

    @app.get("/")
    def index():
        return "BookEx ✅"

    @app.get("/routes")
    def routes():
        return jsonify(sorted([str(r) for r in app.url_map.iter_rules()]))

    return app
