from flask import Flask, send_file, current_app
from .config import config_by_name
from .extensions import db, migrate, configure_sqlite
from .api.v1 import v1_bp
from .errors import register_error_handlers
from .cli import publish_cli
from .middleware.actor_middleware import actor_middleware
from flask_swagger_ui import get_swaggerui_blueprint
import os


def create_app(config_name: str = "development") -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # -------------------------------------------------
    # Extensions
    # -------------------------------------------------
    db.init_app(app)
    migrate.init_app(app, db)

    with app.app_context():
        from . import models  # noqa: F401  registers tables and hash hooks
        configure_sqlite(db.engine)

    # -------------------------------------------------
    # Middleware
    # -------------------------------------------------
    actor_middleware(app)

    # -------------------------------------------------
    # API Blueprints
    # -------------------------------------------------
    app.register_blueprint(v1_bp, url_prefix="/api/v1")
    register_error_handlers(app)

    # -------------------------------------------------
    # CLI
    # -------------------------------------------------
    app.cli.add_command(publish_cli)

    # -------------------------------------------------
    # Serve OpenAPI YAML
    # -------------------------------------------------
    @app.route("/openapi/publish.yaml", methods=["GET"], endpoint="openapi_publish")
    def serve_openapi():
        spec_path = os.path.join(
            current_app.root_path,
            "api",
            "v1",
            "publish_openapi.yaml",
        )

        if not os.path.exists(spec_path):
            raise FileNotFoundError("publish_openapi.yaml not found")

        return send_file(
            spec_path,
            mimetype="application/yaml",
            as_attachment=False,
        )

    # -------------------------------------------------
    # Swagger UI
    # -------------------------------------------------
    SWAGGER_URL = "/swagger"
    API_URL = "/openapi/publish.yaml"

    swaggerui_blueprint = get_swaggerui_blueprint(
        SWAGGER_URL,
        API_URL,
        config={
            "app_name": "CMS Publish API",
            "deepLinking": True,
        },
    )

    app.register_blueprint(swaggerui_blueprint, url_prefix=SWAGGER_URL)

    return app
