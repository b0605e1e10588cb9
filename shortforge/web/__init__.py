"""Flask application factory for the ShortForge API."""

from flask import Flask, jsonify

from shortforge.engine import make_runner
from shortforge.jobs import JobCoordinator
from shortforge.manifest import PipelineConfig
from shortforge.services import Services


def create_app(
    coordinator: JobCoordinator | None = None,
    services: Services | None = None,
    config: PipelineConfig | None = None,
) -> Flask:
    app = Flask(__name__)
    config = config or PipelineConfig()
    if coordinator is None and services is not None:
        coordinator = JobCoordinator(make_runner(services, config))
    app.config["PIPELINE"] = config
    app.config["COORDINATOR"] = coordinator

    from shortforge.web.routes import bp
    app.register_blueprint(bp, url_prefix="/api")

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"status": "error", "message": "Not found", "data": None}), 404

    return app
