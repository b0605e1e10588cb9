"""HTTP routes: start, cancel and inspect the generation job."""

from flask import Blueprint, current_app, jsonify, request

from shortforge.jobs import JobAlreadyRunning, JobCoordinator
from shortforge.manifest import ConfigurationError, JobRequest

bp = Blueprint("api", __name__)


def _reply(status: str, message: str, data=None, code: int = 200):
    return jsonify({"status": status, "message": message, "data": data}), code


def _coordinator() -> JobCoordinator | None:
    return current_app.config.get("COORDINATOR")


@bp.route("/generate", methods=["POST"])
def generate():
    coordinator = _coordinator()
    if coordinator is None:
        return _reply("error", "Video generation is not configured", code=503)

    try:
        job = JobRequest.from_dict(request.get_json(silent=True) or {})
        coordinator.start(job)
    except ConfigurationError as e:
        return _reply("error", str(e), code=400)
    except JobAlreadyRunning:
        return _reply("error", "Generating", code=409)

    return _reply("success", "Video generation started", code=202)


@bp.route("/cancel", methods=["POST"])
def cancel():
    coordinator = _coordinator()
    if coordinator is None or not coordinator.cancel():
        return _reply("error", "No video is being generated", code=409)
    return _reply("success", "Cancelling video generation")


@bp.route("/status")
def status():
    coordinator = _coordinator()
    if coordinator is None:
        return _reply("error", "Video generation is not configured", code=503)

    state, last = coordinator.snapshot()
    return _reply(
        "success",
        state.value,
        data=last.to_dict() if last is not None else None,
    )
