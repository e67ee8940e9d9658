import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from rich.logging import RichHandler

from storyboard.config import config
from storyboard.tools import ToolRouter

bp = Blueprint("tools", __name__)

ERROR_STATUS = {
    "validation": 400,
    "not_found": 404,
    "parent_not_found": 404,
    "unknown_tool": 404,
    "already_exists": 409,
    "limit_exceeded": 409,
    "storage": 500,
}


def configure_logging(level: str = None) -> None:
    logging.basicConfig(
        level=level or config.log_level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


@bp.route("", methods=["GET"])
def list_tools():
    """List the available tools."""
    return jsonify(current_app.tool_router.list_tools())


@bp.route("/<name>", methods=["POST"])
def call_tool(name: str):
    """Invoke a tool. The JSON body holds the tool arguments."""
    arguments = request.get_json(silent=True)
    response = current_app.tool_router.call_tool(name, arguments)

    if response["ok"]:
        return jsonify(response)
    return jsonify(response), ERROR_STATUS.get(response["error"]["kind"], 500)


def create_app(tool_router: ToolRouter = None) -> Flask:
    """Application factory."""
    app = Flask(__name__)
    app.tool_router = tool_router or ToolRouter()

    app.register_blueprint(bp, url_prefix="/api/tools")

    @app.route("/api/health")
    def health():
        return {"status": "ok"}

    return app
