"""Flask JSON API over a single editing session."""

from __future__ import annotations

import math
import threading
from io import BytesIO
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request, send_file

from kitbash.compositor import render_single_part
from kitbash.config import parse_color
from kitbash.io import encode_png
from kitbash.session import KitbashSession
from kitbash.tree import describe_node

MAX_SCALE = 100.0
MAX_OFFSET = 1_000_000.0


def _error(message: str, status: int) -> Tuple[Any, int]:
    return jsonify({"error": message}), status


class RequestError(ValueError):
    """A request body that cannot be applied to the session."""


def _json_object() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise RequestError("Request body must be a JSON object.")
    return payload


def _bounded(value: Any, label: str, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RequestError(f"{label} must be a number, got {value!r}.") from None
    if not math.isfinite(number) or not low <= number <= high:
        raise RequestError(f"{label} must be a finite number within {low:g}..{high:g}, got {value!r}.")
    return number


def _parse_offset(value: Any) -> Tuple[float, float]:
    if isinstance(value, dict):
        if "x" not in value or "y" not in value:
            raise RequestError("offset needs both x and y.")
        x, y = value["x"], value["y"]
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        x, y = value
    else:
        raise RequestError(f"offset must be {{x, y}} or [x, y], got {value!r}.")
    return (
        _bounded(x, "offset.x", -MAX_OFFSET, MAX_OFFSET),
        _bounded(y, "offset.y", -MAX_OFFSET, MAX_OFFSET),
    )


def _png_response(pixels: Any) -> Any:
    return send_file(BytesIO(encode_png(pixels)), mimetype="image/png")


def create_app(session: Optional[KitbashSession] = None) -> Flask:
    app = Flask(__name__)
    state = session or KitbashSession()
    lock = threading.Lock()

    @app.errorhandler(RequestError)
    def bad_request(exc: RequestError) -> Any:
        return _error(str(exc), 400)

    def _tree_payload() -> Dict[str, Any]:
        state.process_imports()
        return {"nodes": state.tree.describe(), "selected": state.selected_id}

    @app.route("/tree")
    def tree() -> Any:
        with lock:
            return jsonify(_tree_payload())

    @app.route("/parts", methods=["POST"])
    def upload_parts() -> Any:
        files = request.files.getlist("files")
        if not files:
            return _error("No files uploaded under 'files'.", 400)
        with lock:
            for upload in files:
                state.import_bytes(upload.filename or "part", upload.read())
        return jsonify({"queued": len(files)}), 202

    @app.route("/groups", methods=["POST"])
    def add_group() -> Any:
        payload = _json_object()
        with lock:
            state.process_imports()
            group = state.add_group(str(payload.get("name", "Group")))
            return jsonify(describe_node(group)), 201

    @app.route("/select", methods=["POST"])
    def select() -> Any:
        payload = _json_object()
        with lock:
            node = state.select(payload.get("id"))
            return jsonify({"selected": node.id if node is not None else None})

    @app.route("/nodes/<int:node_id>", methods=["PATCH"])
    def update_node(node_id: int) -> Any:
        payload = _json_object()
        offset = _parse_offset(payload["offset"]) if "offset" in payload else None
        scale = _bounded(payload["scale"], "scale", 0.0, MAX_SCALE) if "scale" in payload else None
        with lock:
            state.process_imports()
            if not state.update_transform(node_id, offset=offset, scale=scale):
                return _error(f"Node {node_id} not found.", 404)
            if "visible" in payload:
                state.set_visible(node_id, bool(payload["visible"]))
            if "name" in payload:
                state.rename(node_id, str(payload["name"]))
            return jsonify(describe_node(state.find(node_id)))

    @app.route("/nodes/<int:node_id>/move", methods=["POST"])
    def move_node(node_id: int) -> Any:
        payload = _json_object()
        with lock:
            state.process_imports()
            if state.find(node_id) is None:
                return _error(f"Node {node_id} not found.", 404)
            try:
                moved = state.move(node_id, payload.get("direction", ""))
            except ValueError as exc:
                return _error(str(exc), 400)
            if not moved:
                return _error("Node is already at the end of its sequence.", 409)
            return jsonify(_tree_payload())

    @app.route("/nodes/<int:node_id>/snap", methods=["POST"])
    def snap_node(node_id: int) -> Any:
        with lock:
            if not state.snap_to_pixel(node_id):
                return _error(f"Node {node_id} not found.", 404)
            return jsonify(describe_node(state.find(node_id)))

    @app.route("/nodes/<int:node_id>/reset", methods=["POST"])
    def reset_node(node_id: int) -> Any:
        with lock:
            if not state.reset_transform(node_id):
                return _error(f"Node {node_id} not found.", 404)
            return jsonify(describe_node(state.find(node_id)))

    @app.route("/nodes/<int:node_id>", methods=["DELETE"])
    def delete_node(node_id: int) -> Any:
        with lock:
            state.process_imports()
            if not state.delete(node_id):
                return _error(f"Node {node_id} not found.", 404)
            return "", 204

    @app.route("/settings", methods=["POST"])
    def settings() -> Any:
        payload = _json_object()
        changes: Dict[str, Any] = {}
        try:
            for key in ("canvas_width", "canvas_height", "export_scale"):
                if key in payload:
                    changes[key] = int(payload[key])
            if "background" in payload:
                changes["background"] = parse_color(payload["background"])
            with lock:
                config = state.configure(**changes)
        except (TypeError, ValueError, OverflowError) as exc:
            return _error(str(exc), 400)
        return jsonify(
            {
                "canvas_width": config.canvas_width,
                "canvas_height": config.canvas_height,
                "background": list(config.background),
                "export_scale": config.export_scale,
            }
        )

    @app.route("/composite.png")
    def composite_png() -> Any:
        scaled = request.args.get("scaled") == "1"
        with lock:
            pixels = state.composite(export_scale=state.config.export_scale if scaled else 1)
        return _png_response(pixels)

    @app.route("/parts/<int:index>.png")
    def part_png(index: int) -> Any:
        with lock:
            items = state.flatten()
            if not 0 <= index < len(items):
                return _error(f"No visible part at index {index}.", 404)
            pixels = render_single_part(state.config.canvas_size, items[index], state.config.export_scale)
        return _png_response(pixels)

    @app.route("/metadata")
    def metadata() -> Any:
        with lock:
            return jsonify(state.metadata_document())

    @app.route("/export.zip")
    def export_zip() -> Any:
        with lock:
            data = state.export_archive()
            name = state.config.archive_name
        return send_file(BytesIO(data), mimetype="application/zip", as_attachment=True, download_name=name)

    @app.route("/status")
    def status() -> Any:
        with lock:
            state.process_imports()
            payload = {
                "pending_imports": state.imports.pending(),
                "failures": [
                    {"name": failure.name, "reason": failure.reason} for failure in state.import_failures()
                ],
                "nodes": len(state.tree),
                "visible_parts": len(state.flatten()),
                "selected": state.selected_id,
                "canvas": list(state.config.canvas_size),
                "export_scale": state.config.export_scale,
            }
        return jsonify(payload)

    return app
