"""
SkinAI — メインアプリケーション
Flask web application for the AI skin analysis funnel.

Architecture: Camera capture is handled client-side via WebRTC/getUserMedia.
Frames are sent as base64 data URLs from the browser canvas, uploads as
multipart files. The server validates the image, tracks the capture flow,
calls the analysis service once per user action and hands the result to
the results page through the session.
"""
import logging
import secrets

from flask import (
    Flask, render_template, request, jsonify,
    session, redirect, url_for, Response,
)
from werkzeug.exceptions import RequestEntityTooLarge

import config
from modules import vlm
from modules.capture import CAPTURED, InvalidTransition
from modules.catalog import SKIN_TYPE_FILTERS, search_products, recommend_products
from modules.imaging import ImageRejected, load_data_url, load_image
from modules.report import build_report
from modules.schema import AnalysisError, IncompleteAnalysisError
from modules.storage import (
    init_db,
    get_handoff,
    get_or_create_handoff,
    load_flow,
    save_flow,
    store_result,
    get_result,
    get_image,
    discard_handoff,
    count_active_handoffs,
)

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object(config)
init_db(app)

NO_IMAGE_MESSAGE = "Please capture a photo or upload an image first."

MARKETING_STATS = [
    {"value": "50,000+", "label": "Happy Users"},
    {"value": "95%", "label": "Accuracy Rate"},
    {"value": "30 sec", "label": "Analysis Time"},
    {"value": "500+", "label": "Products"},
]


def _session_key(create: bool = False) -> str:
    key = session.get("handoff", "")
    if not key and create:
        key = secrets.token_hex(16)
        session["handoff"] = key
    return key


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _analysis_status(error: AnalysisError) -> int:
    if isinstance(error, vlm.AnalysisNotConfigured):
        return 503
    if isinstance(error, (vlm.MalformedAnalysisError, IncompleteAnalysisError)):
        return 422
    return 502


def _update_flow(action):
    """Load this session's flow, apply `action`, persist and report it."""
    record = get_or_create_handoff(_session_key(create=True))
    flow = load_flow(record)
    action(flow)
    save_flow(record, flow)
    return jsonify({"success": True, "flow": flow.to_dict()})


@app.errorhandler(InvalidTransition)
def invalid_transition(e):
    return _error(str(e), 409)


@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    return _error("Image size too large. Please use a smaller image.", 413)


# ── ページルート ──

@app.route("/")
def index():
    """ランディングページ"""
    return render_template(
        "index.html",
        stats=MARKETING_STATS,
        active_page="home",
    )


@app.route("/analysis")
def analysis_page():
    """キャプチャ / アップロード画面"""
    record = get_handoff(_session_key())
    flow = load_flow(record).to_dict() if record else None
    return render_template(
        "analysis.html",
        flow=flow,
        max_image_bytes=config.MAX_IMAGE_BYTES,
        active_page="analysis",
    )


@app.route("/results")
def results_page():
    """結果画面"""
    result = get_result(_session_key())
    if result is None:
        return redirect(url_for("analysis_page"))
    return render_template(
        "results.html",
        report=build_report(result),
        recommendations=recommend_products(result),
        active_page="results",
    )


@app.route("/products")
def products_page():
    """商品一覧"""
    query = request.args.get("q", "")
    skin_type = request.args.get("skin_type", "All")
    if skin_type not in SKIN_TYPE_FILTERS:
        skin_type = "All"
    return render_template(
        "products.html",
        products=search_products(query, skin_type),
        query=query,
        skin_type=skin_type,
        filters=SKIN_TYPE_FILTERS,
        active_page="products",
    )


# ── キャプチャフロー API ──

@app.route("/api/flow")
def flow_state():
    record = get_handoff(_session_key())
    if record is None:
        return jsonify({"success": True, "flow": {
            "state": "idle", "method": None, "has_image": False,
            "can_analyze": False, "error": None,
        }})
    return jsonify({"success": True, "flow": load_flow(record).to_dict()})


@app.route("/api/flow/method", methods=["POST"])
def select_method():
    data = request.get_json(silent=True) or {}
    method = data.get("method", "")
    if method not in ("camera", "upload"):
        return _error("Unknown capture method: use 'camera' or 'upload'", 400)
    return _update_flow(lambda flow: flow.select_method(method))


@app.route("/api/flow/permission", methods=["POST"])
def camera_permission():
    data = request.get_json(silent=True) or {}
    granted = bool(data.get("granted", False))
    reason = data.get("reason") or None
    if not granted:
        logger.info("Camera permission denied: %s", reason)
    return _update_flow(lambda flow: flow.permission_result(granted, reason))


@app.route("/api/flow/retake", methods=["POST"])
def retake():
    return _update_flow(lambda flow: flow.retake())


@app.route("/api/flow/cancel", methods=["POST"])
def cancel():
    return _update_flow(lambda flow: flow.cancel())


@app.route("/capture", methods=["POST"])
def capture():
    """ブラウザのカメラフレームを受け取る"""
    data = request.get_json(silent=True)
    if not data:
        return _error("No image data received", 400)

    try:
        image = load_data_url(data.get("image", ""), mirror=bool(data.get("mirror", False)))
    except ImageRejected as e:
        return _error(str(e), 400)

    return _update_flow(lambda flow: flow.capture(image))


@app.route("/upload", methods=["POST"])
def upload():
    """アップロード画像を受け取る"""
    file = request.files.get("file")
    if file is None or not file.filename:
        return _error(NO_IMAGE_MESSAGE, 400)

    try:
        image = load_image(file.read(), source="upload")
    except ImageRejected as e:
        logger.info("Rejected upload %r: %s", file.filename, e)
        return _error(str(e), 400)

    return _update_flow(lambda flow: flow.accept_upload(image))


# ── 解析 API ──

@app.route("/analyze", methods=["POST"])
def analyze():
    """確定した画像を解析サービスへ送る"""
    record = get_handoff(_session_key())
    if record is None:
        return _error(NO_IMAGE_MESSAGE, 409)

    flow = load_flow(record)
    if not flow.can_analyze:
        return _error(NO_IMAGE_MESSAGE, 409)

    if flow.state == CAPTURED:
        flow.confirm()
        save_flow(record, flow)

    try:
        result = vlm.analyze_skin(flow.image)
    except AnalysisError as e:
        logger.warning("Analysis failed: %s", e)
        flow.reopen(e.message)
        save_flow(record, flow)
        return _error(e.message, _analysis_status(e))

    store_result(record, result)
    return jsonify({
        "success": True,
        "analysis_id": result.analysis_id,
        "redirect": url_for("results_page"),
    })


@app.route("/api/result")
def result_json():
    result = get_result(_session_key())
    if result is None:
        return _error("No analysis result in this session", 404)
    return jsonify(result.to_dict())


@app.route("/image")
def serve_image():
    """このセッションの元画像を配信する"""
    found = get_image(_session_key())
    if found is None:
        return "No image in this session", 404
    data, mimetype = found
    return Response(data, mimetype=mimetype, headers={"Cache-Control": "no-store"})


@app.route("/api/session", methods=["DELETE"])
def discard_session():
    key = _session_key()
    removed = discard_handoff(key) if key else False
    session.pop("handoff", None)
    return jsonify({"success": True, "discarded": removed})


@app.route("/health")
def health():
    return jsonify({
        "status": "ok",
        "analysis": vlm.get_analysis_config(),
        "active_sessions": count_active_handoffs(),
    })


# ── 起動 ──

if __name__ == "__main__":
    print("=" * 50)
    print("  SkinAI — AI Skin Analysis")
    print("=" * 50)
    print(f"  解析プロバイダ: {config.ANALYSIS_PROVIDER}")
    print(f"  サーバー: http://localhost:{config.FLASK_PORT}")
    print("  カメラはブラウザ側で制御します (WebRTC)")
    print("=" * 50)

    app.run(
        host=config.FLASK_HOST,
        port=config.FLASK_PORT,
        debug=config.FLASK_DEBUG,
        threaded=True,
    )
