"""
セッション受け渡しモジュール
Session handoff between the analysis page and the results page.

The browser only carries a random key in its signed session cookie; the
flow state, source image and analysis result live in SQLite until the
record expires or is discarded.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import config
from modules.capture import CONFIRMED, CaptureFlow
from modules.imaging import ImagePayload
from modules.models import db, HandoffRecord
from modules.schema import AnalysisResult

logger = logging.getLogger(__name__)


def init_db(app):
    """Initialize DB and purge handoffs that expired while the server was down."""
    db.init_app(app)
    with app.app_context():
        db.create_all()
        purge_expired()


def _cutoff() -> datetime:
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now - timedelta(minutes=config.HANDOFF_TTL_MINUTES)


def purge_expired() -> int:
    removed = HandoffRecord.query.filter(
        HandoffRecord.updated_at < _cutoff()
    ).delete(synchronize_session=False)
    db.session.commit()
    if removed:
        logger.info("Purged %d expired handoff record(s)", removed)
    return removed


def get_handoff(session_key: str) -> Optional[HandoffRecord]:
    if not session_key:
        return None
    record = HandoffRecord.query.filter_by(session_key=session_key).first()
    if record is None:
        return None
    if record.updated_at < _cutoff():
        db.session.delete(record)
        db.session.commit()
        return None
    return record


def get_or_create_handoff(session_key: str) -> HandoffRecord:
    record = get_handoff(session_key)
    if record is not None:
        return record

    purge_expired()
    record = HandoffRecord(session_key=session_key)
    db.session.add(record)
    db.session.commit()
    return record


def load_flow(record: HandoffRecord) -> CaptureFlow:
    image = None
    if record.image_data is not None:
        image = ImagePayload(
            data=record.image_data,
            mime_type=record.image_mime or "image/jpeg",
            width=record.image_width or 0,
            height=record.image_height or 0,
            source=record.image_source or "upload",
        )
    return CaptureFlow(
        state=record.state,
        method=record.method,
        image=image,
        error=record.error,
    )


def save_flow(record: HandoffRecord, flow: CaptureFlow):
    record.state = flow.state
    record.method = flow.method
    record.error = flow.error

    image = flow.image
    record.image_data = image.data if image else None
    record.image_mime = image.mime_type if image else None
    record.image_source = image.source if image else None
    record.image_width = image.width if image else 0
    record.image_height = image.height if image else 0

    # a new image invalidates the previous result
    if image is None or flow.state != CONFIRMED:
        record.result_json = None
    record.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
    db.session.commit()


def store_result(record: HandoffRecord, result: AnalysisResult):
    record.result_json = json.dumps(result.to_dict())
    record.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
    db.session.commit()


def get_result(session_key: str) -> Optional[AnalysisResult]:
    record = get_handoff(session_key)
    if record is None or not record.result_json:
        return None
    return AnalysisResult.model_validate(json.loads(record.result_json))


def get_image(session_key: str) -> Optional[tuple[bytes, str]]:
    record = get_handoff(session_key)
    if record is None or record.image_data is None:
        return None
    return record.image_data, record.image_mime or "image/jpeg"


def discard_handoff(session_key: str) -> bool:
    record = HandoffRecord.query.filter_by(session_key=session_key).first()
    if record is None:
        return False
    db.session.delete(record)
    db.session.commit()
    return True


def count_active_handoffs() -> int:
    return HandoffRecord.query.filter(HandoffRecord.updated_at >= _cutoff()).count()
