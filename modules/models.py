from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class HandoffRecord(db.Model):
    __tablename__ = 'handoff_records'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    session_key = db.Column(db.String(64), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)
    state = db.Column(db.String(32), default="idle", nullable=False)
    method = db.Column(db.String(16), nullable=True)
    error = db.Column(db.Text, nullable=True)
    image_data = db.Column(db.LargeBinary, nullable=True)
    image_mime = db.Column(db.String(32), nullable=True)
    image_source = db.Column(db.String(16), nullable=True)
    image_width = db.Column(db.Integer, default=0)
    image_height = db.Column(db.Integer, default=0)
    result_json = db.Column(db.Text, nullable=True)
