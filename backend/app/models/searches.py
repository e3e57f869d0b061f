from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, utcnow


class SavedSearch(db.Model):
    """
    Named set of advanced-search filters owned by one user.

    search_params holds the raw filter mapping (query-string keys to values)
    so it can be replayed against /api/search/advanced/<type>.
    """
    __tablename__ = "saved_searches"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    document_type = db.Column(db.String(32), nullable=False)
    search_params = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "document_type": self.document_type,
            "search_params": self.search_params or {},
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
