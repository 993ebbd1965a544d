import uuid
from sqlalchemy import Uuid
from .base import db, utcnow
from sqlalchemy_serializer import SerializerMixin


class Message(db.Model, SerializerMixin):
    __tablename__ = "messages"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    match_id = db.Column(Uuid, db.ForeignKey('matches.id', ondelete='CASCADE'), nullable=False)
    sender_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.Index('idx_match_created', 'match_id', 'created_at'),
        db.Index('idx_sender_created', 'sender_id', 'created_at'),
    )

    def to_payload(self):
        return {
            'id': str(self.id),
            'match_id': str(self.match_id),
            'sender_id': self.sender_id,
            'content': self.content,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
