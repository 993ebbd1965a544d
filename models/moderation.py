import uuid
from sqlalchemy import Uuid
from sqlalchemy_serializer import SerializerMixin
from .base import db, utcnow

REPORT_STATUSES = ('pending', 'resolved', 'dismissed')
ANNOUNCEMENT_TARGETS = ('all', 'free', 'premium', 'premium_plus')


class BlockedUser(db.Model, SerializerMixin):
    __tablename__ = "blocked_users"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    blocker_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    blocked_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    reason = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    serialize_only = ('blocked_id', 'reason', 'created_at')

    __table_args__ = (
        db.UniqueConstraint('blocker_id', 'blocked_id', name='uq_block_pair'),
        db.CheckConstraint('blocker_id != blocked_id', name='check_no_self_block'),
    )


class Report(db.Model, SerializerMixin):
    __tablename__ = "reports"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    reporter_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    reported_user_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    reason = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.Enum(*REPORT_STATUSES, name='report_status'), nullable=False, default='pending')
    reviewed_at = db.Column(db.DateTime, nullable=True)
    reviewed_by = db.Column(db.String, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    serialize_only = (
        'id', 'reporter_id', 'reported_user_id', 'reason', 'description',
        'status', 'reviewed_at', 'reviewed_by', 'created_at',
    )

    __table_args__ = (
        db.Index('idx_reports_status', 'status'),
    )


class AdminMessage(db.Model, SerializerMixin):
    __tablename__ = "admin_messages"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    recipient_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    subject = db.Column(db.String(200), nullable=False, default='Message from BexMatch Team')
    content = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    serialize_only = ('id', 'subject', 'content', 'is_read', 'created_at')


class AdminAnnouncement(db.Model, SerializerMixin):
    __tablename__ = "admin_announcements"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    target_tier = db.Column(db.Enum(*ANNOUNCEMENT_TARGETS, name='announcement_target'), nullable=False, default='all')
    expires_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    serialize_only = ('id', 'title', 'content', 'target_tier', 'expires_at', 'created_at')


class DismissedAnnouncement(db.Model):
    __tablename__ = "dismissed_announcements"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = db.Column(db.String, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    announcement_id = db.Column(
        Uuid, db.ForeignKey('admin_announcements.id', ondelete='CASCADE'), nullable=False
    )
    dismissed_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'announcement_id', name='uq_dismissed_announcement'),
    )
