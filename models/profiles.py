import uuid
from datetime import date
from sqlalchemy import Column, String, Integer, Text, Boolean, Date, DateTime, Index, JSON, Uuid
from sqlalchemy_serializer import SerializerMixin
from .base import db, utcnow

GENDERS = ('male', 'female', 'non_binary', 'other')
VERIFICATION_STATUSES = ('none', 'submitted', 'approved', 'rejected')


class Profile(db.Model, SerializerMixin):
    __tablename__ = "profiles"

    # Primary Key
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Foreign Key to User
    user_id = Column(String, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Identity
    display_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(db.Enum(*GENDERS, name='gender_type'), nullable=False)
    looking_for = Column(JSON, nullable=True)  # list of genders
    bio = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    job_title = Column(String(100), nullable=True)
    height_cm = Column(Integer, nullable=True)

    # Discovery preferences
    min_age = Column(Integer, nullable=True)
    max_age = Column(Integer, nullable=True)

    # Visibility / moderation
    is_visible = Column(Boolean, nullable=False, default=True)
    is_profile_complete = Column(Boolean, nullable=False, default=False)
    is_suspended = Column(Boolean, nullable=False, default=False)
    suspension_reason = Column(String(500), nullable=True)

    # Verification
    is_verified = Column(Boolean, nullable=False, default=False)
    verification_status = Column(db.Enum(*VERIFICATION_STATUSES, name='verification_status'),
                                 nullable=False, default='none')
    verification_submitted_at = Column(DateTime, nullable=True)
    verification_reviewed_at = Column(DateTime, nullable=True)
    verification_reviewed_by = Column(String, nullable=True)

    last_active = Column(DateTime, default=utcnow)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    photos = db.relationship(
        'ProfilePhoto',
        backref='profile',
        cascade='all, delete-orphan',
        order_by='ProfilePhoto.display_order',
        lazy='selectin',
    )

    # Indexes
    __table_args__ = (
        Index("idx_profile_discovery", "is_visible", "is_profile_complete", "is_suspended"),
        Index("idx_profile_last_active", "last_active"),
        Index("idx_profile_verification", "verification_status"),
    )

    serialize_rules = ('-photos.profile',)

    @property
    def age(self):
        if not self.date_of_birth:
            return None
        today = date.today()
        dob = self.date_of_birth
        return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))

    @property
    def primary_photo(self):
        for photo in self.photos:
            if photo.is_primary:
                return photo
        return self.photos[0] if self.photos else None

    @property
    def is_discoverable(self):
        return bool(self.is_visible and self.is_profile_complete and not self.is_suspended)

    def public_dict(self):
        return {
            'user_id': self.user_id,
            'display_name': self.display_name,
            'age': self.age,
            'gender': self.gender,
            'bio': self.bio,
            'city': self.city,
            'job_title': self.job_title,
            'height_cm': self.height_cm,
            'is_verified': self.is_verified,
            'photos': [photo.photo_url for photo in self.photos],
        }

    def __repr__(self):
        return f'<Profile {self.user_id}>'


class ProfilePhoto(db.Model, SerializerMixin):
    __tablename__ = "profile_photos"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id = Column(Uuid, db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    photo_url = Column(String(500), nullable=False)
    storage_path = Column(String(500), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)

    serialize_only = ('id', 'photo_url', 'display_order', 'is_primary')
