from .base import db, metadata, utcnow
from .users import User, UserRole
from .profiles import Profile, ProfilePhoto
from .matches import Match
from .swipes import Swipe
from .messages import Message
from .payments import Payment
from .subscription import Subscription
from .password_reset import PasswordResetToken
from .moderation import BlockedUser, Report, AdminMessage, AdminAnnouncement, DismissedAnnouncement

__all__ = [
    'db',
    'metadata',
    'utcnow',
    'User',
    'UserRole',
    'Profile',
    'ProfilePhoto',
    'Match',
    'Swipe',
    'Message',
    'Payment',
    'Subscription',
    'PasswordResetToken',
    'BlockedUser',
    'Report',
    'AdminMessage',
    'AdminAnnouncement',
    'DismissedAnnouncement',
]
