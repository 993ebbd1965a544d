from flask import Flask
from flask_cors import CORS
from flask_restful import Api, Resource
from flask_migrate import Migrate
from models import db
from config import Config
from utils.cache import init_redis
import logging

migrate = Migrate()


class HealthCheck(Resource):
    def get(self):
        return {"status": "ok"}


def register_routes(api):
    from resources.webhooks import IdentityWebhook
    from resources.auth import SendOTPResource, VerifyOTPResource, ResetPasswordResource
    from resources.users import (
        CurrentUserResource,
        OnboardingResource,
        UserProfileResource,
        ProfilePhotosResource,
        ProfilePhotoResource,
        VerificationResource
    )
    from resources.match import (
        DiscoverResource,
        SwipeResource,
        UserMatchesResource,
        MatchDetailResource,
        ReceivedLikesResource
    )
    from resources.messages import (
        MessageResource,
        MatchMessagesResource,
        UnreadMessagesResource,
        MarkMessagesReadResource,
        MessageStreamResource
    )
    from resources.payments import (
        InitializePaymentResource,
        VerifyPaymentResource,
        PaystackWebhookResource,
        SubscriptionStatusResource,
        PaymentPlansResource
    )
    from resources.safety import BlockListResource, BlockResource, ReportResource
    from resources.admin import (
        AdminStatsResource,
        AdminUsersResource,
        AdminVerificationsResource,
        AdminVerificationDecisionResource,
        AdminReportsResource,
        AdminReportDecisionResource,
        AdminSuspendUserResource,
        AdminMessagesResource,
        AdminAnnouncementsResource,
        InboxResource,
        InboxMessageReadResource,
        InboxAnnouncementDismissResource
    )

    api.add_resource(HealthCheck, '/health')

    # Identity and password reset
    api.add_resource(IdentityWebhook, '/webhooks/identity')
    api.add_resource(SendOTPResource, '/auth/otp/send')
    api.add_resource(VerifyOTPResource, '/auth/otp/verify')
    api.add_resource(ResetPasswordResource, '/auth/password/reset')

    # Profile routes
    api.add_resource(CurrentUserResource, '/users/me')
    api.add_resource(OnboardingResource, '/users/me/profile')
    api.add_resource(ProfilePhotosResource, '/users/me/photos')
    api.add_resource(ProfilePhotoResource, '/users/me/photos/<uuid:photo_id>')
    api.add_resource(VerificationResource, '/users/me/verification')
    api.add_resource(UserProfileResource, '/users/<string:user_id>')

    # Payment routes
    api.add_resource(PaymentPlansResource, '/payments/plans')
    api.add_resource(InitializePaymentResource, '/payments/initialize')
    api.add_resource(VerifyPaymentResource, '/payments/verify/<string:reference>')
    api.add_resource(PaystackWebhookResource, '/webhooks/paystack')
    api.add_resource(SubscriptionStatusResource, '/payments/subscription/status')

    # Discovery and matching routes
    api.add_resource(DiscoverResource, '/discover')
    api.add_resource(SwipeResource, '/swipes')
    api.add_resource(UserMatchesResource, '/matches')
    api.add_resource(MatchDetailResource, '/matches/<uuid:match_id>')
    api.add_resource(ReceivedLikesResource, '/likes')

    # Message routes
    api.add_resource(MessageResource, '/messages')
    api.add_resource(MatchMessagesResource, '/messages/match/<uuid:match_id>')
    api.add_resource(MarkMessagesReadResource, '/messages/match/<uuid:match_id>/read')
    api.add_resource(MessageStreamResource, '/messages/match/<uuid:match_id>/stream')
    api.add_resource(UnreadMessagesResource, '/messages/unread')

    # Safety routes
    api.add_resource(BlockListResource, '/blocks')
    api.add_resource(BlockResource, '/blocks/<string:user_id>')
    api.add_resource(ReportResource, '/reports')

    # Admin routes
    api.add_resource(AdminStatsResource, '/admin/stats')
    api.add_resource(AdminUsersResource, '/admin/users')
    api.add_resource(AdminVerificationsResource, '/admin/verifications')
    api.add_resource(AdminVerificationDecisionResource, '/admin/verifications/<uuid:profile_id>')
    api.add_resource(AdminReportsResource, '/admin/reports')
    api.add_resource(AdminReportDecisionResource, '/admin/reports/<uuid:report_id>')
    api.add_resource(AdminSuspendUserResource, '/admin/users/<string:user_id>/suspend')
    api.add_resource(AdminMessagesResource, '/admin/messages')
    api.add_resource(AdminAnnouncementsResource, '/admin/announcements')
    api.add_resource(InboxResource, '/inbox')
    api.add_resource(InboxMessageReadResource, '/inbox/<uuid:message_id>/read')
    api.add_resource(InboxAnnouncementDismissResource, '/inbox/announcements/<uuid:announcement_id>/dismiss')


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    CORS(app)

    db.init_app(app)
    migrate.init_app(app, db)
    init_redis(app)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s %(message)s'
    )

    api = Api(app)
    register_routes(api)

    from commands import register_commands
    register_commands(app)

    return app


app = create_app()

if __name__ == '__main__':
    app.run(debug=True)
