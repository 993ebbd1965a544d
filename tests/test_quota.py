from datetime import timedelta

import pytest

from models import db, Subscription, Swipe, utcnow
from models.subscription import UNLIMITED
from utils import quota
from utils.errors import QuotaExceeded, ValidationError


def subscription_for(user_id):
    return Subscription.query.filter_by(user_id=user_id).first()


class TestCanPerform:

    @pytest.mark.parametrize('tier', ['premium', 'premium_plus'])
    def test_paid_tiers_are_always_allowed(self, tier):
        sub = Subscription(tier=tier, is_active=True, daily_swipes_remaining=0, daily_messages_remaining=0)
        assert quota.can_perform('swipe', sub)
        assert quota.can_perform('message', sub)

    @pytest.mark.parametrize('remaining, allowed', [
        (UNLIMITED, True),
        (None, True),
        (0, False),
        (1, True),
        (20, True),
    ])
    def test_free_tier_depends_on_remaining(self, remaining, allowed):
        sub = Subscription(tier='free', is_active=True, daily_swipes_remaining=remaining)
        assert quota.can_perform('swipe', sub) is allowed

    def test_missing_subscription_is_refused(self):
        assert quota.can_perform('message', None) is False

    def test_unknown_action_is_an_error(self):
        with pytest.raises(ValidationError):
            quota.can_perform('superpower', Subscription(tier='free', is_active=True))


class TestConsume:

    def test_decrements_free_counter(self, app, make_user):
        make_user('alice')

        quota.consume('message', 'alice')
        db.session.commit()

        assert subscription_for('alice').daily_messages_remaining == 4

    def test_refuses_at_zero_without_going_negative(self, app, make_user):
        make_user('alice')
        sub = subscription_for('alice')
        sub.daily_messages_remaining = 0
        db.session.commit()

        with pytest.raises(QuotaExceeded) as excinfo:
            quota.consume('message', 'alice')
        db.session.rollback()

        assert excinfo.value.status_code == 403
        assert excinfo.value.details['requires_upgrade'] is True
        assert subscription_for('alice').daily_messages_remaining == 0

    def test_paid_tier_is_not_decremented(self, app, make_user):
        make_user('alice', tier='premium')

        for _ in range(30):
            quota.consume('swipe', 'alice')
        db.session.commit()

        assert subscription_for('alice').daily_swipes_remaining == UNLIMITED

    def test_elapsed_window_is_refilled_before_spending(self, app, make_user):
        make_user('alice')
        sub = subscription_for('alice')
        sub.daily_swipes_remaining = 0
        sub.last_swipe_reset = utcnow() - timedelta(hours=25)
        db.session.commit()

        quota.consume('swipe', 'alice')
        db.session.commit()

        sub = subscription_for('alice')
        assert sub.daily_swipes_remaining == 19
        assert sub.last_swipe_reset > utcnow() - timedelta(minutes=1)

    def test_window_not_yet_elapsed_stays_empty(self, app, make_user):
        make_user('alice')
        sub = subscription_for('alice')
        sub.daily_swipes_remaining = 0
        sub.last_swipe_reset = utcnow() - timedelta(hours=23)
        db.session.commit()

        with pytest.raises(QuotaExceeded):
            quota.consume('swipe', 'alice')

    def test_lapsed_paid_period_is_downgraded(self, app, make_user):
        make_user('alice', tier='premium_plus')
        sub = subscription_for('alice')
        sub.current_period_end = utcnow() - timedelta(minutes=5)
        db.session.commit()

        sub = quota.load_entitlements('alice')
        db.session.commit()

        assert sub.tier == 'free'
        assert sub.daily_swipes_remaining == 20
        assert sub.daily_messages_remaining == 5


class TestSwipeQuotaOverHttp:

    def test_last_swipe_is_spent_then_refused(self, client, make_user, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        make_user('carl', gender='male')
        sub = subscription_for('alice')
        sub.daily_swipes_remaining = 1
        db.session.commit()

        first = client.post('/swipes', json={'target_user_id': 'bob', 'direction': 'like'},
                            headers=auth_header('alice'))
        second = client.post('/swipes', json={'target_user_id': 'carl', 'direction': 'like'},
                             headers=auth_header('alice'))

        assert first.status_code == 201
        assert first.get_json()['data']['swipes_remaining'] == 0
        assert second.status_code == 403
        assert second.get_json()['error']['details'] == {'requires_upgrade': True, 'action': 'swipe'}
        assert Swipe.query.filter_by(swiper_id='alice').count() == 1
        assert subscription_for('alice').daily_swipes_remaining == 0

    def test_subscription_status_reports_remaining(self, client, make_user, auth_header):
        make_user('alice')

        resp = client.get('/payments/subscription/status', headers=auth_header('alice'))

        data = resp.get_json()['data']
        assert data['tier'] == 'free'
        assert data['remaining'] == {'swipe': 20, 'message': 5}
        assert data['latest_payment'] is None

    def test_premium_status_reports_unlimited(self, client, make_user, auth_header):
        make_user('alice', tier='premium')

        data = client.get('/payments/subscription/status', headers=auth_header('alice')).get_json()['data']

        assert data['tier'] == 'premium'
        assert data['is_paid'] is True
        assert data['remaining'] == {'swipe': UNLIMITED, 'message': UNLIMITED}
