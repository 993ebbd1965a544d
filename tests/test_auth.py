import json
from unittest.mock import patch

from models import db, User, Subscription
from conftest import make_token, signed_identity_headers


def get_me(client, token):
    return client.get('/users/me', headers={'Authorization': f'Bearer {token}'})


class TestBearerTokens:

    def test_missing_header(self, client):
        resp = client.get('/users/me')

        assert resp.status_code == 401
        assert resp.get_json()['error']['message'] == 'Not authenticated'

    def test_malformed_header(self, client):
        resp = client.get('/users/me', headers={'Authorization': 'Token abc'})
        assert resp.status_code == 401

    def test_expired_token(self, client, make_user):
        make_user('alice')

        resp = get_me(client, make_token('alice', expires_in=-3600))

        assert resp.status_code == 401
        assert resp.get_json()['error']['message'] == 'Token expired'

    def test_wrong_signature_or_audience(self, client, make_user):
        make_user('alice')

        forged = get_me(client, make_token('alice', secret='another-secret-that-is-also-long-enough-0123456789'))
        wrong_audience = get_me(client, make_token('alice', audience='someone-else'))

        assert forged.status_code == 401
        assert forged.get_json()['error']['message'] == 'Invalid token'
        assert wrong_audience.status_code == 401

    def test_missing_subject(self, client):
        resp = get_me(client, make_token('', email='x@example.com'))
        assert resp.status_code == 401

    def test_valid_token_without_email_does_not_create_user(self, client):
        resp = get_me(client, make_token('stranger'))

        assert resp.status_code == 404
        assert db.session.get(User, 'stranger') is None

    def test_email_claim_creates_user_and_free_subscription(self, client):
        token = make_token('carol', email='Carol@Example.com', user_metadata={'full_name': 'Carol A'})

        resp = get_me(client, token)

        assert resp.status_code == 200
        user = db.session.get(User, 'carol')
        assert user.email == 'carol@example.com'
        assert user.name == 'Carol A'
        assert Subscription.query.filter_by(user_id='carol').one().tier == 'free'


class TestIdentityWebhook:

    def post_event(self, client, event, headers=None):
        body = json.dumps(event)
        return client.post('/webhooks/identity', data=body, headers=headers or signed_identity_headers(body))

    def test_user_created(self, client):
        with patch('resources.webhooks.send_email', return_value=True) as send_email:
            resp = self.post_event(client, {
                'type': 'user.created',
                'data': {'id': 'dave', 'email': 'Dave@Example.com', 'user_metadata': {'full_name': 'Dave O'}},
            })

        assert resp.status_code == 201
        user = db.session.get(User, 'dave')
        assert (user.email, user.name) == ('dave@example.com', 'Dave O')
        assert Subscription.query.filter_by(user_id='dave').count() == 1
        send_email.assert_called_once()
        assert send_email.call_args[0][0] == 'dave@example.com'

    def test_user_created_twice_is_harmless(self, client, make_user):
        make_user('dave')

        resp = self.post_event(client, {'type': 'user.created',
                                        'data': {'id': 'dave', 'email': 'dave@example.com'}})

        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'exists'

    def test_email_from_email_addresses(self, client):
        with patch('resources.webhooks.send_email'):
            resp = self.post_event(client, {
                'type': 'user.created',
                'data': {'id': 'erin', 'email_addresses': [{'email_address': 'ERIN@example.com'}]},
            })

        assert resp.status_code == 201
        assert db.session.get(User, 'erin').email == 'erin@example.com'

    def test_user_updated_and_deleted(self, client, make_user):
        make_user('frank', with_profile=False)

        updated = self.post_event(client, {'type': 'user.updated',
                                           'data': {'id': 'frank', 'name': 'Frank Renamed'}})
        assert updated.status_code == 200
        assert db.session.get(User, 'frank').name == 'Frank Renamed'
        assert db.session.get(User, 'frank').email == 'frank@example.com'

        deleted = self.post_event(client, {'type': 'user.deleted', 'data': {'id': 'frank'}})
        assert deleted.status_code == 200
        assert db.session.get(User, 'frank') is None

        again = self.post_event(client, {'type': 'user.deleted', 'data': {'id': 'frank'}})
        assert again.get_json()['data']['status'] == 'already_deleted'

    def test_update_of_unknown_user(self, client):
        resp = self.post_event(client, {'type': 'user.updated', 'data': {'id': 'ghost'}})
        assert resp.status_code == 404

    def test_unknown_event_is_ignored(self, client):
        resp = self.post_event(client, {'type': 'session.created', 'data': {}})

        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'ignored'

    def test_bad_signature_is_rejected(self, client):
        body = json.dumps({'type': 'user.created', 'data': {'id': 'mallory', 'email': 'm@example.com'}})
        headers = signed_identity_headers(body)
        headers['svix-signature'] = 'v1,' + 'A' * 44

        resp = client.post('/webhooks/identity', data=body, headers=headers)

        assert resp.status_code == 400
        assert db.session.get(User, 'mallory') is None

    def test_event_is_read_from_the_signed_body(self, client):
        body = json.dumps({'type': 'user.created', 'data': {'id': 'gina', 'email': 'gina@example.com'}})

        with patch('resources.webhooks.Webhook.verify', return_value=None), \
                patch('resources.webhooks.send_email'):
            resp = client.post('/webhooks/identity', data=body, headers=signed_identity_headers(body))

        assert resp.status_code == 201
        assert db.session.get(User, 'gina').email == 'gina@example.com'

    def test_signed_non_object_payload_is_rejected(self, client):
        body = json.dumps(['user.created'])

        resp = client.post('/webhooks/identity', data=body, headers=signed_identity_headers(body))

        assert resp.status_code == 400
