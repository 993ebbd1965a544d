from datetime import timedelta
from unittest.mock import patch

import pytest

from models import db, PasswordResetToken, utcnow
from utils import otp
from utils.otp import GENERIC_SEND_MESSAGE, MAX_ATTEMPTS
from conftest import gateway_response


@pytest.fixture
def mailer():
    with patch('utils.otp.send_email', return_value=True) as send_email:
        yield send_email


def request_code(client, email, code='123456'):
    with patch('utils.otp.generate_otp', return_value=code):
        return client.post('/auth/otp/send', json={'email': email})


def verify_code(client, email, code):
    return client.post('/auth/otp/verify', json={'email': email, 'otp': code})


class TestSendOTP:

    def test_known_email_gets_code_and_only_digest_is_stored(self, client, make_user, mailer):
        make_user('alice')

        resp = request_code(client, ' Alice@Example.com ', code='482913')

        assert resp.status_code == 200
        assert resp.get_json()['message'] == GENERIC_SEND_MESSAGE
        mailer.assert_called_once()
        to, _subject, html = mailer.call_args[0]
        assert to == 'alice@example.com'
        assert '482913' in html

        record = PasswordResetToken.query.one()
        assert record.email == 'alice@example.com'
        assert record.otp_hash != '482913'
        assert len(record.otp_hash) == 64

    def test_unknown_email_gets_same_answer_and_nothing_stored(self, client, mailer):
        resp = request_code(client, 'ghost@example.com')

        assert resp.status_code == 200
        assert resp.get_json()['message'] == GENERIC_SEND_MESSAGE
        mailer.assert_not_called()
        assert PasswordResetToken.query.count() == 0

    def test_new_code_supersedes_previous(self, client, make_user, mailer):
        make_user('alice')

        request_code(client, 'alice@example.com', code='111111')
        request_code(client, 'alice@example.com', code='222222')

        assert verify_code(client, 'alice@example.com', '111111').status_code == 400
        assert verify_code(client, 'alice@example.com', '222222').status_code == 200

    def test_invalid_email_is_rejected(self, client, mailer):
        assert client.post('/auth/otp/send', json={'email': 'not-an-email'}).status_code == 400

    def test_generated_codes_are_six_digits(self):
        code = otp.generate_otp()
        assert len(code) == 6
        assert code.isdigit()


class TestVerifyOTP:

    def test_correct_code_returns_reset_token_once(self, client, make_user, mailer):
        make_user('alice')
        request_code(client, 'alice@example.com', code='654321')

        resp = verify_code(client, 'alice@example.com', '654321')

        assert resp.status_code == 200
        assert resp.get_json()['data']['reset_token']
        assert verify_code(client, 'alice@example.com', '654321').status_code == 400

    def test_expired_code_is_rejected(self, client, make_user, mailer):
        make_user('alice')
        request_code(client, 'alice@example.com', code='654321')
        record = PasswordResetToken.query.one()
        record.otp_expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        resp = verify_code(client, 'alice@example.com', '654321')

        assert resp.status_code == 400
        assert PasswordResetToken.query.one().used is True

    def test_code_is_burned_after_too_many_wrong_attempts(self, client, make_user, mailer):
        make_user('alice')
        request_code(client, 'alice@example.com', code='654321')

        for _ in range(MAX_ATTEMPTS):
            assert verify_code(client, 'alice@example.com', '000000').status_code == 400

        record = PasswordResetToken.query.one()
        assert record.attempts == MAX_ATTEMPTS
        assert record.used is True
        assert verify_code(client, 'alice@example.com', '654321').status_code == 400


class TestResetPassword:

    def issue_token(self, client, make_user):
        make_user('alice')
        request_code(client, 'alice@example.com', code='654321')
        return verify_code(client, 'alice@example.com', '654321').get_json()['data']['reset_token']

    def test_reset_updates_identity_provider_and_consumes_token(self, client, make_user, mailer):
        token = self.issue_token(client, make_user)

        with patch('utils.identity.requests.put', return_value=gateway_response(200, {'id': 'alice'})) as put:
            resp = client.post('/auth/password/reset', json={'reset_token': token, 'new_password': 'sunrise-42'})
            again = client.post('/auth/password/reset', json={'reset_token': token, 'new_password': 'sunrise-43'})

        assert resp.status_code == 200
        assert again.status_code == 400
        put.assert_called_once()
        assert put.call_args[0][0] == 'https://identity.test/auth/v1/admin/users/alice'
        assert put.call_args.kwargs['json'] == {'password': 'sunrise-42'}
        assert put.call_args.kwargs['headers']['apikey'] == 'service-role-key'

    def test_short_password_is_rejected(self, client, make_user, mailer):
        token = self.issue_token(client, make_user)

        with patch('utils.identity.requests.put') as put:
            resp = client.post('/auth/password/reset', json={'reset_token': token, 'new_password': '123'})

        assert resp.status_code == 400
        put.assert_not_called()

    def test_expired_token_is_rejected(self, client, make_user, mailer):
        token = self.issue_token(client, make_user)
        record = PasswordResetToken.query.one()
        record.token_expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        with patch('utils.identity.requests.put') as put:
            resp = client.post('/auth/password/reset', json={'reset_token': token, 'new_password': 'sunrise-42'})

        assert resp.status_code == 400
        put.assert_not_called()

    def test_identity_failure_keeps_token_usable(self, client, make_user, mailer):
        token = self.issue_token(client, make_user)

        with patch('utils.identity.requests.put', return_value=gateway_response(500, {})):
            failed = client.post('/auth/password/reset', json={'reset_token': token, 'new_password': 'sunrise-42'})
        with patch('utils.identity.requests.put', return_value=gateway_response(200, {})):
            retried = client.post('/auth/password/reset', json={'reset_token': token, 'new_password': 'sunrise-42'})

        assert failed.status_code == 502
        assert retried.status_code == 200

    def test_unknown_token_is_rejected(self, client):
        resp = client.post('/auth/password/reset', json={'reset_token': 'nope', 'new_password': 'sunrise-42'})
        assert resp.status_code == 400
