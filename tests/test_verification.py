import base64
from unittest.mock import MagicMock, patch

import pytest

from models import Profile
from utils.errors import ValidationError
from utils.verification import decode_selfie, parse_verdict, VerificationResult

SELFIE = 'data:image/jpeg;base64,' + base64.b64encode(b'\xff\xd8\xff selfie bytes').decode()


def profile_of(user_id):
    return Profile.query.filter_by(user_id=user_id).first()


def submit(client, auth_header, user_id, selfie=SELFIE):
    return client.post('/users/me/verification', json={'selfie_base64': selfie}, headers=auth_header(user_id))


class TestDecodeSelfie:

    def test_decodes_data_url(self):
        mime_type, raw = decode_selfie('data:image/jpg;base64,' + base64.b64encode(b'abc').decode())
        assert mime_type == 'image/jpeg'
        assert raw == b'abc'

    @pytest.mark.parametrize('value', [
        None,
        'not a data url',
        'data:image/gif;base64,R0lGODlh',
        'data:image/png;base64,***',
    ])
    def test_rejects_bad_input(self, value):
        with pytest.raises(ValidationError):
            decode_selfie(value)

    def test_rejects_oversized_image(self):
        big = 'data:image/png;base64,' + base64.b64encode(b'\0' * (5 * 1024 * 1024 + 1)).decode()
        with pytest.raises(ValidationError):
            decode_selfie(big)


class TestParseVerdict:

    def test_reads_fenced_json(self):
        text = '```json\n{"status": "verified", "confidence": 93, "reason": "Clear live selfie"}\n```'
        assert parse_verdict(text) == VerificationResult('verified', 93, 'Clear live selfie')

    @pytest.mark.parametrize('text', [None, '', 'I think so', '{"status": "maybe"}', '{broken'])
    def test_unusable_answers_are_pending(self, text):
        assert parse_verdict(text).status == 'pending'


class TestSubmitVerification:

    def test_without_ai_key_goes_to_manual_review(self, client, make_user, auth_header):
        make_user('alice')

        resp = submit(client, auth_header, 'alice')

        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'pending'
        profile = profile_of('alice')
        assert profile.verification_status == 'submitted'
        assert profile.is_verified is False
        assert profile.verification_submitted_at is not None

    @pytest.mark.parametrize('verdict, status, verified', [
        ('verified', 'approved', True),
        ('rejected', 'rejected', False),
    ])
    def test_ai_decision_is_recorded(self, app, client, make_user, auth_header, verdict, status, verified):
        app.config['GEMINI_API_KEY'] = 'gemini-test-key'
        make_user('alice')
        model = MagicMock()
        model.generate_content.return_value.text = f'{{"status": "{verdict}", "confidence": 88, "reason": "ok"}}'

        with patch('utils.verification.genai.configure'), \
                patch('utils.verification.genai.GenerativeModel', return_value=model):
            resp = submit(client, auth_header, 'alice')

        assert resp.status_code == 200
        profile = profile_of('alice')
        assert profile.verification_status == status
        assert profile.is_verified is verified
        assert profile.verification_reviewed_by == 'ai'

    def test_model_failure_is_pending(self, app, client, make_user, auth_header):
        app.config['GEMINI_API_KEY'] = 'gemini-test-key'
        make_user('alice')

        with patch('utils.verification.genai.configure'), \
                patch('utils.verification.genai.GenerativeModel', side_effect=RuntimeError('quota')):
            resp = submit(client, auth_header, 'alice')

        assert resp.get_json()['data']['status'] == 'pending'
        assert profile_of('alice').verification_status == 'submitted'

    def test_already_verified_conflicts(self, client, make_user, auth_header):
        make_user('alice', is_verified=True, verification_status='approved')

        assert submit(client, auth_header, 'alice').status_code == 409

    def test_bad_selfie_and_missing_profile(self, client, make_user, auth_header):
        make_user('alice')
        make_user('bob', gender='male', with_profile=False)

        assert submit(client, auth_header, 'alice', selfie='data:text/plain;base64,aGk=').status_code == 400
        assert submit(client, auth_header, 'bob').status_code == 404
