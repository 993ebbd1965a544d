import uuid

from models import db, Match, Message, Subscription
from models.subscription import UNLIMITED


def send(client, auth_header, sender, match_id, content='hello'):
    return client.post('/messages', json={'match_id': str(match_id), 'content': content},
                       headers=auth_header(sender))


class TestSendMessage:

    def test_participant_can_send_and_spends_quota(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')
        match_id = match.id

        resp = send(client, auth_header, 'alice', match_id, '  hi bob  ')

        assert resp.status_code == 201
        data = resp.get_json()['data']
        assert data['message']['content'] == 'hi bob'
        assert data['message']['sender_id'] == 'alice'
        assert data['messages_remaining'] == 4
        assert Message.query.count() == 1
        assert db.session.get(Match, match_id).last_message_at is not None

    def test_free_user_with_no_messages_left_is_refused(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')
        Subscription.query.filter_by(user_id='alice').first().daily_messages_remaining = 0
        db.session.commit()

        resp = send(client, auth_header, 'alice', match.id)

        assert resp.status_code == 403
        assert resp.get_json()['error']['details']['requires_upgrade'] is True
        assert Message.query.count() == 0
        assert Subscription.query.filter_by(user_id='alice').first().daily_messages_remaining == 0

    def test_paid_sender_is_unlimited(self, client, make_user, make_match, auth_header):
        make_user('alice', tier='premium')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')

        for _ in range(7):
            resp = send(client, auth_header, 'alice', match.id)
            assert resp.status_code == 201

        assert resp.get_json()['data']['messages_remaining'] == UNLIMITED
        assert Message.query.count() == 7

    def test_non_participant_is_forbidden(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        make_user('carol')
        match = make_match('alice', 'bob')

        resp = send(client, auth_header, 'carol', match.id)

        assert resp.status_code == 403
        assert Message.query.count() == 0
        assert Subscription.query.filter_by(user_id='carol').first().daily_messages_remaining == 5

    def test_inactive_match_is_forbidden(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob', is_active=False)

        assert send(client, auth_header, 'alice', match.id).status_code == 403
        assert Message.query.count() == 0

    def test_unknown_match_and_bad_ids(self, client, make_user, auth_header):
        make_user('alice')

        assert send(client, auth_header, 'alice', uuid.uuid4()).status_code == 404
        assert send(client, auth_header, 'alice', 'not-a-uuid').status_code == 400

    def test_content_is_validated(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')

        assert send(client, auth_header, 'alice', match.id, '   ').status_code == 400
        assert send(client, auth_header, 'alice', match.id, 'x' * 2001).status_code == 400
        assert send(client, auth_header, 'alice', match.id, 'x' * 2000).status_code == 201

    def test_suspended_sender_is_forbidden(self, client, make_user, make_match, auth_header):
        make_user('alice', is_suspended=True)
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')

        assert send(client, auth_header, 'alice', match.id).status_code == 403


class TestHistoryAndReadState:

    def test_history_is_chronological_and_supports_after(self, client, make_user, make_match, auth_header):
        make_user('alice', tier='premium')
        make_user('bob', gender='male', tier='premium')
        match = make_match('alice', 'bob')
        match_id = match.id

        sent = [send(client, auth_header, sender, match_id, text).get_json()['data']['message']
                for sender, text in (('alice', 'one'), ('bob', 'two'), ('alice', 'three'))]

        history = client.get(f'/messages/match/{match_id}', headers=auth_header('bob')).get_json()['data']
        assert [m['content'] for m in history] == ['one', 'two', 'three']

        newer = client.get(
            f'/messages/match/{match_id}',
            query_string={'after': sent[1]['created_at']},
            headers=auth_header('bob'),
        ).get_json()['data']
        assert [m['content'] for m in newer] == ['three']

    def test_history_requires_participant(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        make_user('carol')
        match = make_match('alice', 'bob')

        assert client.get(f'/messages/match/{match.id}', headers=auth_header('carol')).status_code == 403

    def test_unread_counts_and_mark_read(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')
        match_id = match.id
        send(client, auth_header, 'bob', match_id, 'hey')
        send(client, auth_header, 'bob', match_id, 'you there?')

        unread = client.get('/messages/unread', headers=auth_header('alice')).get_json()['data']
        assert unread['total'] == 2
        assert unread['by_match'] == {str(match_id): 2}
        assert client.get('/messages/unread', headers=auth_header('bob')).get_json()['data']['total'] == 0

        resp = client.post(f'/messages/match/{match_id}/read', headers=auth_header('alice'))
        assert resp.get_json()['data']['marked_read'] == 2

        filtered = client.get('/messages/unread', query_string={'match_id': str(match_id)},
                              headers=auth_header('alice')).get_json()['data']
        assert filtered['total'] == 0


class TestMessageStream:

    def test_stream_unavailable_without_redis(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')

        resp = client.get(f'/messages/match/{match.id}/stream', headers=auth_header('alice'))

        assert resp.status_code == 503

    def test_stream_requires_participant(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        make_user('carol')
        match = make_match('alice', 'bob')

        resp = client.get(f'/messages/match/{match.id}/stream', headers=auth_header('carol'))

        assert resp.status_code == 403
