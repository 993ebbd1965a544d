from models import db, BlockedUser, Match, Report


def block(client, auth_header, actor, target, **extra):
    return client.post('/blocks', json={'user_id': target, **extra}, headers=auth_header(actor))


class TestBlocking:

    def test_block_ends_match_and_hides_both_ways(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')
        match_id = match.id

        resp = block(client, auth_header, 'alice', 'bob', reason='rude')

        assert resp.status_code == 201
        assert resp.get_json()['data']['blocked_id'] == 'bob'
        assert db.session.get(Match, match_id).is_active is False

        bob_discover = client.get('/discover', headers=auth_header('bob')).get_json()['data']
        assert 'alice' not in [p['user_id'] for p in bob_discover]

        message = client.post('/messages', json={'match_id': str(match_id), 'content': 'hi'},
                              headers=auth_header('bob'))
        assert message.status_code == 403

    def test_repeat_block_is_idempotent(self, client, make_user, auth_header):
        make_user('alice')
        make_user('bob', gender='male')

        assert block(client, auth_header, 'alice', 'bob').status_code == 201
        again = block(client, auth_header, 'alice', 'bob')

        assert again.status_code == 200
        assert BlockedUser.query.count() == 1

    def test_cannot_block_self_or_unknown(self, client, make_user, auth_header):
        make_user('alice')

        assert block(client, auth_header, 'alice', 'alice').status_code == 400
        assert block(client, auth_header, 'alice', 'ghost').status_code == 404
        assert client.post('/blocks', json={}, headers=auth_header('alice')).status_code == 400

    def test_list_and_unblock(self, client, make_user, make_match, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        match = make_match('alice', 'bob')
        match_id = match.id
        block(client, auth_header, 'alice', 'bob')

        listed = client.get('/blocks', headers=auth_header('alice')).get_json()['data']
        assert [b['blocked_id'] for b in listed] == ['bob']

        assert client.delete('/blocks/bob', headers=auth_header('alice')).status_code == 200
        assert client.delete('/blocks/bob', headers=auth_header('alice')).status_code == 404
        assert BlockedUser.query.count() == 0
        assert db.session.get(Match, match_id).is_active is False

    def test_blocked_user_cannot_swipe_into_a_match(self, client, make_user, auth_header):
        make_user('alice')
        make_user('bob', gender='male')
        block(client, auth_header, 'bob', 'alice')

        resp = client.post('/swipes', json={'target_user_id': 'bob', 'direction': 'like'},
                           headers=auth_header('alice'))

        assert resp.status_code == 404
        assert Match.query.count() == 0


class TestReports:

    def test_report_is_stored_pending(self, client, make_user, auth_header):
        make_user('alice')
        make_user('bob', gender='male')

        resp = client.post('/reports', json={
            'reported_user_id': 'bob', 'reason': 'spam', 'description': 'Sent links'
        }, headers=auth_header('alice'))

        assert resp.status_code == 201
        report = Report.query.one()
        assert (report.reporter_id, report.reported_user_id, report.status) == ('alice', 'bob', 'pending')
        assert resp.get_json()['data']['id'] == str(report.id)

    def test_report_validation(self, client, make_user, auth_header):
        make_user('alice')
        make_user('bob', gender='male')

        def report(**body):
            return client.post('/reports', json=body, headers=auth_header('alice')).status_code

        assert report(reported_user_id='alice', reason='spam') == 400
        assert report(reported_user_id='bob', reason='') == 400
        assert report(reported_user_id='bob', reason='x' * 101) == 400
        assert report(reported_user_id='ghost', reason='spam') == 404
        assert Report.query.count() == 0
