from whosejunk.identity import Identity
from whosejunk.services.attempts import BestScorePolicy, Rejected, SingleAttemptPolicy, get_policy
from whosejunk.services.leaderboard import subscribe, top_attempts
from whosejunk.services.season import advance_season, check_eligibility, current_season
from whosejunk.store import Ack, get_store


ANN = Identity(uid='ann', name='Ann', email='ann@example.com')
BEN = Identity(uid='ben', name='Ben', email='ben@example.com')


def test_season_counter_starts_at_initial_season(app_ctx):
    assert current_season(get_store()) == 1


def test_fresh_counter_honours_configured_initial_season(app_ctx, monkeypatch):
    # Tables hold no counter row until the first read
    monkeypatch.setitem(app_ctx.config, 'INITIAL_SEASON', 5)
    store = get_store()
    assert store.get_document('seasons', 'current') is None
    assert current_season(store) == 5
    assert advance_season(store) == 6


def test_advance_twice_moves_by_two(app_ctx):
    store = get_store()
    assert advance_season(store) == 2
    assert advance_season(store) == 3
    assert current_season(store) == 3


def test_policy_comes_from_config(app_ctx):
    policy = get_policy()
    assert isinstance(policy, SingleAttemptPolicy)
    assert policy.leaderboard_limit == 50
    assert BestScorePolicy.leaderboard_limit == 20


def test_single_attempt_commit_closes_the_gate(app_ctx):
    store = get_store()
    policy = SingleAttemptPolicy()
    season = current_season(store)
    assert check_eligibility(store, policy, 'ann', season).eligible
    ack = policy.commit(store, ANN, season, 2)
    assert isinstance(ack, Ack)
    assert ack.document['season'] == season
    assert ack.document['submitted_at'] is not None
    gate = check_eligibility(store, policy, 'ann', season)
    assert not gate.eligible
    assert gate.record['score'] == 2


def test_racing_commits_for_the_same_player(app_ctx):
    store = get_store()
    policy = SingleAttemptPolicy()
    season = current_season(store)
    # Both tabs saw the gate open before either wrote
    assert check_eligibility(store, policy, 'ann', season).eligible
    assert check_eligibility(store, policy, 'ann', season).eligible
    results = [policy.commit(store, ANN, season, 3), policy.commit(store, ANN, season, 1)]
    assert sum(isinstance(r, Ack) for r in results) == 1
    rejected = [r for r in results if isinstance(r, Rejected)]
    assert len(rejected) == 1
    assert rejected[0].reason == 'already_submitted'
    assert top_attempts(store, season, 50)[0]['score'] == 3


def test_new_season_reopens_play_and_keeps_old_records(app_ctx):
    store = get_store()
    policy = SingleAttemptPolicy()
    policy.commit(store, ANN, 1, 2)
    assert not check_eligibility(store, policy, 'ann', 1).eligible

    assert advance_season(store) == 2
    assert check_eligibility(store, policy, 'ann', 2).eligible
    assert check_eligibility(store, policy, 'ben', 2).eligible
    assert top_attempts(store, 2, 50) == []
    assert [e['uid'] for e in top_attempts(store, 1, 50)] == ['ann']

    assert isinstance(policy.commit(store, ANN, 2, 1), Ack)
    assert top_attempts(store, 1, 50)[0]['score'] == 2


def test_best_score_keeps_the_maximum(app_ctx):
    store = get_store()
    policy = BestScorePolicy()
    assert isinstance(policy.commit(store, ANN, 1, 2), Ack)
    assert isinstance(policy.commit(store, ANN, 1, 1), Ack)
    assert check_eligibility(store, policy, 'ann', 1).eligible
    assert top_attempts(store, 1, 20)[0]['score'] == 2
    policy.commit(store, ANN, 1, 3)
    entries = top_attempts(store, 1, 20)
    assert len(entries) == 1
    assert entries[0]['score'] == 3


def test_leaderboard_ranks_and_filters_by_season(app_ctx):
    store = get_store()
    policy = SingleAttemptPolicy()
    policy.commit(store, ANN, 1, 1)
    policy.commit(store, BEN, 1, 3)
    policy.commit(store, Identity('cat', 'Cat', 'cat@example.com'), 2, 3)
    entries = top_attempts(store, 1, 50)
    assert [(e['rank'], e['uid']) for e in entries] == [(1, 'ben'), (2, 'ann')]
    assert all(e['season'] == 1 for e in entries)


def test_leaderboard_is_capped(app_ctx):
    store = get_store()
    policy = SingleAttemptPolicy()
    for i in range(5):
        policy.commit(store, Identity(f'p{i}', f'P{i}', f'p{i}@example.com'), 1, i)
    entries = top_attempts(store, 1, 3)
    assert [e['score'] for e in entries] == [4, 3, 2]


def test_leaderboard_subscription_only_sees_its_season(app_ctx):
    store = get_store()
    policy = SingleAttemptPolicy()
    snapshots = []
    sub = subscribe(store, 2, 50, snapshots.append)
    policy.commit(store, ANN, 1, 3)
    policy.commit(store, BEN, 2, 1)
    assert snapshots[0] == []
    for snapshot in snapshots:
        assert all(entry['season'] == 2 for entry in snapshot)
    assert [e['uid'] for e in snapshots[-1]] == ['ben']
    assert snapshots[-1][0]['rank'] == 1
    sub.cancel()


def test_best_score_stale_reader_cannot_lower_the_record(app_ctx, monkeypatch):
    store = get_store()
    policy = BestScorePolicy()
    policy.commit(store, ANN, 1, 3)

    # A late writer whose view of the record predates the score of 3
    stale = {'on': True}
    real_get, real_max = store.get_document, store.max_field

    def stale_get(collection, key):
        return None if stale['on'] else real_get(collection, key)

    def write_max(*args, **kwargs):
        stale['on'] = False
        return real_max(*args, **kwargs)

    monkeypatch.setattr(store, 'get_document', stale_get)
    monkeypatch.setattr(store, 'max_field', write_max)
    ack = policy.commit(store, ANN, 1, 1)
    monkeypatch.undo()

    assert ack.document['score'] == 3
    assert store.get_document('attempts', '1:ann')['score'] == 3


def test_single_attempt_eligibility_only_looks_for_a_record():
    policy = SingleAttemptPolicy()
    assert policy.is_eligible(None, 2)
    assert not policy.is_eligible({'season': 2, 'score': 0}, 2)
