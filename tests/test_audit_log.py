
import sys
import os
import json

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
from access_registry import AccessRegistry
from audit_log import AuditLog
from contest_store import ContestStore
from voting_errors import AuditLogError, InvalidArgument

OWNER = 'owner'
T0 = 1000


def populated_store(path=None):
    log = AuditLog(path)
    store = ContestStore(AccessRegistry(OWNER, log), log)
    first = store.create_contest(OWNER, 'First', 100, T0)
    second = store.create_contest(OWNER, 'Second', 100, T0 + 1)
    store.add_option(OWNER, first, 'A', T0 + 2)
    store.add_option(OWNER, second, 'X', T0 + 3)
    store.vote('alice', first, 1, T0 + 4)
    store.vote('bob', second, 1, T0 + 5)
    return store, first, second


def test_events_in_commit_order():
    store, first, second = populated_store()
    events = store.audit_log.events()
    assert [e.type for e in events] == [
        'ContestCreated', 'ContestCreated', 'OptionAdded', 'OptionAdded', 'VoteCast', 'VoteCast'
    ]
    assert [e.index for e in events] == list(range(1, 7))
    assert [e.timestamp for e in events] == [T0 + i for i in range(6)]


def test_filter_by_type_and_contest():
    store, first, second = populated_store()
    log = store.audit_log
    assert [e.contest_id for e in log.events(contest_id=first)] == [first] * 3
    votes = log.events('VoteCast', contest_id=second)
    assert len(votes) == 1
    assert votes[0].data == {'contestId': second, 'voter': 'bob', 'optionId': 1}
    assert len(log.events(['ContestCreated', 'OptionAdded'])) == 4
    assert log.events('ContestEnded') == []
    with pytest.raises(InvalidArgument):
        log.events('Bogus')


def test_chain_verifies_and_detects_tampering():
    store, first, second = populated_store()
    log = store.audit_log
    assert log.verify()
    log.chain[5].data['optionId'] = 2
    assert not log.verify()


def test_earlier_timestamp_rejected():
    store, first, second = populated_store()
    with pytest.raises(InvalidArgument):
        store.vote('carol', first, 1, T0)
    assert not store.has_voted(first, 'carol')
    assert len(store.audit_log) == 6


def test_failed_body_rolls_back():
    log = AuditLog()
    with pytest.raises(RuntimeError):
        with log.transaction('ContestEnded', {'contestId': 1}, T0):
            raise RuntimeError('boom')
    assert len(log) == 0
    assert log.verify()


def test_subscribers_see_committed_state():
    log = AuditLog()
    store = ContestStore(AccessRegistry(OWNER, log), log)
    cid = store.create_contest(OWNER, 'Quiz', 100, T0)
    store.add_option(OWNER, cid, 'A', T0)
    seen = []

    def on_vote(entry):
        seen.append((entry.data['voter'], store.get_option(cid, 1).vote_count))

    unsubscribe = log.subscribe(on_vote, types='VoteCast', contest_id=cid)
    store.vote('alice', cid, 1, T0 + 1)
    store.vote('bob', cid, 1, T0 + 2)
    unsubscribe()
    store.vote('carol', cid, 1, T0 + 3)
    assert seen == [('alice', 1), ('bob', 2)]


def test_failing_subscriber_does_not_block_commit():
    log = AuditLog()
    store = ContestStore(AccessRegistry(OWNER, log), log)

    def broken(entry):
        raise ValueError('observer bug')

    log.subscribe(broken)
    assert store.create_contest(OWNER, 'Quiz', 100, T0) == 1
    assert len(log) == 1


def test_persistence_round_trip(tmp_path):
    path = str(tmp_path / 'audit.json')
    store, first, second = populated_store(path)
    reloaded = AuditLog(path)
    assert len(reloaded) == 6
    assert [e.hash for e in reloaded.chain] == [e.hash for e in store.audit_log.chain]
    assert reloaded.verify()


def test_tampered_file_rejected(tmp_path):
    path = tmp_path / 'audit.json'
    populated_store(str(path))
    data = json.loads(path.read_text())
    data[3]['data']['label'] = 'Z'
    path.write_text(json.dumps(data))
    with pytest.raises(AuditLogError):
        AuditLog(str(path))


def test_corrupt_file_rejected(tmp_path):
    path = tmp_path / 'audit.json'
    path.write_text('{not json')
    with pytest.raises(AuditLogError):
        AuditLog(str(path))
