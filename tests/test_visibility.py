
import sys
import os

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
from access_registry import AccessRegistry
from audit_log import AuditLog
from contest_store import ContestStore
from data_models import NO_CHOICE, POLL_POLICY, Phase
from visibility import VisibilityPolicy
from voting_errors import NotFound, PhaseError, Unauthorized

OWNER = 'owner'
ADMIN = 'quiz-admin'
ALICE = 'alice'
BOB = 'bob'
ATTACKER = 'attacker'
T0 = 1000
DURATION = 60


@pytest.fixture
def quiz():
    log = AuditLog()
    access = AccessRegistry(OWNER, log)
    store = ContestStore(access, log, POLL_POLICY)
    cid = store.create_contest(OWNER, 'TimeQ', DURATION, T0, admin=ADMIN)
    store.add_option(ADMIN, cid, 'A', T0)
    store.add_option(ADMIN, cid, 'B', T0)
    store.vote(ALICE, cid, 1, T0 + 1)
    store.vote(BOB, cid, 2, T0 + 2)
    return VisibilityPolicy(store, access), cid


def test_managers_see_choices_before_reveal(quiz):
    policy, cid = quiz
    assert policy.get_voter_choice(ADMIN, cid, ALICE) == 1
    assert policy.get_voter_choice(OWNER, cid, BOB) == 2


def test_others_blocked_before_reveal(quiz):
    policy, cid = quiz
    with pytest.raises(Unauthorized):
        policy.get_voter_choice(ATTACKER, cid, ALICE)
    with pytest.raises(Unauthorized):
        policy.get_voter_choice(ALICE, cid, ALICE)


def test_non_voter_has_no_choice(quiz):
    policy, cid = quiz
    assert policy.get_voter_choice(ADMIN, cid, ATTACKER) == NO_CHOICE


def test_reveal_before_end(quiz):
    policy, cid = quiz
    with pytest.raises(PhaseError):
        policy.reveal(ADMIN, cid, T0 + DURATION)
    assert not policy.is_revealed(cid)


def test_reveal_requires_manager(quiz):
    policy, cid = quiz
    with pytest.raises(Unauthorized):
        policy.reveal(ATTACKER, cid, T0 + 2)
    with pytest.raises(Unauthorized):
        policy.reveal(ATTACKER, cid, T0 + DURATION + 1)


def test_reveal_round_trip(quiz):
    policy, cid = quiz
    after = T0 + DURATION + 1
    assert policy.reveal(ADMIN, cid, after)
    assert policy.is_revealed(cid)
    assert policy.store.phase(cid, after) == Phase.REVEALED
    for _ in range(3):
        assert policy.get_voter_choice(ATTACKER, cid, ALICE) == 1
        assert policy.get_voter_choice(ATTACKER, cid, BOB) == 2
    assert policy.get_voter_choice(ATTACKER, cid, ATTACKER) == NO_CHOICE


def test_reveal_is_idempotent(quiz):
    policy, cid = quiz
    after = T0 + DURATION + 1
    assert policy.reveal(ADMIN, cid, after) is True
    assert policy.reveal(OWNER, cid, after + 1) is False
    assert len(policy.store.audit_log.events('ResultsRevealed', contest_id=cid)) == 1


def test_reveal_after_explicit_end(quiz):
    policy, cid = quiz
    policy.store.end_contest(ADMIN, cid, T0 + DURATION)
    assert policy.reveal(OWNER, cid, T0 + DURATION)


def test_unknown_contest(quiz):
    policy, cid = quiz
    with pytest.raises(NotFound):
        policy.reveal(OWNER, cid + 1, T0 + DURATION + 1)
    with pytest.raises(NotFound):
        policy.get_voter_choice(OWNER, cid + 1, ALICE)
