"""Contest state machine.

Every contest lives in a flat table keyed by its sequential id and owns its
options, registrations and ballots. Mutations validate completely before they
open an audit transaction, so a rejected call never leaves partial state or a
stray audit entry behind.
"""
import logging

from data_models import (
    Contest, ContestPolicy, Option, POLL_POLICY, Phase, is_finite_number, is_null_principal, require_timestamp
)
from voting_errors import Conflict, InvalidArgument, NotFound, PhaseError, Unauthorized

logger = logging.getLogger(__name__)


def _is_blank(text):
    return not isinstance(text, str) or not text.strip()


class ContestStore:
    def __init__(self, access, audit_log, policy=None):
        self.access = access
        self.audit_log = audit_log
        self.policy = policy or POLL_POLICY
        self._contests = {}

    # --- Queries ---
    @property
    def contest_count(self):
        return len(self._contests)

    def contests(self):
        return iter(self._contests[i] for i in sorted(self._contests))

    def get_contest(self, contest_id):
        try:
            return self._contests[contest_id]
        except (KeyError, TypeError):
            raise NotFound(f"contest {contest_id} does not exist") from None

    def get_option(self, contest_id, option_id):
        contest = self.get_contest(contest_id)
        if not isinstance(option_id, int) or not 1 <= option_id <= len(contest.options):
            raise NotFound(f"option {option_id} does not exist in contest {contest_id}")
        return contest.options[option_id - 1]

    def options_count(self, contest_id):
        return len(self.get_contest(contest_id).options)

    def total_votes(self, contest_id):
        return self.get_contest(contest_id).total_votes()

    def end_time(self, contest_id):
        return self.get_contest(contest_id).end_time

    def phase(self, contest_id, now):
        require_timestamp(now)
        return self.get_contest(contest_id).phase(now)

    def has_voted(self, contest_id, voter):
        return voter in self.get_contest(contest_id).ballots

    def is_registered(self, contest_id, voter):
        return voter in self.get_contest(contest_id).registrations

    def _require_manager(self, contest, caller):
        if not contest.is_manager(caller, self.access.owner):
            raise Unauthorized(f"only the admin of contest {contest.id} or the owner is allowed")

    # --- Mutations ---
    def create_contest(self, caller, title, duration_seconds, now, admin=None,
                       description="", start_time=None):
        require_timestamp(now)
        self.access.require_owner(caller)
        if _is_blank(title):
            raise InvalidArgument("contest title cannot be empty")
        if description is not None and not isinstance(description, str):
            raise InvalidArgument("contest description must be text")
        if not is_finite_number(duration_seconds) or duration_seconds <= 0:
            raise InvalidArgument(f"duration must be a number greater than 0, got {duration_seconds!r}")
        if admin is None:
            admin = caller
        elif is_null_principal(admin):
            raise InvalidArgument("contest admin cannot be null")
        if start_time is None:
            start_time = now
        elif not self.policy.deferred_start:
            raise InvalidArgument("contests start immediately under this policy")
        elif require_timestamp(start_time, "start time") < now:
            raise InvalidArgument("start time cannot be in the past")

        contest_id = len(self._contests) + 1
        end_time = start_time + duration_seconds + self.policy.end_buffer_seconds
        contest = Contest(
            id=contest_id,
            title=title,
            description=description or "",
            admin=admin,
            start_time=start_time,
            end_time=end_time,
            policy=self.policy
        )
        event = {
            'id': contest_id,
            'title': title,
            'startTime': start_time,
            'endTime': end_time,
            'admin': admin,
            'description': contest.description,
            'policy': self.policy.to_dict()
        }
        with self.audit_log.transaction("ContestCreated", event, now):
            self._contests[contest_id] = contest
        logger.info("contest %d %r created by %s (admin %s)", contest_id, title, caller, admin)
        return contest_id

    def add_option(self, caller, contest_id, label, now):
        require_timestamp(now)
        contest = self.get_contest(contest_id)
        self._require_manager(contest, caller)
        if _is_blank(label):
            raise InvalidArgument("option label cannot be empty")
        if contest.options_frozen(now):
            if contest.explicitly_ended:
                raise PhaseError(f"contest {contest_id} has ended; cannot add options")
            raise PhaseError(f"contest {contest_id} has started; cannot add options")

        option = Option(len(contest.options) + 1, label)
        event = {'contestId': contest_id, 'optionId': option.id, 'label': label}
        with self.audit_log.transaction("OptionAdded", event, now):
            contest.options.append(option)
        return option.id

    def register_voter(self, caller, contest_id, voter, now):
        require_timestamp(now)
        contest = self.get_contest(contest_id)
        self.access.require_owner(caller)
        if is_null_principal(voter):
            raise InvalidArgument("invalid voter principal")
        if voter in contest.registrations:
            raise Conflict(f"voter {voter} already registered for contest {contest_id}")

        with self.audit_log.transaction("VoterRegistered", {'contestId': contest_id, 'voter': voter}, now):
            contest.registrations.add(voter)

    def vote(self, caller, contest_id, option_id, now):
        require_timestamp(now)
        if is_null_principal(caller):
            raise InvalidArgument("voter principal cannot be null")
        contest = self.get_contest(contest_id)
        option = self.get_option(contest_id, option_id)
        phase = contest.phase(now)
        if phase == Phase.CONFIGURING:
            raise PhaseError(f"contest {contest_id} has not started")
        if phase != Phase.OPEN:
            raise PhaseError(f"contest {contest_id} is over")
        if contest.policy.requires_registration and caller not in contest.registrations:
            raise Unauthorized(f"{caller} is not registered to vote in contest {contest_id}")
        if caller in contest.ballots:
            raise Conflict(f"{caller} has already voted in contest {contest_id}")

        event = {'contestId': contest_id, 'voter': caller, 'optionId': option_id}
        with self.audit_log.transaction("VoteCast", event, now):
            contest.ballots[caller] = option_id
            option.vote_count += 1

    def end_contest(self, caller, contest_id, now):
        require_timestamp(now)
        contest = self.get_contest(contest_id)
        self._require_manager(contest, caller)
        if contest.explicitly_ended:
            raise Conflict(f"contest {contest_id} has already been ended")
        if now < contest.end_time:
            raise PhaseError(f"contest {contest_id} cannot end before its end time")

        with self.audit_log.transaction("ContestEnded", {'contestId': contest_id}, now):
            contest.explicitly_ended = True
        logger.info("contest %d ended by %s", contest_id, caller)

    def mark_revealed(self, contest_id, now):
        require_timestamp(now)
        contest = self.get_contest(contest_id)
        with self.audit_log.transaction("ResultsRevealed", {'contestId': contest_id}, now):
            contest.results_revealed = True

    # --- Replay ---
    def restore(self, entry):
        """Re-apply a committed audit entry without validating or re-logging it."""
        data = entry.data
        if entry.type == "ContestCreated":
            policy = ContestPolicy(**data['policy']) if 'policy' in data else self.policy
            self._contests[data['id']] = Contest(
                id=data['id'],
                title=data['title'],
                description=data.get('description', ""),
                admin=data.get('admin', self.access.owner),
                start_time=data['startTime'],
                end_time=data['endTime'],
                policy=policy
            )
            return
        contest = self.get_contest(data.get('contestId'))
        if entry.type == "OptionAdded":
            contest.options.append(Option(data['optionId'], data['label']))
        elif entry.type == "VoterRegistered":
            contest.registrations.add(data['voter'])
        elif entry.type == "VoteCast":
            contest.ballots[data['voter']] = data['optionId']
            contest.options[data['optionId'] - 1].vote_count += 1
        elif entry.type == "ContestEnded":
            contest.explicitly_ended = True
        elif entry.type == "ResultsRevealed":
            contest.results_revealed = True
