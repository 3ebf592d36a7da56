import math

from voting_errors import InvalidArgument

# --- Configuration and Constants ---
ZERO_PRINCIPAL = "0x" + "0" * 40
NO_CHOICE = 0
NO_WINNER_LABEL = "No winner"


def is_null_principal(principal):
    """Anything that is not a non-empty string, plus the zero address."""
    return not isinstance(principal, str) or principal == "" or principal == ZERO_PRINCIPAL


def is_finite_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def require_timestamp(value, name="timestamp"):
    if not is_finite_number(value):
        raise InvalidArgument(f"{name} must be a finite number, got {value!r}")
    return value


class Phase:
    CONFIGURING = "configuring"
    OPEN = "open"
    CLOSED = "closed"
    REVEALED = "revealed"


class OptionFreeze:
    AT_START = "at_start"
    AT_EXPLICIT_END = "at_explicit_end"

    ALL = (AT_START, AT_EXPLICIT_END)


class ContestPolicy:
    """Rule set a contest is created under."""
    def __init__(self, requires_registration=False, option_freeze=OptionFreeze.AT_EXPLICIT_END,
                 deferred_start=False, end_buffer_seconds=0):
        if option_freeze not in OptionFreeze.ALL:
            raise InvalidArgument(f"unknown option freeze trigger: {option_freeze!r}")
        if not is_finite_number(end_buffer_seconds) or end_buffer_seconds < 0:
            raise InvalidArgument(f"end buffer must be a non-negative number, got {end_buffer_seconds!r}")
        self.requires_registration = bool(requires_registration)
        self.option_freeze = option_freeze
        self.deferred_start = bool(deferred_start)
        self.end_buffer_seconds = end_buffer_seconds

    def to_dict(self):
        return {
            'requires_registration': self.requires_registration,
            'option_freeze': self.option_freeze,
            'deferred_start': self.deferred_start,
            'end_buffer_seconds': self.end_buffer_seconds
        }

    def __eq__(self, other):
        return isinstance(other, ContestPolicy) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"ContestPolicy({self.to_dict()!r})"


# Registration-gated election: candidates fixed once voting starts.
ELECTION_POLICY = ContestPolicy(
    requires_registration=True,
    option_freeze=OptionFreeze.AT_START,
    deferred_start=True
)

# Open poll/quiz: per-contest admin, options fixed only by an explicit end.
POLL_POLICY = ContestPolicy(
    requires_registration=False,
    option_freeze=OptionFreeze.AT_EXPLICIT_END,
    deferred_start=False
)


class Option:
    """A candidate or answer choice within one contest."""
    def __init__(self, id, label):
        self.id = id
        self.label = label
        self.vote_count = 0

    def to_dict(self):
        return {'id': self.id, 'label': self.label, 'vote_count': self.vote_count}


class Contest:
    """One election or poll, with its own options, registrations and ballots."""
    def __init__(self, id, title, description, admin, start_time, end_time, policy):
        self.id = id
        self.title = title
        self.description = description
        self.admin = admin
        self.start_time = start_time
        self.end_time = end_time
        self.policy = policy
        self.explicitly_ended = False
        self.results_revealed = False
        self.options = []
        self.registrations = set()
        self.ballots = {}

    def phase(self, now):
        if self.explicitly_ended or now > self.end_time:
            return Phase.REVEALED if self.results_revealed else Phase.CLOSED
        if now < self.start_time:
            return Phase.CONFIGURING
        return Phase.OPEN

    def is_closed(self, now):
        return self.phase(now) in (Phase.CLOSED, Phase.REVEALED)

    def is_manager(self, principal, owner):
        return principal == self.admin or principal == owner

    def options_frozen(self, now):
        if self.explicitly_ended:
            return True
        if self.policy.option_freeze == OptionFreeze.AT_START:
            return now >= self.start_time
        return False

    def total_votes(self):
        return sum(o.vote_count for o in self.options)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'admin': self.admin,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'explicitly_ended': self.explicitly_ended,
            'results_revealed': self.results_revealed,
            'options_count': len(self.options),
            'total_votes': self.total_votes(),
            'policy': self.policy.to_dict()
        }


class WinnerResult:
    """Outcome of a closed contest; option id 0 means nobody won."""
    def __init__(self, option_id, label, vote_count):
        self.option_id = option_id
        self.label = label
        self.vote_count = vote_count

    @property
    def is_winner(self):
        return self.option_id != NO_CHOICE

    def as_tuple(self):
        return (self.option_id, self.label, self.vote_count)

    def __eq__(self, other):
        return isinstance(other, WinnerResult) and self.as_tuple() == other.as_tuple()

    def __repr__(self):
        return f"WinnerResult{self.as_tuple()!r}"


NO_WINNER = WinnerResult(NO_CHOICE, NO_WINNER_LABEL, 0)
