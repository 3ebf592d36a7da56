"""
Command interface in front of the contest components.

A submission layer hands ``VotingSystem.execute`` one ``Command`` at a time,
already ordered by the host. Every command comes back as a ``CommandResult``:
either ``ok`` with an optional value (a new id, a reveal flag) or a failure
naming the error kind. Nothing raised by a component escapes ``execute``.
"""
import json
import logging

from access_registry import AccessRegistry
from audit_log import AuditLog
from contest_store import ContestStore
from data_models import is_null_principal, require_timestamp
from database import results_frame
from tally import TallyEngine
from visibility import VisibilityPolicy
from voting_config import CONFIG_PATH, config_flag, configure_logging, load_config, policy_from_config
from voting_errors import Conflict, InvalidArgument, Unauthorized, VotingError
from wallet import sign_message, verify_signature

logger = logging.getLogger(__name__)

ACTIONS = (
    "CreateContest",
    "AddOption",
    "RegisterVoter",
    "Vote",
    "EndContest",
    "Reveal",
    "TransferOwnership",
)


class Command:
    """One state-changing request from the submission layer.

    ``nonce`` is part of the signed message. When signatures are required it
    must grow with every command a principal submits, so a captured signed
    command cannot be accepted twice.
    """
    def __init__(self, action, principal, timestamp, contest_id=None, payload=None, signature=None, nonce=None):
        self.action = action
        self.principal = principal
        self.timestamp = timestamp
        self.contest_id = contest_id
        self.payload = dict(payload or {})
        self.signature = signature
        self.nonce = nonce

    def message(self):
        """Canonical text a principal signs to authorize this command."""
        try:
            return json.dumps({
                'action': self.action,
                'principal': self.principal,
                'timestamp': self.timestamp,
                'contestId': self.contest_id,
                'nonce': self.nonce,
                'payload': self.payload
            }, sort_keys=True, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"{self.action} command cannot be serialized: {e}") from e

    def sign(self, private_key_hex):
        self.signature = sign_message(private_key_hex, self.message())
        return self

    def require(self, key):
        if key not in self.payload:
            raise InvalidArgument(f"{self.action} needs payload field {key!r}")
        return self.payload[key]

    def __repr__(self):
        return f"Command({self.action!r}, principal={self.principal!r}, contest_id={self.contest_id!r})"


class CommandResult:
    def __init__(self, ok, value=None, error=None, message=None):
        self.ok = ok
        self.value = value
        self.error = error
        self.message = message

    @classmethod
    def success(cls, value=None):
        return cls(True, value=value)

    @classmethod
    def failure(cls, exc):
        return cls(False, error=exc.kind, message=str(exc))

    def to_dict(self):
        return {'ok': self.ok, 'value': self.value, 'error': self.error, 'message': self.message}

    def __repr__(self):
        if self.ok:
            return f"CommandResult(ok, value={self.value!r})"
        return f"CommandResult({self.error}: {self.message})"


class VotingSystem:
    def __init__(self, owner, policy=None, audit_log=None, require_signatures=False):
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.access = AccessRegistry(owner, self.audit_log)
        self.store = ContestStore(self.access, self.audit_log, policy)
        self.tally = TallyEngine(self.store)
        self.visibility = VisibilityPolicy(self.store, self.access)
        self.require_signatures = require_signatures
        self._nonces = {}
        self._replay()
        if owner != self.access.owner:
            raise Unauthorized(
                f"{owner} is not the owner recorded in the audit log ({self.access.owner})"
            )
        self._handlers = {
            "CreateContest": self._create_contest,
            "AddOption": self._add_option,
            "RegisterVoter": self._register_voter,
            "Vote": self._vote,
            "EndContest": self._end_contest,
            "Reveal": self._reveal,
            "TransferOwnership": self._transfer_ownership,
        }

    @classmethod
    def from_config(cls, owner, path=CONFIG_PATH):
        config = load_config(path)
        configure_logging(config["log_level"])
        return cls(
            owner,
            policy=policy_from_config(config),
            audit_log=AuditLog(config["audit_path"]),
            require_signatures=config_flag(config, "require_signatures")
        )

    def _replay(self):
        entries = self.audit_log.events()
        for entry in entries:
            if entry.type == "OwnershipTransferred":
                self.access.restore(entry)
            else:
                self.store.restore(entry)
        if entries:
            logger.info("replayed %d audit entries into %d contests", len(entries), self.store.contest_count)

    # --- Command interface ---
    def execute(self, command):
        try:
            value = self._dispatch(command)
        except VotingError as e:
            logger.warning("rejected %r: %s %s", command, e.kind, e)
            return CommandResult.failure(e)
        return CommandResult.success(value)

    def _dispatch(self, command):
        if command.action not in ACTIONS:
            raise InvalidArgument(f"unknown action {command.action!r}")
        handler = self._handlers[command.action]
        if is_null_principal(command.principal):
            raise InvalidArgument("command principal cannot be null")
        require_timestamp(command.timestamp, "command timestamp")
        if self.require_signatures:
            self._check_signature(command)
        if command.action not in ("CreateContest", "TransferOwnership") and command.contest_id is None:
            raise InvalidArgument(f"{command.action} needs a contest id")
        return handler(command)

    def _check_signature(self, command):
        if not (command.signature and verify_signature(command.principal, command.message(), command.signature)):
            raise Unauthorized(f"missing or invalid signature from {command.principal}")
        if not isinstance(command.nonce, int) or isinstance(command.nonce, bool):
            raise InvalidArgument("signed commands need an integer nonce")
        last = self._nonces.get(command.principal)
        if last is not None and command.nonce <= last:
            raise Conflict(f"nonce {command.nonce} from {command.principal} was already used")
        self._nonces[command.principal] = command.nonce

    def _create_contest(self, cmd):
        return self.store.create_contest(
            cmd.principal,
            cmd.require("title"),
            cmd.require("durationSeconds"),
            cmd.timestamp,
            admin=cmd.payload.get("admin"),
            description=cmd.payload.get("description", ""),
            start_time=cmd.payload.get("startTime")
        )

    def _add_option(self, cmd):
        return self.store.add_option(cmd.principal, cmd.contest_id, cmd.require("label"), cmd.timestamp)

    def _register_voter(self, cmd):
        self.store.register_voter(cmd.principal, cmd.contest_id, cmd.require("voter"), cmd.timestamp)

    def _vote(self, cmd):
        self.store.vote(cmd.principal, cmd.contest_id, cmd.require("optionId"), cmd.timestamp)

    def _end_contest(self, cmd):
        self.store.end_contest(cmd.principal, cmd.contest_id, cmd.timestamp)

    def _reveal(self, cmd):
        return self.visibility.reveal(cmd.principal, cmd.contest_id, cmd.timestamp)

    def _transfer_ownership(self, cmd):
        self.access.transfer_ownership(cmd.principal, cmd.require("newOwner"), cmd.timestamp)

    # --- Query interface ---
    @property
    def owner(self):
        return self.access.owner

    @property
    def contest_count(self):
        return self.store.contest_count

    def get_contest(self, contest_id):
        return self.store.get_contest(contest_id).to_dict()

    def get_option(self, contest_id, option_id):
        return self.store.get_option(contest_id, option_id).to_dict()

    def options_count(self, contest_id):
        return self.store.options_count(contest_id)

    def total_votes(self, contest_id):
        return self.store.total_votes(contest_id)

    def end_time(self, contest_id):
        return self.store.end_time(contest_id)

    def phase(self, contest_id, now):
        return self.store.phase(contest_id, now)

    def has_voted(self, contest_id, voter):
        return self.store.has_voted(contest_id, voter)

    def is_registered(self, contest_id, voter):
        return self.store.is_registered(contest_id, voter)

    def vote_counts(self, contest_id):
        return self.tally.vote_counts(contest_id)

    def compute_winner(self, contest_id, now):
        return self.tally.compute_winner(contest_id, now)

    def is_revealed(self, contest_id):
        return self.visibility.is_revealed(contest_id)

    def get_voter_choice(self, caller, contest_id, voter):
        return self.visibility.get_voter_choice(caller, contest_id, voter)

    def events(self, types=None, contest_id=None):
        return self.audit_log.events(types=types, contest_id=contest_id)

    def subscribe(self, callback, types=None, contest_id=None):
        return self.audit_log.subscribe(callback, types=types, contest_id=contest_id)

    def results_table(self, contest_id):
        return results_frame(self.tally, contest_id)
