import hashlib
import json
import logging
import os
from contextlib import contextmanager

from data_models import require_timestamp
from voting_errors import AuditLogError, InvalidArgument

logger = logging.getLogger(__name__)

GENESIS_TYPE = "Genesis"

EVENT_TYPES = (
    "ContestCreated",
    "OptionAdded",
    "VoterRegistered",
    "VoteCast",
    "ContestEnded",
    "ResultsRevealed",
    "OwnershipTransferred",
)


class AuditEntry:
    """One committed state transition, linked to its predecessor by hash."""
    def __init__(self, index, timestamp, type, data, previous_hash, hash=None):
        self.index = index
        self.timestamp = timestamp
        self.type = type
        self.data = data
        self.previous_hash = previous_hash
        self.hash = hash or self.calculate_hash()

    def calculate_hash(self):
        content = json.dumps({
            'index': self.index,
            'timestamp': self.timestamp,
            'type': self.type,
            'data': self.data,
            'previous_hash': self.previous_hash
        }, sort_keys=True).encode()
        return hashlib.sha256(content).hexdigest()

    @property
    def contest_id(self):
        if self.type == "ContestCreated":
            return self.data.get('id')
        return self.data.get('contestId')

    def to_dict(self):
        return {
            'index': self.index,
            'timestamp': self.timestamp,
            'type': self.type,
            'data': self.data,
            'previous_hash': self.previous_hash,
            'hash': self.hash
        }


def _matches(entry, types, contest_id):
    if types is not None and entry.type not in types:
        return False
    if contest_id is not None and entry.contest_id != contest_id:
        return False
    return True


def _normalize_types(types):
    if types is None:
        return None
    if isinstance(types, str):
        types = (types,)
    unknown = [t for t in types if t not in EVENT_TYPES]
    if unknown:
        raise InvalidArgument(f"unknown event types: {unknown}")
    return frozenset(types)


class AuditLog:
    """Append-only event log.

    Entries are persisted to ``path`` (when given) before the state change
    they describe is applied, and subscribers are told about them only after
    it has been applied.
    """
    def __init__(self, path=None, genesis_time=0):
        self.path = path
        self.chain = []
        self._subscribers = []
        if self.path and os.path.exists(self.path):
            self.load_chain()
        else:
            self.chain.append(AuditEntry(0, genesis_time, GENESIS_TYPE, {}, "0"))
            self.save_chain()

    @property
    def bootstrap_owner(self):
        """Owner the log was started under, stored in the genesis entry."""
        return self.chain[0].data.get('owner')

    def record_owner(self, owner):
        if self.bootstrap_owner is not None:
            raise AuditLogError(f"audit log already records owner {self.bootstrap_owner}")
        if len(self):
            raise AuditLogError("audit log has entries but no recorded owner")
        genesis = self.chain[0]
        self.chain[0] = AuditEntry(0, genesis.timestamp, GENESIS_TYPE, {'owner': owner}, genesis.previous_hash)
        self.save_chain()
        logger.info("audit log started for owner %s", owner)

    @property
    def last_timestamp(self):
        return self.chain[-1].timestamp

    def __len__(self):
        return len(self.chain) - 1

    @contextmanager
    def transaction(self, type, data, timestamp):
        if type not in EVENT_TYPES:
            raise InvalidArgument(f"unknown event type: {type!r}")
        require_timestamp(timestamp)
        if timestamp < self.last_timestamp:
            raise InvalidArgument(
                f"timestamp {timestamp} precedes last committed {self.last_timestamp}"
            )
        entry = AuditEntry(
            index=len(self.chain),
            timestamp=timestamp,
            type=type,
            data=data,
            previous_hash=self.chain[-1].hash
        )
        self.chain.append(entry)
        try:
            self.save_chain()
        except OSError:
            self.chain.pop()
            raise
        try:
            yield entry
        except Exception:
            self.chain.pop()
            self.save_chain()
            raise
        logger.info("committed #%d %s %s", entry.index, entry.type, entry.data)
        self._publish(entry)

    def events(self, types=None, contest_id=None):
        types = _normalize_types(types)
        return [e for e in self.chain[1:] if _matches(e, types, contest_id)]

    def subscribe(self, callback, types=None, contest_id=None):
        subscription = (callback, _normalize_types(types), contest_id)
        self._subscribers.append(subscription)

        def unsubscribe():
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)
        return unsubscribe

    def _publish(self, entry):
        for callback, types, contest_id in list(self._subscribers):
            if not _matches(entry, types, contest_id):
                continue
            try:
                callback(entry)
            except Exception:
                logger.exception("audit subscriber %r failed on entry #%d", callback, entry.index)

    def verify(self):
        for i, entry in enumerate(self.chain):
            if entry.index != i or entry.hash != entry.calculate_hash():
                return False
            if i == 0:
                continue
            previous = self.chain[i - 1]
            if entry.previous_hash != previous.hash or entry.timestamp < previous.timestamp:
                return False
        return True

    def save_chain(self):
        if not self.path:
            return
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w') as f:
            json.dump([e.to_dict() for e in self.chain], f, indent=4)
        os.replace(tmp_path, self.path)

    def load_chain(self):
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
            self.chain = [AuditEntry(**d) for d in data]
        except (OSError, ValueError, TypeError) as e:
            raise AuditLogError(f"cannot read audit log {self.path}: {e}") from e
        if not self.chain or not self.verify():
            raise AuditLogError(f"audit log {self.path} failed verification")
        logger.info("loaded %d audit entries from %s", len(self), self.path)
