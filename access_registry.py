import logging

from data_models import is_null_principal
from voting_errors import InvalidArgument, Unauthorized

logger = logging.getLogger(__name__)


class AccessRegistry:
    """Holds the single owner principal allowed to run owner-level actions.

    A fresh audit log gets ``owner`` written into its genesis entry. A log
    that already names an owner keeps it, and ``owner`` is ignored; the
    current owner is then rebuilt by replaying ``OwnershipTransferred``.
    """
    def __init__(self, owner, audit_log):
        if is_null_principal(owner):
            raise InvalidArgument("owner cannot be null")
        if audit_log.bootstrap_owner is None:
            audit_log.record_owner(owner)
        self._owner = audit_log.bootstrap_owner
        self.audit_log = audit_log

    @property
    def owner(self):
        return self._owner

    def is_owner(self, principal):
        return principal == self._owner

    def require_owner(self, caller):
        if not self.is_owner(caller):
            raise Unauthorized("only the owner can perform this action")

    def transfer_ownership(self, caller, new_owner, now):
        self.require_owner(caller)
        if is_null_principal(new_owner):
            raise InvalidArgument("new owner cannot be null")
        old = self._owner
        with self.audit_log.transaction("OwnershipTransferred", {'old': old, 'new': new_owner}, now):
            self._owner = new_owner
        logger.info("ownership transferred from %s to %s", old, new_owner)

    def restore(self, entry):
        if entry.type == "OwnershipTransferred":
            self._owner = entry.data['new']
