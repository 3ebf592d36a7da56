import logging

from data_models import NO_CHOICE, require_timestamp
from voting_errors import PhaseError, Unauthorized

logger = logging.getLogger(__name__)


class VisibilityPolicy:
    """Gates disclosure of individual ballots.

    Aggregate counts are always public. Who voted for what is visible to the
    owner and the contest admin at any time, and to everyone else once the
    results of a closed contest have been revealed.
    """
    def __init__(self, store, access):
        self.store = store
        self.access = access

    def is_revealed(self, contest_id):
        return self.store.get_contest(contest_id).results_revealed

    def reveal(self, caller, contest_id, now):
        """Returns False when the results were already revealed."""
        require_timestamp(now)
        contest = self.store.get_contest(contest_id)
        if not contest.is_manager(caller, self.access.owner):
            raise Unauthorized(f"only the admin of contest {contest_id} or the owner is allowed")
        if not contest.is_closed(now):
            raise PhaseError(f"cannot reveal contest {contest_id} before it ends")
        if contest.results_revealed:
            logger.debug("contest %d already revealed", contest_id)
            return False
        self.store.mark_revealed(contest_id, now)
        logger.info("contest %d results revealed by %s", contest_id, caller)
        return True

    def get_voter_choice(self, caller, contest_id, voter):
        contest = self.store.get_contest(contest_id)
        if not (contest.results_revealed or contest.is_manager(caller, self.access.owner)):
            raise Unauthorized(f"results of contest {contest_id} have not been revealed")
        return contest.ballots.get(voter, NO_CHOICE)
