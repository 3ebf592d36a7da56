from data_models import NO_WINNER, WinnerResult, require_timestamp
from voting_errors import PhaseError


class TallyEngine:
    """Reads vote counts out of a ContestStore and picks a winner."""
    def __init__(self, store):
        self.store = store

    def vote_counts(self, contest_id):
        contest = self.store.get_contest(contest_id)
        return [(o.id, o.label, o.vote_count) for o in contest.options]

    def compute_winner(self, contest_id, now):
        """
        Highest count wins. The scan runs in ascending option id and only
        replaces the leader on a strictly greater count, so a tie goes to the
        lowest id. Returns NO_WINNER when no option received a vote.
        """
        require_timestamp(now)
        contest = self.store.get_contest(contest_id)
        if not contest.is_closed(now):
            raise PhaseError(f"contest {contest_id} is still ongoing")

        best = None
        for option in contest.options:
            if best is None or option.vote_count > best.vote_count:
                best = option
        if best is None or best.vote_count == 0:
            return NO_WINNER
        return WinnerResult(best.id, best.label, best.vote_count)
