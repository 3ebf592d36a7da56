import logging
import os

import pandas as pd

from data_models import is_null_principal

ROSTER_COLUMNS = ['principal', 'name']
RESULT_COLUMNS = ['option_id', 'label', 'votes']
AUDIT_COLUMNS = ['index', 'timestamp', 'type', 'contest_id', 'data', 'hash']

logger = logging.getLogger(__name__)


def initialize_roster_df():
    return pd.DataFrame(columns=ROSTER_COLUMNS)


def load_roster(db_path):
    """Voter roster CSV; only the principal column is required."""
    if not os.path.exists(db_path):
        return initialize_roster_df()
    df = pd.read_csv(db_path, dtype=str, keep_default_na=False)
    if 'principal' not in df.columns:
        raise ValueError(f"roster {db_path} has no 'principal' column")
    for column in ROSTER_COLUMNS:
        if column not in df.columns:
            df[column] = ""
    df['principal'] = df['principal'].str.strip()
    return df[df['principal'] != ""].reset_index(drop=True)


def save_roster(df, db_path):
    df.to_csv(db_path, index=False)


def register_roster(store, caller, contest_id, df, now):
    """Register every roster principal; returns the ones that were new."""
    principals = [p for p in df['principal'].drop_duplicates() if not is_null_principal(p)]
    added = []
    for principal in principals:
        if store.is_registered(contest_id, principal):
            continue
        store.register_voter(caller, contest_id, principal, now)
        added.append(principal)
    logger.info("registered %d of %d roster voters for contest %d", len(added), len(principals), contest_id)
    return added


def results_frame(tally, contest_id):
    rows = tally.vote_counts(contest_id)
    return pd.DataFrame(rows, columns=RESULT_COLUMNS).set_index('option_id')


def audit_frame(audit_log, types=None, contest_id=None):
    rows = [
        (e.index, e.timestamp, e.type, e.contest_id, e.data, e.hash)
        for e in audit_log.events(types=types, contest_id=contest_id)
    ]
    return pd.DataFrame(rows, columns=AUDIT_COLUMNS)
