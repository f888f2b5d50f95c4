"""
Against-the-spread scoring for CFB Pick'em

The spread is signed relative to the home team (negative favors home) and is
always applied to the home score, whichever side was picked. Results are a
pure function of (game, selected team, lock flag), so re-scoring a game
overwrites earlier values instead of accumulating.
"""

WIN = "win"
LOSS = "loss"
PUSH = "push"

WIN_POINTS = 20
LOCK_WIN_POINTS = 40
PUSH_POINTS = 10
LOSS_POINTS = 0


def against_the_spread(home_score, away_score, spread):
    """Return (home_ats, away_ats); a missing spread counts as a pick'em"""
    return home_score + (spread if spread is not None else 0.0), away_score


def calculate_pick_result(
    selected_team, home_team, away_team, home_score, away_score, spread, is_lock=False
):
    """
    Calculate result and points for a single pick.

    Returns:
        (result, points) where result is "win", "loss" or "push".
        A push scores 10 whether or not the pick is a lock; a win scores
        20, or 40 for a lock; a loss scores 0.
    """
    home_ats, away_ats = against_the_spread(home_score, away_score, spread)

    if home_ats == away_ats:
        return PUSH, PUSH_POINTS

    if selected_team == home_team and home_ats > away_ats:
        result = WIN
    elif selected_team == away_team and away_ats > home_ats:
        result = WIN
    else:
        return LOSS, LOSS_POINTS

    return result, LOCK_WIN_POINTS if is_lock else WIN_POINTS


def score_pick_for_game(pick, game):
    """
    Calculate (result, points) for a pick row against a game row.

    Returns (None, None) when the game is not completed or is missing a
    score, so callers leave the pick unscored.
    """
    if game is None or not game.is_completed or not game.has_final_score:
        return None, None

    return calculate_pick_result(
        pick.selected_team,
        game.home_team,
        game.away_team,
        game.home_score,
        game.away_score,
        game.spread,
        bool(pick.is_lock),
    )
