import hmac
from functools import wraps

from flask import abort, current_app, jsonify, request

from cfb_pickem.errors import EligibilityLookupError
from cfb_pickem.models import AnonymousPick, Game, Pick, User, WeekSettings
from cfb_pickem.routes.api import bp
from cfb_pickem.services.conflict_resolver import MODES, ConflictResolver
from cfb_pickem.services.eligibility import PaymentEligibility
from cfb_pickem.services.leaderboard_service import LeaderboardService
from cfb_pickem.services.scoring_service import ScoringService
from cfb_pickem.utils.cache_utils import LEADERBOARD_PREFIX, cached_route
from cfb_pickem.utils.duplicates import detect_duplicates
from cfb_pickem.utils.leaderboard import SEASON_TO_DATE


def admin_required(f):
    """Require the shared admin token in the X-Admin-Token header"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("ADMIN_API_TOKEN")
        provided = request.headers.get("X-Admin-Token", "")
        if not expected or not hmac.compare_digest(provided, expected):
            current_app.logger.warning(f"Rejected admin request to {request.path}")
            abort(403)
        return f(*args, **kwargs)

    return decorated_function


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="JSON object body required")
    return data


def _outcome_response(outcome):
    if outcome.success:
        return jsonify(outcome.to_dict())
    return jsonify(outcome.to_dict()), 503 if outcome.retryable else 400


def _load_pick_sets(season, week, source="all"):
    expected = WeekSettings.expected_game_count(season, week)
    pick_sets = []
    if source in ("all", "authenticated"):
        pick_sets += Pick.load_pick_sets(season, week, expected_game_count=expected)
    if source in ("all", "anonymous"):
        pick_sets += AnonymousPick.load_pick_sets(season, week, expected_game_count=expected)
    return pick_sets


def _user_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description="user_id must be an integer")


def _leaderboard_response(season, week):
    service = LeaderboardService()
    rows = service.build_leaderboard(season, week)
    if service.eligibility_error:
        # Error tuples are not cached
        return {"error": service.eligibility_error, "retryable": True}, 503
    return {"season": season, "week": week, "rows": [row.to_dict() for row in rows]}


def _find_anonymous_set(season, week, key):
    if not key:
        abort(400, description="Pick set key required")
    expected = WeekSettings.expected_game_count(season, week)
    pick_set = AnonymousPick.find_pick_set(season, week, key, expected_game_count=expected)
    if pick_set is None:
        abort(404)
    return pick_set


# ----------------------------------------------------------------------
# Leaderboards
# ----------------------------------------------------------------------


@bp.route("/leaderboard/<int:season>")
@cached_route(timeout=300, key_prefix=LEADERBOARD_PREFIX)
def season_leaderboard(season):
    """Season-to-date standings with rank changes"""
    return _leaderboard_response(season, SEASON_TO_DATE)


@bp.route("/leaderboard/<int:season>/week/<int:week>")
@cached_route(timeout=300, key_prefix=LEADERBOARD_PREFIX)
def weekly_leaderboard(season, week):
    """Standings for a single week"""
    return _leaderboard_response(season, week)


@bp.route("/games/<int:season>/<int:week>")
def week_games(season, week):
    games = Game.get_games_for_week(season, week)
    return jsonify([game.to_dict() for game in games])


# ----------------------------------------------------------------------
# Admin: pick sets and duplicates
# ----------------------------------------------------------------------


@bp.route("/admin/pick-sets/<int:season>/<int:week>")
@admin_required
def admin_pick_sets(season, week):
    """Pick sets for a week; ?source=all|authenticated|anonymous"""
    source = request.args.get("source", "all")
    if source not in ("all", "authenticated", "anonymous"):
        abort(400, description=f"Unknown source: {source}")

    pick_sets = _load_pick_sets(season, week, source)
    return jsonify(
        {
            "season": season,
            "week": week,
            "count": len(pick_sets),
            "pick_sets": [ps.to_dict() for ps in pick_sets],
        }
    )


@bp.route("/admin/duplicates/<int:season>/<int:week>")
@admin_required
def admin_duplicates(season, week):
    report = detect_duplicates(_load_pick_sets(season, week))
    return jsonify(report.to_dict())


@bp.route("/admin/validation-summary/<int:season>/<int:week>")
@admin_required
def admin_validation_summary(season, week):
    return jsonify(ConflictResolver().validation_summary(season, week))


# ----------------------------------------------------------------------
# Admin: assignment
# ----------------------------------------------------------------------


@bp.route("/admin/pick-sets/<int:season>/<int:week>/resolve", methods=["POST"])
@admin_required
def admin_resolve(season, week):
    """
    Assign an anonymous pick set.

    Body: {"key": ..., "user_id": ... or "email": ..., "mode": "auto"|"manual",
    "admin_user_id": ...}
    """
    data = _json_body()
    mode = data.get("mode", "manual")
    if mode not in MODES:
        abort(400, description=f"Unknown mode: {mode}")

    user_id = data.get("user_id")
    if user_id is not None:
        user_id = _user_id(user_id)

    pick_set = _find_anonymous_set(season, week, data.get("key"))
    resolver = ConflictResolver()

    if user_id is None:
        user_id = resolver.resolve_primary_user_id(data.get("email") or pick_set.email)
    if user_id is None:
        return jsonify({"error": "No user matches this pick set's email"}), 404

    outcome = resolver.resolve_assignment(
        pick_set, user_id, mode=mode, admin_user_id=data.get("admin_user_id")
    )
    return _outcome_response(outcome)


@bp.route("/admin/pick-sets/<int:season>/<int:week>/decision", methods=["POST"])
@admin_required
def admin_decision(season, week):
    """
    Apply the admin's choice for a conflict.

    Body: {"key": ..., "user_id": ..., "keep": "new"|"existing",
    "reasoning": ..., "admin_user_id": ...}
    """
    data = _json_body()
    keep = data.get("keep")
    if keep not in ("new", "existing"):
        abort(400, description="keep must be 'new' or 'existing'")
    if data.get("user_id") is None:
        abort(400, description="user_id required")
    user_id = _user_id(data["user_id"])

    pick_set = _find_anonymous_set(season, week, data.get("key"))
    outcome = ConflictResolver().apply_decision(
        pick_set,
        user_id,
        keep,
        admin_user_id=data.get("admin_user_id"),
        reasoning=data.get("reasoning"),
    )
    return _outcome_response(outcome)


@bp.route("/admin/auto-assign/<int:season>/<int:week>", methods=["POST"])
@admin_required
def admin_auto_assign(season, week):
    return jsonify(ConflictResolver().auto_assign_week(season, week))


@bp.route("/admin/eligibility/<int:season>/<int:user_id>")
@admin_required
def admin_eligibility(season, user_id):
    User.query.get_or_404(user_id)
    try:
        result = PaymentEligibility().check(user_id, season)
    except EligibilityLookupError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    return jsonify(result.to_dict())


# ----------------------------------------------------------------------
# Admin: scoring and live updates
# ----------------------------------------------------------------------


@bp.route("/admin/games/<int:game_id>/score", methods=["POST"])
@admin_required
def admin_score_game(game_id):
    game = Game.query.get_or_404(game_id)
    result = ScoringService().score_game(game)
    if result.error:
        return jsonify(result.to_dict()), 503
    return jsonify(result.to_dict())


@bp.route("/admin/score/<int:season>/<int:week>", methods=["POST"])
@admin_required
def admin_score_week(season, week):
    return jsonify(ScoringService().score_week(season, week).to_dict())


def _live_updates():
    return current_app.extensions["live_updates"]


@bp.route("/admin/scheduler")
@admin_required
def admin_scheduler_status():
    return jsonify(_live_updates().status())


@bp.route("/admin/scheduler/<action>", methods=["POST"])
@admin_required
def admin_scheduler_action(action):
    """start, stop or run the live score updates"""
    live_updates = _live_updates()

    if action == "start":
        live_updates.start()
    elif action == "stop":
        live_updates.stop()
    elif action == "run":
        data = request.get_json(silent=True) or {}
        result = live_updates.run_update(data.get("season"), data.get("week"))
        return jsonify(result.to_dict())
    else:
        abort(404)

    return jsonify(live_updates.status())
