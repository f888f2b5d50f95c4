"""
CFB Pick'em live score updates

LiveUpdateScheduler polls the score feed for the active week on an
APScheduler interval job, writes score and status changes, and scores games
that have just been completed. The app factory builds one per app and keeps
it in app.extensions["live_updates"].
"""

import atexit
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from cfb_pickem import db
from cfb_pickem.errors import ScoreFeedError
from cfb_pickem.models import Game, WeekSettings
from cfb_pickem.services.scoring_service import ScoringService
from cfb_pickem.utils.cache_utils import invalidate_leaderboard_cache
from cfb_pickem.utils.data_sync import CollegeFootballDataClient
from cfb_pickem.utils.live_updates import compute_update

logger = logging.getLogger(__name__)

JOB_ID = "live_score_updates"


@dataclass
class UpdateResult:
    season: Optional[int]
    week: Optional[int]
    games_checked: int = 0
    updates: list = field(default_factory=list)
    scoring: List = field(default_factory=list)
    skipped_reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self):
        return self.error is None

    @property
    def games_completed(self):
        return [u.game_id for u in self.updates if u.newly_completed]

    def to_dict(self):
        return {
            "season": self.season,
            "week": self.week,
            "success": self.success,
            "games_checked": self.games_checked,
            "games_updated": len(self.updates),
            "games_completed": self.games_completed,
            "updates": [u.to_dict() for u in self.updates],
            "scoring": [r.to_dict() for r in self.scoring],
            "skipped_reason": self.skipped_reason,
            "error": self.error,
        }


class LiveUpdateScheduler:
    """Background poller for live scores"""

    def __init__(self, app=None, client=None, scoring=None):
        self.app = app
        self.client = client
        self.scoring = scoring or ScoringService()
        self.scheduler = None
        self.is_running = False
        self.stats = {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "games_updated": 0,
        }

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        if self.client is None:
            self.client = CollegeFootballDataClient.from_config(app.config)
        atexit.register(self.shutdown)

    @property
    def interval_seconds(self):
        return int(self.app.config.get("LIVE_UPDATE_INTERVAL_SECONDS", 300))

    def start(self):
        """Start polling; a no-op when already running"""
        if self.is_running:
            return

        # A shut-down APScheduler cannot be restarted, so build a fresh one
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")
        self.scheduler.add_job(
            func=self._scheduled_run,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            name="Live Score Updates",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(f"Live updates started (every {self.interval_seconds}s)")

    def stop(self):
        """Stop polling; a no-op when not running"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Live updates stopped")

    def shutdown(self):
        """Graceful shutdown"""
        try:
            self.stop()
        except Exception as e:
            logger.error(f"Error stopping live updates: {e}")

    def status(self):
        """Running state, next run and counters"""
        next_run = None
        if self.is_running and self.scheduler:
            job = self.scheduler.get_job(JOB_ID)
            if job and job.next_run_time:
                next_run = job.next_run_time.isoformat()

        stats = dict(self.stats)
        if stats["last_run"]:
            stats["last_run"] = stats["last_run"].isoformat()

        return {
            "is_running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "next_run": next_run,
            "stats": stats,
        }

    def run_update(self, season=None, week=None):
        """
        Poll the score feed once and apply the changes.

        Defaults to the configured current season and its active week.

        Returns:
            UpdateResult
        """
        with self.app.app_context():
            season = season or self.app.config.get("CURRENT_SEASON")
            if week is None:
                week = WeekSettings.get_active_week(season)

            result = UpdateResult(season=season, week=week)
            if week is None:
                result.skipped_reason = f"No active week for season {season}"
                return result

            games = Game.get_games_for_week(season, week)
            result.games_checked = len(games)
            if not games or all(g.is_completed for g in games):
                result.skipped_reason = "No games left to update"
                return result

            try:
                feed_games = self.client.fetch_games(
                    season, week, self.app.config.get("CFBD_SEASON_TYPE", "regular")
                )
            except ScoreFeedError as e:
                logger.warning(f"Score feed unavailable for {season} week {week}: {e}")
                result.error = str(e)
                self._update_stats(False, error=result.error)
                return result

            result.updates = compute_update(season, week, games, feed_games)
            if not result.updates:
                self._update_stats(True)
                return result

            games_by_id = {g.id: g for g in games}
            try:
                for update in result.updates:
                    games_by_id[update.game_id].update_score(
                        update.home_score, update.away_score, update.status
                    )
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Error saving score updates for {season} week {week}: {e}")
                result.error = f"Database error: {e}"
                self._update_stats(False, error=result.error)
                return result

            invalidate_leaderboard_cache()
            logger.info(
                f"Updated {len(result.updates)} game(s) for {season} week {week}, "
                f"{len(result.games_completed)} newly completed"
            )

            for game_id in result.games_completed:
                result.scoring.append(self.scoring.score_game(games_by_id[game_id]))

            errors = [r.error for r in result.scoring if r.error]
            if errors:
                result.error = "; ".join(errors)

            self._update_stats(result.success, len(result.updates), error=result.error)
            return result

    def _scheduled_run(self):
        try:
            self.run_update()
        except Exception as e:
            self._update_stats(False, error=str(e))
            logger.error(f"Error in live update run: {e}", exc_info=True)

    def _update_stats(self, success, games_updated=0, error=None):
        self.stats["last_run"] = datetime.now(timezone.utc)
        self.stats["total_runs"] += 1

        if success:
            self.stats["successful_runs"] += 1
            self.stats["games_updated"] += games_updated
            self.stats["last_error"] = None
        else:
            self.stats["failed_runs"] += 1
            self.stats["last_error"] = error
