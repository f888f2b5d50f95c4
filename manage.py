#!/usr/bin/env python3
"""
CFB Pick'em Management CLI

Command-line management for scoring, pick set reconciliation, leaderboards
and live score updates.
"""

import logging

import click
from flask.cli import with_appcontext
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cfb_pickem import create_app, db
from cfb_pickem.models import AnonymousPick, Game, Pick, User, WeekSettings
from cfb_pickem.services.conflict_resolver import ConflictResolver
from cfb_pickem.services.leaderboard_service import LeaderboardService
from cfb_pickem.services.scoring_service import ScoringService
from cfb_pickem.utils.cache_utils import get_cache_stats
from cfb_pickem.utils.duplicates import detect_duplicates
from cfb_pickem.utils.leaderboard import SEASON_TO_DATE

app = create_app(start_scheduler=False)


def _season(season):
    return season or app.config["CURRENT_SEASON"]


@click.group()
def cli():
    """CFB Pick'em Management CLI"""
    pass


# Database Commands
@cli.group()
def db_cmd():
    """Database management commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Create all database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")
        logging.error(f"Database init failed: {e}")


# Scoring Commands
@cli.group()
def score():
    """Score picks against the spread"""
    pass


@score.command()
@click.argument("game_id", type=int)
@with_appcontext
def game(game_id):
    """Score every pick on one game"""
    result = ScoringService().score_game_by_id(game_id)
    if result is None:
        click.echo(f"❌ Game {game_id} not found!")
        return

    if result.error:
        click.echo(f"❌ {result.error}")
    elif result.skipped_reason:
        click.echo(f"⚠️  Not scored: {result.skipped_reason}")
    else:
        click.echo(
            f"✅ Scored game {game_id}: {result.picks_changed} pick(s) changed, "
            f"ATS winner: {result.winner_against_spread or 'push'}"
        )


@score.command()
@click.argument("week", type=int)
@click.option("--season", type=int, help="Season year (defaults to CURRENT_SEASON)")
@with_appcontext
def week(week, season):
    """Score every completed game of a week"""
    result = ScoringService().score_week(_season(season), week)
    click.echo(
        f"✅ Scored {result.games_scored} game(s), {result.picks_changed} pick(s) changed"
    )
    for error in result.errors:
        click.echo(f"❌ {error}")


# Pick Set Commands
@cli.group()
def picks():
    """Pick set reconciliation commands"""
    pass


@picks.command()
@click.argument("week", type=int)
@click.option("--season", type=int, help="Season year (defaults to CURRENT_SEASON)")
@with_appcontext
def sets(week, season):
    """List the week's pick sets"""
    season = _season(season)
    expected = WeekSettings.expected_game_count(season, week)
    pick_sets = Pick.load_pick_sets(
        season, week, expected_game_count=expected
    ) + AnonymousPick.load_pick_sets(season, week, expected_game_count=expected)

    if not pick_sets:
        click.echo("No pick sets found.")
        return

    click.echo(f"Pick sets for {season} week {week} (expected {expected or '?'} picks):")
    for ps in pick_sets:
        flag = "⚠️ " if ps.needs_attention else "  "
        owner = ps.assigned_user_id if ps.assigned_user_id is not None else "-"
        click.echo(
            f"{flag} [{ps.source}] {ps.label} @ {ps.submitted_at:%Y-%m-%d %H:%M} "
            f"{ps.pick_count} picks, user {owner}, {ps.validation_status or 'n/a'}"
        )
        for anomaly in ps.anomalies:
            click.echo(f"      - {anomaly}")


@picks.command()
@click.argument("week", type=int)
@click.option("--season", type=int, help="Season year (defaults to CURRENT_SEASON)")
@with_appcontext
def duplicates(week, season):
    """Report duplicate pick sets"""
    season = _season(season)
    expected = WeekSettings.expected_game_count(season, week)
    report = detect_duplicates(
        Pick.load_pick_sets(season, week, expected_game_count=expected)
        + AnonymousPick.load_pick_sets(season, week, expected_game_count=expected)
    )

    if not report.groups:
        click.echo("✅ No duplicates found.")
        return

    click.echo(f"Found {report.total_duplicates} duplicate(s) in {len(report.groups)} group(s):")
    for group in report.groups:
        click.echo(f"  {group.reason}: {', '.join(group.emails)}")
        for member in group.members:
            click.echo(f"     {member.key}")


@picks.command()
@click.argument("week", type=int)
@click.option("--season", type=int, help="Season year (defaults to CURRENT_SEASON)")
@with_appcontext
def auto_assign(week, season):
    """Auto-assign anonymous pick sets to matching users"""
    summary = ConflictResolver().auto_assign_week(_season(season), week)
    click.echo(
        f"✅ Assigned {summary['assigned']} of {summary['processed']} pick set(s) "
        f"({summary['with_conflicts']} with conflicts)"
    )
    if summary["held_incomplete"]:
        click.echo(f"⚠️  {summary['held_incomplete']} incomplete set(s) held for review")
    if summary["unmatched"]:
        click.echo(f"⚠️  No user for: {', '.join(sorted(set(summary['unmatched'])))}")
    if summary["failed"]:
        click.echo(f"❌ {summary['failed']} assignment(s) failed, run again to retry")


@picks.command()
@click.argument("week", type=int)
@click.option("--season", type=int, help="Season year (defaults to CURRENT_SEASON)")
@with_appcontext
def summary(week, season):
    """Show anonymous pick validation status"""
    data = ConflictResolver().validation_summary(_season(season), week)
    click.echo(f"Anonymous picks for {data['season']} week {data['week']}: {data['total']}")
    for status, count in data["by_status"].items():
        click.echo(f"  {status}: {count}")
    click.echo(f"  unassigned: {data['unassigned']}")
    click.echo(f"  assigned but hidden: {data['assigned_hidden']}")
    click.echo(f"  on leaderboard: {data['on_leaderboard']}")


# Leaderboard Commands
@cli.group()
def leaderboard():
    """Leaderboard commands"""
    pass


@leaderboard.command()
@click.option("--season", type=int, help="Season year (defaults to CURRENT_SEASON)")
@click.option("--week", type=int, help="Week number (season-to-date when omitted)")
@with_appcontext
def show(season, week):
    """Print the leaderboard"""
    season = _season(season)
    service = LeaderboardService()
    rows = service.build_leaderboard(season, week if week is not None else SEASON_TO_DATE)

    if service.eligibility_error:
        click.echo(f"❌ Payment status unavailable: {service.eligibility_error}")
        return

    if not rows:
        click.echo("No leaderboard entries.")
        return

    for row in rows:
        change = ""
        if row.rank_change:
            change = f" ({row.rank_change:+d})"
        tie = "T" if row.is_tied else " "
        click.echo(
            f"{tie}{row.rank:>3}{change:<6} {row.display_name:<25} {row.total_points:>6g} "
            f"{row.record:<9} lock {row.lock_record} [{row.pick_source}]"
        )


# Score Feed Commands
@cli.group()
def sync():
    """Score feed commands"""
    pass


@sync.command()
@click.option("--season", type=int, help="Season year (defaults to CURRENT_SEASON)")
@click.option("--week", type=int, help="Week number (defaults to the active week)")
@with_appcontext
def scores(season, week):
    """Poll the score feed once and score completed games"""
    click.echo("Updating live scores...")
    result = app.extensions["live_updates"].run_update(season, week)

    if result.skipped_reason:
        click.echo(f"⚠️  {result.skipped_reason}")
    elif result.success:
        click.echo(
            f"✅ Updated {len(result.updates)} game(s), "
            f"{len(result.games_completed)} newly completed"
        )
    else:
        click.echo(f"❌ {result.error}")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏈 CFB Pick'em Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    season = app.config["CURRENT_SEASON"]
    active_week = WeekSettings.get_active_week(season)
    if active_week:
        click.echo(f"✅ Current Season: {season} (Week {active_week})")
    else:
        click.echo(f"⚠️  Current Season: {season}, no active week")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    game_count = Game.query.filter_by(season=season).count()
    completed_count = Game.query.filter_by(season=season, status="completed").count()
    click.echo(f"🏈 Games: {completed_count}/{game_count} completed")

    unassigned = AnonymousPick.query.filter(
        AnonymousPick.season == season, AnonymousPick.assigned_user_id.is_(None)
    ).count()
    click.echo(f"📨 Unassigned anonymous picks: {unassigned}")

    cache_stats = get_cache_stats()
    click.echo(f"🗄️  Cache: {cache_stats['type']} ({cache_stats['timeout']}s timeout)")

    live = app.extensions["live_updates"].status()
    click.echo(f"⏱️  Live updates every {live['interval_seconds']}s")


if __name__ == "__main__":
    with app.app_context():
        cli()
