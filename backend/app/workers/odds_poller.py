import asyncio
import logging
from datetime import timedelta

from pydantic import ValidationError

from app.config import settings
from app.models.game import STARTED_STATUSES
from app.models.settlement import LeaguePollResult, PollSummary
from app.providers.base import BaseProvider
from app.providers.sportsgameodds import SPORT_MAPPINGS, odds_report_started, sportsgameodds_provider
from app.services.game_service import upsert_game
from app.services.odds_ingest_service import refresh_game_odds
from app.services.odds_store_writer import OddsStoreWriter
from app.utils import utcnow
from app.workers._state import recently_synced, set_synced

logger = logging.getLogger("sharpledger.odds_poller")


async def poll_league(league: str, provider: BaseProvider, writer: OddsStoreWriter) -> LeaguePollResult:
    """Fetch the look-ahead window for one league and write pre-game odds."""
    result = LeaguePollResult(league=league)
    now = utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    buffer = timedelta(minutes=settings.GAME_START_BUFFER_MINUTES)

    try:
        raw_events = await provider.get_events(
            league, today, today + timedelta(days=settings.ODDS_FETCH_LOOKAHEAD_DAYS),
        )
    except Exception as e:
        logger.error("Odds fetch failed for %s: %s", league, e)
        result.success = False
        result.error = str(e)
        return result

    for raw in raw_events:
        try:
            game = provider.parse_event(raw, league)
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.warning("Skipping malformed %s event %s: %s", league, raw.get("eventID"), e)
            continue

        if (
            odds_report_started(game.odds)
            or game.status.value in STARTED_STATUSES
            or game.game_time + buffer <= now
        ):
            result.skipped += 1
            logger.debug("Skipping started game %s (%s @ %s)", game.id, game.away_team, game.home_team)
            continue

        try:
            await upsert_game(game)
            written = await refresh_game_odds(game, writer)
        except Exception:
            logger.exception("Odds write failed for %s game %s", league, game.id)
            continue
        result.games += 1
        result.odds_inserted += written.inserted_current

    logger.info(
        "%s: %d games processed, %d skipped (started), %d new odds rows",
        league, result.games, result.skipped, result.odds_inserted,
    )
    return result


async def poll_odds(provider: BaseProvider | None = None, force: bool = False) -> PollSummary:
    """Refresh pre-game odds for every league in the settlement sport list."""
    if not force and await recently_synced("odds_poller", timedelta(minutes=settings.ODDS_POLL_MINUTES - 3)):
        logger.debug("Smart sleep: odds polled recently, skipping")
        return PollSummary(success=True)

    provider = provider or sportsgameodds_provider
    writer = OddsStoreWriter()
    leagues = [lg for lg in settings.settlement_sports if lg in SPORT_MAPPINGS]
    results = await asyncio.gather(*(poll_league(lg, provider, writer) for lg in leagues))

    summary = PollSummary(
        success=any(r.success for r in results) if results else True,
        total_games=sum(r.games for r in results),
        total_skipped=sum(r.skipped for r in results),
        successful_leagues=sum(1 for r in results if r.success),
        total_leagues=len(results),
        results=list(results),
    )
    await set_synced("odds_poller", metrics=summary.model_dump(mode="json", by_alias=True))
    logger.info(
        "Odds poll: %d/%d leagues ok, %d games, %d skipped",
        summary.successful_leagues, summary.total_leagues, summary.total_games, summary.total_skipped,
    )
    return summary
