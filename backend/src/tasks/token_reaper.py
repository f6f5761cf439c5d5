"""
Scheduled sweep of expired short-lived API tokens.

Listings already reap the expired tokens they encounter; this task removes the
ones nobody lists. It runs either as a cron job or, when REAPER_INTERVAL_SECONDS
is set, as a background loop inside the API process.

Usage:
    python -m tasks.token_reaper
"""
import asyncio
import logging
from dataclasses import dataclass

from core.config import get_settings
from core.log_config import configure_logging
from db.session import create_store
from services.token_repository import TokenFilter, TokenRepository
from services.token_service import TokenService

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    """Statistics from a sweep run."""

    reaped: int = 0
    remaining_ephemeral: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "reaped": self.reaped,
            "remaining_ephemeral": self.remaining_ephemeral,
        }


async def sweep(service: TokenService) -> SweepStats:
    """Reap every expired token and report what is left."""
    reaped = await service.sweep_expired()
    remaining = await service.count_tokens(TokenFilter(only_ephemeral=True))
    return SweepStats(reaped=reaped, remaining_ephemeral=remaining)


async def run_reaper(service: TokenService | None = None) -> SweepStats:
    """
    Run one sweep.

    Args:
        service: Token service to sweep with. If None, one is built from the
            configured store and torn down afterwards.

    Returns:
        SweepStats for the run.
    """
    logger.info("Starting token sweep")

    if service is not None:
        stats = await sweep(service)
    else:
        store, engine = await create_store(get_settings())
        try:
            stats = await sweep(TokenService(TokenRepository(store)))
        finally:
            if engine is not None:
                await engine.dispose()

    logger.info("Token sweep complete: %s", stats.to_dict())
    return stats


async def reaper_loop(service: TokenService, interval_seconds: float) -> None:
    """
    Sweep every interval_seconds until cancelled.

    A failed sweep is logged and retried on the next tick.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_reaper(service)
        except Exception:
            logger.exception("Token sweep failed")


def main() -> None:
    """Entry point for running the sweep as a script."""
    configure_logging(get_settings().log_level)
    asyncio.run(run_reaper())


if __name__ == "__main__":
    main()
