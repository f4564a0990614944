import asyncio
import logging
from app.database import get_db_connection

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 60 * 60


async def expire_stale_invitations():
    """
    Mark PENDING invitations past their expiry as EXPIRED.
    Frees the (email, organization) slot for a new invitation.
    """
    async with get_db_connection() as conn:
        result = await conn.execute("""
            UPDATE invitations
            SET status = 'EXPIRED'
            WHERE status = 'PENDING' AND expires_at <= NOW()
        """)

    # Parse result like "UPDATE 3"
    count = int(result.split()[-1]) if result else 0
    if count:
        logger.info(f"Invitation cleanup complete: {count} invitations expired")
    return count


async def cleanup_expired_sessions():
    """Deactivate sessions past their expiry"""
    async with get_db_connection() as conn:
        result = await conn.execute("""
            UPDATE sessions
            SET is_active = false
            WHERE is_active = true AND expires_at < NOW()
        """)

    count = int(result.split()[-1]) if result else 0
    if count:
        logger.info(f"Session cleanup complete: {count} sessions deactivated")
    return count


async def run_cleanup_once():
    return {
        'invitations': await expire_stale_invitations(),
        'sessions': await cleanup_expired_sessions(),
    }


async def run_cleanup_loop(interval: int = CLEANUP_INTERVAL_SECONDS):
    """
    Main cleanup loop that runs continuously.
    """
    logger.info("Starting cleanup background task...")

    while True:
        try:
            await run_cleanup_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in cleanup loop: {e}")

        await asyncio.sleep(interval)
