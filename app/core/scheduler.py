import logging
import os
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.config import settings
from app.core.database import SessionLocal
from app.services.performance import performance_service

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(timezone="UTC")


async def compute_daily_performance():
    db = SessionLocal()
    try:
        summaries = await performance_service.compute_all_active_sessions(db)
        stored = sum(s.portfolios for s in summaries)
        failed = sum(s.failed for s in summaries)
        logger.info(f"Daily performance computed for {len(summaries)} sessions: {stored} portfolios stored, {failed} failed")
    except Exception as e:
        logger.error(f"Error computing daily performance: {e}", exc_info=True)
    finally:
        db.close()


def start_scheduler():
    if os.getenv("TESTING") == "true":
        logger.info("Scheduler disabled in test environment")
        return

    if not scheduler.running:
        scheduler.add_job(
            compute_daily_performance,
            'cron',
            hour=settings.PERFORMANCE_JOB_HOUR,
            minute=0,
            id='daily_portfolio_performance',
            name='Compute Daily Portfolio Performance',
            replace_existing=True
        )
        scheduler.start()
        logger.info(f"Scheduler started with daily performance job at {settings.PERFORMANCE_JOB_HOUR}:00 UTC")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
