"""
APScheduler jobs for PostPurchase Pro.

The nightly job (03:00 UTC) recomputes stored conversion rates from their
counters.
"""
import os
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

_scheduler = None
_flask_app = None


def init_scheduler(app):
    """Start the job scheduler when FLASK_ENV=production or ENABLE_SCHEDULER=true."""
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.debug('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # One scheduler per host, not per gunicorn worker
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            # a missed night runs once, late by up to an hour
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 3600,
        }
    )

    _scheduler.add_job(
        run_conversion_rate_repair,
        trigger=CronTrigger(hour=3, minute=0),
        id='conversion_rate_repair',
        name='Recompute daily analytics conversion rates',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'
    logger.info('[Scheduler] Started: conversion rate repair daily at 3:00 UTC')

    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Stopped')


def run_conversion_rate_repair():
    """
    Recompute conversion_rate on every daily analytics row.

    Concurrent event recording can leave a stale rate behind; this
    brings every row back in line with its counters.
    """
    if _flask_app is None:
        logger.error('[Scheduler] No app registered, skipping conversion rate repair')
        return

    logger.info('[Scheduler] Starting conversion rate repair...')

    with _flask_app.app_context():
        from ..extensions import db
        from ..services.analytics_service import AnalyticsService

        try:
            fixed = AnalyticsService.repair_conversion_rates()
            logger.info(f'[Scheduler] Conversion rate repair complete: {fixed} rows fixed')
        except Exception as e:
            db.session.rollback()
            logger.exception(f'[Scheduler] Conversion rate repair failed: {e}')
