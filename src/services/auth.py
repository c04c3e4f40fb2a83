# src/services/auth.py

"""Shared-secret authorization for sync triggers."""

import hmac
import logging

from src.config.settings import Settings
from src.services.errors import UnauthorizedError

logger = logging.getLogger("aggregator.auth")


def _matches(given: str | None, expected: str | None) -> bool:
    if not given or not expected:
        return False
    return hmac.compare_digest(given.encode(), expected.encode())


def authorize_trigger(
    authorization: str | None,
    cron_secret: str | None = None,
) -> None:
    """Allow a trigger carrying the sync key or the scheduler's secret.

    Accepts ``Authorization: Bearer <AGGREGATOR_SYNC_KEY>`` or a cron
    secret header equal to ``CRON_SECRET``.  When no sync key is
    configured every trigger is allowed.

    Raises:
        UnauthorizedError: a key is configured and neither credential
            matches.
    """
    sync_key = Settings.AGGREGATOR_SYNC_KEY
    if not sync_key:
        return
    if _matches(authorization, f"Bearer {sync_key}"):
        return
    if _matches(cron_secret, Settings.CRON_SECRET):
        return
    logger.warning("Rejected sync trigger with missing or bad credentials")
    msg = "Unauthorized"
    raise UnauthorizedError(msg)
