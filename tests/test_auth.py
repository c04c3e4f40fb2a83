# tests/test_auth.py

"""Tests for sync trigger authorization."""

import unittest
from unittest.mock import patch

from src.config.settings import Settings
from src.services.auth import authorize_trigger
from src.services.errors import AggregatorError, UnauthorizedError


@patch.object(Settings, "CRON_SECRET", "cron-s3cret")
@patch.object(Settings, "AGGREGATOR_SYNC_KEY", "sync-k3y")
class TestAuthorizeTrigger(unittest.TestCase):
    """Bearer key or cron secret; anything else is rejected."""

    def test_bearer_key_accepted(self) -> None:
        authorize_trigger("Bearer sync-k3y")

    def test_cron_secret_accepted(self) -> None:
        authorize_trigger(None, "cron-s3cret")

    def test_wrong_bearer_rejected(self) -> None:
        with self.assertRaises(UnauthorizedError) as ctx:
            authorize_trigger("Bearer nope")
        self.assertEqual(ctx.exception.message, "Unauthorized")

    def test_bare_key_without_scheme_rejected(self) -> None:
        with self.assertRaises(UnauthorizedError):
            authorize_trigger("sync-k3y")

    def test_missing_credentials_rejected(self) -> None:
        with self.assertRaises(UnauthorizedError):
            authorize_trigger(None, None)

    def test_wrong_cron_secret_rejected(self) -> None:
        with self.assertRaises(UnauthorizedError):
            authorize_trigger(None, "guess")

    def test_unauthorized_is_aggregator_error(self) -> None:
        self.assertTrue(issubclass(UnauthorizedError, AggregatorError))


class TestUnconfiguredKeys(unittest.TestCase):
    """Without a configured sync key the trigger is open."""

    @patch.object(Settings, "AGGREGATOR_SYNC_KEY", None)
    def test_open_when_no_key(self) -> None:
        authorize_trigger(None)

    @patch.object(Settings, "CRON_SECRET", None)
    @patch.object(Settings, "AGGREGATOR_SYNC_KEY", "sync-k3y")
    def test_cron_header_needs_configured_secret(self) -> None:
        """Any cron header value is rejected when no secret is set."""
        with self.assertRaises(UnauthorizedError):
            authorize_trigger(None, "anything")


if __name__ == "__main__":
    unittest.main()
