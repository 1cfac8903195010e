# tests/test_factory.py

"""Tests for backend selection and context wiring."""

import unittest
from pathlib import Path
from unittest.mock import patch

from src.services.auth import LocalAuthBackend, RestAuthBackend
from src.services.factory import build_backend, build_context
from src.storage.rest_store import RestRecordStore
from src.storage.sqlite_store import SQLiteRecordStore


class TestBuildBackend(unittest.TestCase):
    """The configured backend decides the store/auth pair."""

    def test_sqlite(self) -> None:
        """sqlite pairs the SQLite store with local accounts."""
        store, auth = build_backend("sqlite", Path(":memory:"))
        self.assertIsInstance(store, SQLiteRecordStore)
        self.assertIsInstance(auth, LocalAuthBackend)
        store.close()

    @patch("src.storage.rest_store.curl_requests.Session")
    def test_rest(self, _mock_session: object) -> None:
        """rest pairs the PostgREST store with hosted auth."""
        store, auth = build_backend("REST")
        self.assertIsInstance(store, RestRecordStore)
        self.assertIsInstance(auth, RestAuthBackend)

    def test_unknown_backend(self) -> None:
        """Anything else is a configuration error."""
        with self.assertRaises(ValueError):
            build_backend("mongo")

    def test_context_starts_signed_out(self) -> None:
        """A fresh context has nobody signed in and an empty cache."""
        ctx = build_context("sqlite", Path(":memory:"))
        try:
            self.assertIsNone(ctx.auth.user)
            self.assertEqual(ctx.cache.suppliers, [])
            self.assertIs(ctx.prices.cache, ctx.cache)
        finally:
            ctx.close()


if __name__ == "__main__":
    unittest.main()
