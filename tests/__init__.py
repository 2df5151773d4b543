"""
Test Suite

Contains unit tests for the unitrade library.

Structure:
- tests/conftest.py: FakeConnector and facade fixtures (no network access)
- tests/unit/: Tests for individual components (numeric, options, registry,
  trading facades, exchange manager, Binance connector)

Uses pytest with pytest-asyncio for testing async functionality.
"""
