#!/usr/bin/env python3
"""
Test suite for TalentRadar.

    # Run all tests
    python -m pytest tests/ -v

    # Skip tests that touch the (SQLite) database
    python -m pytest tests/ -v -m "not db"

No test reaches the network: HTTP, Redis and OpenAI are mocked or faked
(see tests/mocks/fakes.py).
"""
