"""Shared pytest fixtures for the full Audiobook Maker test suite."""

from __future__ import annotations

import pytest

from tests.fakes import FakeSpeechBackend, sample_sentences


@pytest.fixture
def sample_text() -> str:
    """9505 characters that segment into 3 chunks at the default size of 4000."""

    return sample_sentences(194)


@pytest.fixture
def fake_backend() -> FakeSpeechBackend:
    return FakeSpeechBackend()
