"""
Pytest configuration and shared fixtures for tokenscope tests.
"""

import hashlib
import tempfile
from pathlib import Path
from typing import Generator, List

import pytest

from tokenscope.core.config import AnalysisConfig, TokenscopeConfig
from tokenscope.core.models import TokenCapture
from tokenscope.sequencer.analyzer import TokenAnalyzer


def hash_tokens(count: int, nbytes: int = 16, label: str = "fixture") -> List[str]:
    """Deterministic hex tokens with CSPRNG-quality bytes (SHA-256 of a counter)."""
    return [
        hashlib.sha256(f"{label}-{i}".encode()).hexdigest()[: nbytes * 2]
        for i in range(count)
    ]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def test_config(temp_dir: Path) -> TokenscopeConfig:
    """Provide a test configuration."""
    return TokenscopeConfig(
        environment="test",
        debug=True,
        logging={"level": "DEBUG", "file_path": str(temp_dir / "tokenscope.log")},
        analysis={"collision_sample_size": 200},
    )


@pytest.fixture
def analyzer() -> TokenAnalyzer:
    """Analyzer with default thresholds."""
    return TokenAnalyzer(AnalysisConfig())


@pytest.fixture
def token_factory():
    """Build deterministic hex tokens: token_factory(count, nbytes=16, label=...)."""
    return hash_tokens


@pytest.fixture(scope="session")
def random_hex_tokens() -> List[str]:
    """3000 distinct 128-bit hex tokens."""
    return hash_tokens(3000)


@pytest.fixture
def sample_captures() -> List[TokenCapture]:
    """A small mixed batch of captures as a collector would produce them."""
    return [
        TokenCapture.from_token(
            token,
            request_sent="GET /login HTTP/1.1\nHost: example.com",
            response_received='{"session": "%s"}' % token,
            extracted_from="JSON response",
        )
        for token in hash_tokens(20, label="capture")
    ]
