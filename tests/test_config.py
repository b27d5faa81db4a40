"""
Unit tests for environment-based configuration.

Tests .env parsing, process-env precedence and EmbeddingCoreConfig.from_env.
"""

import pytest

from semantic_recall.infrastructure.config import (
    BUILTIN_PROVIDERS,
    EmbeddingCoreConfig,
    api_key,
    collection_name,
    env_get,
    env_int,
    parse_dotenv,
)
from semantic_recall.infrastructure.logging import LOG_FORMAT, get_logger


@pytest.mark.env
class TestDotenvParsing:
    """Test .env file parsing functionality."""

    def test_missing_file(self, tmp_path):
        assert parse_dotenv(tmp_path / ".env") == {}

    def test_parse_simple_dotenv(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text(
            """
# Comment line
MEMORY_COLLECTION_NAME=test_collection
COHERE_API_KEY="quoted-key"
OLLAMA_URL='http://localhost:11434'
NOT_A_PAIR
=no_key
"""
        )
        assert parse_dotenv(path) == {
            "MEMORY_COLLECTION_NAME": "test_collection",
            "COHERE_API_KEY": "quoted-key",
            "OLLAMA_URL": "http://localhost:11434",
        }

    def test_value_with_equals(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("QDRANT_URL=http://host:6333/?a=b\n")
        assert parse_dotenv(path)["QDRANT_URL"] == "http://host:6333/?a=b"


@pytest.mark.env
class TestEnvResolution:
    """Test process env and .env fallback."""

    def test_process_env_wins(self, clean_environment, monkeypatch):
        (clean_environment / ".env").write_text("MEMORY_COLLECTION_NAME=from_file\n")
        monkeypatch.setenv("MEMORY_COLLECTION_NAME", "from_env")
        assert collection_name() == "from_env"

    def test_dotenv_fallback(self, clean_environment):
        (clean_environment / ".env").write_text("MISTRAL_API_KEY=file-key\n")
        assert api_key("mistral") == "file-key"

    def test_blank_is_unset(self, clean_environment, monkeypatch):
        monkeypatch.setenv("MEMORY_COLLECTION_NAME", "   ")
        assert env_get("MEMORY_COLLECTION_NAME") is None

    def test_invalid_number_uses_default(self, clean_environment, monkeypatch):
        monkeypatch.setenv("EMBED_FALLBACK_DIMENSIONS", "many")
        assert env_int("EMBED_FALLBACK_DIMENSIONS", 1536) == 1536


@pytest.mark.env
class TestCoreConfig:
    """Test EmbeddingCoreConfig defaults and env overrides."""

    def test_defaults(self, clean_environment):
        cfg = EmbeddingCoreConfig.from_env()
        assert [s.name for s in cfg.providers] == ["cohere", "mistral", "google"]
        assert [s.priority for s in cfg.providers] == [1, 2, 3]
        assert cfg.cache_ttl_seconds == 24 * 60 * 60
        assert cfg.cache_max_entries == 1000
        assert cfg.cache_evict_count == 500
        assert cfg.request_timeout_seconds == 30.0
        assert cfg.probe_timeout_seconds == 5.0
        assert cfg.fallback_dimensions == 1536
        assert cfg.default_limit == 5
        assert cfg.default_min_similarity == 0.7

    def test_provider_order_and_model_override(self, clean_environment, monkeypatch):
        monkeypatch.setenv("EMBED_PROVIDERS", "google, ollama, bogus, cohere")
        monkeypatch.setenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")
        cfg = EmbeddingCoreConfig.from_env()

        assert [(s.name, s.priority) for s in cfg.providers] == [("google", 1), ("ollama", 2), ("cohere", 3)]
        assert cfg.provider("ollama").model == "nomic-embed-text"
        assert cfg.provider("google").dimensions == BUILTIN_PROVIDERS["google"].dimensions
        assert cfg.provider("mistral") is None

    def test_numeric_overrides(self, clean_environment, monkeypatch):
        monkeypatch.setenv("EMBED_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("EMBED_REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("EMBED_FALLBACK_DIMENSIONS", "768")
        cfg = EmbeddingCoreConfig.from_env()
        assert cfg.cache_ttl_seconds == 60.0
        assert cfg.request_timeout_seconds == 2.5
        assert cfg.fallback_dimensions == 768

    def test_unknown_providers_only_falls_back_to_defaults(self, clean_environment, monkeypatch):
        monkeypatch.setenv("EMBED_PROVIDERS", "openai")
        cfg = EmbeddingCoreConfig.from_env()
        assert [s.name for s in cfg.providers] == ["cohere", "mistral", "google"]


@pytest.mark.unit
class TestLogging:
    """Test the logger helper."""

    def test_format_names_the_component(self):
        assert LOG_FORMAT == "%(levelname)s | %(name)s | %(message)s"

    def test_get_logger_uses_given_name(self):
        assert get_logger("semantic_recall.cache").name == "semantic_recall.cache"
