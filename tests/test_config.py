"""Test configuration management."""

from ignite_store.config import (
    UNSET_SIMILARITY_THRESHOLD,
    UNSET_TOP_K,
    IgniteStoreConfig,
    VectorStoreProperties,
    get_config,
    init_logging,
)


class TestIgniteStoreConfig:
    """Test IgniteStoreConfig loading from the environment."""

    def test_defaults_use_unset_sentinels(self, monkeypatch):
        monkeypatch.delenv("IGNITE_STORE_VECTORSTORE__DEFAULT_TOP_K", raising=False)
        config = IgniteStoreConfig()

        assert config.vectorstore.default_top_k == UNSET_TOP_K
        assert config.vectorstore.default_similarity_threshold == UNSET_SIMILARITY_THRESHOLD
        assert config.vectorstore.collection_name is None
        assert config.embedding_provider == "ignite"
        assert config.database_name == "ignite"

    def test_nested_vectorstore_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("IGNITE_STORE_VECTORSTORE__COLLECTION_NAME", "articles")
        monkeypatch.setenv("IGNITE_STORE_VECTORSTORE__NAMESPACE", "vec")
        monkeypatch.setenv("IGNITE_STORE_VECTORSTORE__DEFAULT_TOP_K", "7")
        monkeypatch.setenv("IGNITE_STORE_VECTORSTORE__DEFAULT_SIMILARITY_THRESHOLD", "0.8")

        config = IgniteStoreConfig()

        assert config.vectorstore.collection_name == "articles"
        assert config.vectorstore.namespace == "vec"
        assert config.vectorstore.default_top_k == 7
        assert config.vectorstore.default_similarity_threshold == 0.8

    def test_provider_and_log_level_are_normalized(self, monkeypatch):
        monkeypatch.setenv("IGNITE_STORE_EMBEDDING_PROVIDER", "  OpenAI ")
        monkeypatch.setenv("IGNITE_STORE_LOG_LEVEL", "debug")

        config = IgniteStoreConfig()

        assert config.embedding_provider == "openai"
        assert config.log_level == "DEBUG"

    def test_out_of_range_values_are_kept_for_build_time_validation(self):
        """Range checks belong to the configurator, so loading never coerces values."""
        properties = VectorStoreProperties(default_top_k=-5, default_similarity_threshold=1.5)
        assert properties.default_top_k == -5
        assert properties.default_similarity_threshold == 1.5

    def test_get_config_is_cached(self):
        get_config.cache_clear()
        try:
            assert get_config() is get_config()
        finally:
            get_config.cache_clear()

    def test_is_test_env(self):
        assert IgniteStoreConfig(env="test").is_test_env
        assert not IgniteStoreConfig(env="prod").is_test_env


def test_init_logging_writes_to_log_file(tmp_path):
    log_file = tmp_path / "logs" / "ignite.log"
    config = IgniteStoreConfig(log_level="debug", log_file=log_file)

    init_logging(config)

    from loguru import logger

    logger.info("hello from test")
    logger.complete()
    assert log_file.parent.exists()
    logger.remove()
