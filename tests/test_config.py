"""
Unit tests for configuration
"""

import os

import pytest

from recstream.core.config import DEFAULT_TRAINING_WEIGHTS, Settings, TrainingConfig
from recstream.core.exceptions import ValidationError


class TestTrainingConfig:
    """Test cases for TrainingConfig"""

    def test_defaults(self):
        config = TrainingConfig.from_dict(None)

        assert config.weights == DEFAULT_TRAINING_WEIGHTS
        assert config.time_decay == 0.9

    def test_partial_config_keeps_defaults(self):
        config = TrainingConfig.from_dict({"timeDecay": 0.5})

        assert config.time_decay == 0.5
        assert config.weights == DEFAULT_TRAINING_WEIGHTS

    def test_weights_coerced_to_float(self):
        config = TrainingConfig.from_dict({"weights": {"view": 1, "purchase": 4}})

        assert config.to_dict() == {"weights": {"view": 1.0, "purchase": 4.0}, "time_decay": 0.9}

    @pytest.mark.parametrize("data", [
        {"weights": {}},
        {"weights": {"click": 1.0}},
        {"weights": {"view": True}},
        {"time_decay": "slow"},
    ])
    def test_malformed(self, data):
        with pytest.raises(ValidationError):
            TrainingConfig.from_dict(data)


class TestSettings:
    """Test cases for Settings"""

    def test_windows_in_seconds(self):
        settings = Settings()

        assert settings.training_window_seconds == 30 * 86400
        assert settings.popularity_window_seconds == 7 * 86400

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "recstream.yaml"
        path.write_text(
            "recstream:\n"
            "  cache_ttl_seconds: 60\n"
            "  block_rejected_models: true\n"
            "  redis_url: redis://cache:6379\n",
            encoding="utf-8"
        )

        settings = Settings.from_yaml(str(path))

        assert settings.cache_ttl_seconds == 60
        assert settings.block_rejected_models is True
        assert settings.redis_url == "redis://cache:6379"
        assert settings.training_window_days == 30

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RECSTREAM_CACHE_TTL_SECONDS", "120")
        monkeypatch.setenv("RECSTREAM_MIN_INTERACTIONS", "5")
        monkeypatch.setenv("RECSTREAM_BLOCK_REJECTED_MODELS", "yes")
        monkeypatch.setenv("RECSTREAM_DATABASE_URL", "postgresql://localhost/recs")

        settings = Settings.from_env(dotenv_path=str(tmp_path / "missing.env"))

        assert settings.cache_ttl_seconds == 120.0
        assert settings.min_interactions == 5
        assert settings.block_rejected_models is True
        assert settings.database_url == "postgresql://localhost/recs"

    def test_from_dotenv_file(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("RECSTREAM_SIMILAR_USERS_LIMIT=7\n", encoding="utf-8")

        try:
            settings = Settings.from_env(dotenv_path=str(path))
        finally:
            os.environ.pop("RECSTREAM_SIMILAR_USERS_LIMIT", None)

        assert settings.similar_users_limit == 7

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            Settings.from_mapping({"cache_size_gb": 16})
