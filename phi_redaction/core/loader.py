# phi_redaction/core/loader.py

"""Configuration and pattern loader for the PHI detection engine."""

import yaml
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional

from phi_redaction.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class PatternLoader:
    """Singleton loader for patterns, vocabulary, weights and generator data.

    Loads configuration once from patterns.yaml and caches it for the
    application lifecycle.
    """

    REQUIRED_SECTIONS = ["patterns", "vocabulary", "default_weights", "synthetic"]

    _instance: Optional["PatternLoader"] = None
    _config: Dict[str, Any] = {}
    _loaded: bool = False

    def __new__(cls) -> "PatternLoader":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not PatternLoader._loaded:
            self._load_config()

    def _load_config(self) -> None:
        """Loads patterns.yaml from the module directory.

        Raises:
            ConfigurationError: If file is missing, invalid, or empty.
        """
        try:
            config_path = Path(__file__).parent / "patterns.yaml"

            if not config_path.exists():
                error_msg = f"Configuration file not found: {config_path}"
                logger.error(error_msg)
                raise ConfigurationError(error_msg)

            with open(config_path, "r", encoding="utf-8") as f:
                PatternLoader._config = yaml.safe_load(f)

            if not PatternLoader._config:
                raise ConfigurationError("Configuration file is empty or invalid")

            self._validate_config()

            PatternLoader._loaded = True
            logger.info(
                "Configuration loaded successfully",
                extra={
                    "config_path": str(config_path),
                    "pattern_count": len(PatternLoader._config.get("patterns", {})),
                    "vocab_count": len(PatternLoader._config.get("vocabulary", {})),
                },
            )

        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to parse patterns.yaml: {e}") from e
        except Exception as e:
            if isinstance(e, ConfigurationError):
                raise
            logger.error(f"Configuration loading failed: {e}", exc_info=True)
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def _validate_config(self) -> None:
        """Validates required configuration sections exist.

        Raises:
            ConfigurationError: If required sections are missing.
        """
        missing = [s for s in self.REQUIRED_SECTIONS if s not in PatternLoader._config]

        if missing:
            error_msg = f"Missing required configuration sections: {missing}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg)

    @classmethod
    def get_instance(cls) -> "PatternLoader":
        """Returns the singleton instance of PatternLoader."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_patterns(self, entity_type: str) -> List[Dict[str, Any]]:
        """Returns labeler regex patterns for an entity type.

        Args:
            entity_type: Pattern group name (e.g., 'DATE', 'PHONE', 'MRN')

        Returns:
            List of pattern dictionaries with 'name', 'regex', 'score' keys
        """
        patterns = self._config.get("patterns", {}).get(entity_type, [])
        return patterns if patterns else []

    def get_vocabulary(self, category: str) -> List[str]:
        """Retrieves vocabulary list by category name.

        Args:
            category: Vocabulary category (e.g., 'titles', 'geographic_words')

        Returns:
            List of vocabulary terms, empty list if category not found
        """
        vocab = self._config.get("vocabulary", {}).get(category, [])
        return [str(term) for term in vocab] if vocab else []

    def get_default_weights(self) -> Dict[str, float]:
        """Returns the hand-chosen initial weight for every feature."""
        weights = self._config.get("default_weights", {})
        return {name: float(value) for name, value in weights.items()}

    def get_synthetic(self, key: str) -> List[str]:
        """Returns a word list or the templates used by the synthetic note generator."""
        values = self._config.get("synthetic", {}).get(key, [])
        if not values:
            raise ConfigurationError(f"Synthetic generator section '{key}' is empty")
        return [str(v) for v in values]
