"""
Config manager - reads and manages the care simulation settings
"""
from typing import Any, Dict, Optional

from ..pet.models import CareProfile, DecayRounding

# Multi-pet "animal" rules and single-pet "puppy" rules
PROFILES: Dict[str, Dict[str, Any]] = {
    "animal": {
        "decay_rounding": DecayRounding.FLOORED,
        "default_hunger": 70.0,
        "default_happiness": 70.0,
        "feed_duration": 2.0,
        "play_duration": 2.0,
    },
    "puppy": {
        "decay_rounding": DecayRounding.CONTINUOUS,
        "default_hunger": 80.0,
        "default_happiness": 80.0,
        "feed_duration": 3.0,
        "play_duration": 3.0,
    },
}


class ConfigManager:
    """
    Config manager

    Holds a flat settings dict. Hosts overlay their own values with
    ``load_config``; engines ask for a ``CareProfile`` built from the result.
    """

    # Default configuration (flat structure)
    DEFAULT_CONFIG = {
        "care_profile": "animal",
        "departure_threshold_days": 3.0,
        "waste_base_interval": 1800.0,
        "pet_happiness_gain": 15.0,
        "default_pet_name": "No name yet",
        "sound_enabled_default": True,
        "data_dir": None,
    }

    _instance: Optional['ConfigManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        """Singleton"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._config = cls.DEFAULT_CONFIG.copy()
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'ConfigManager':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self, config: Dict[str, Any]) -> None:
        """
        Load configuration

        Args:
            config: host supplied settings (flat structure)
        """
        if config:
            self._config.update(config)

    def reset(self) -> None:
        """Drop every override and go back to ``DEFAULT_CONFIG``."""
        self._config = self.DEFAULT_CONFIG.copy()

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def profile(self, name: Optional[str] = None) -> CareProfile:
        """
        Build the care profile for ``name`` (defaults to ``care_profile``).

        Flat overrides such as ``departure_threshold_days`` apply on top of
        the preset.

        Raises:
            ValueError: unknown profile name or an override out of range
        """
        name = name or self._config.get("care_profile", "animal")
        if name not in PROFILES:
            raise ValueError(f"unknown care profile: {name}")
        values = dict(PROFILES[name])
        for key in CareProfile.model_fields:
            if key in self._config and key != "name":
                values[key] = self._config[key]
        return CareProfile(name=name, **values)

    @property
    def departure_threshold_days(self) -> float:
        return self._config.get("departure_threshold_days", 3.0)

    @property
    def default_pet_name(self) -> str:
        return self._config.get("default_pet_name", "No name yet")

    @property
    def sound_enabled_default(self) -> bool:
        return self._config.get("sound_enabled_default", True)


# Global config instance
config = ConfigManager.get_instance()


def get_config() -> ConfigManager:
    return config
