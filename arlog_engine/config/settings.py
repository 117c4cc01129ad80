from typing import Optional, Tuple, Type, Dict, Any
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource
import yaml
import os

class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    A simple settings source that loads variables from a YAML file
    at the project's config/config.yaml location.
    """
    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        pass

    def __call__(self) -> Dict[str, Any]:
        config_file = os.getenv("ARLOG_CONFIG_FILE", "config/config.yaml")
        if os.path.exists(config_file):
            with open(config_file) as f:
                return yaml.safe_load(f) or {}
        return {}

class EngineConfig(BaseSettings):
    # Environment
    env: str = Field("development", description="Environment: development, staging, production")

    # Gap detection
    min_gap_ms: float = Field(1000.0, ge=0)
    gap_warning_ms: float = 5000.0
    gap_critical_ms: float = 60000.0
    gap_report_limit: Optional[int] = 50

    # Anomaly detection
    sigma_threshold: float = Field(2.0, gt=0)
    sigma_critical: float = 4.0
    sigma_high: float = 3.0
    sigma_medium: float = 2.5
    max_reported_sigma: float = 99.0
    baseline_max_history: int = 500
    baseline_min_samples: int = 3
    update_baseline: bool = True

    # Filter complexity
    filter_top_n: int = 50
    filter_per_transaction_limit: int = 100

    # Escalations
    delayed_escalation_min_ms: float = 0.0
    delayed_escalation_limit: int = 50

    # Exceptions
    top_error_codes: int = 10

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def validate_thresholds(self) -> tuple[bool, str]:
        """
        Validate that the severity bands are ordered.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if self.gap_warning_ms >= self.gap_critical_ms:
            return False, "gap_warning_ms must be lower than gap_critical_ms"

        if not (self.sigma_medium <= self.sigma_high <= self.sigma_critical):
            return False, "sigma bands must satisfy medium <= high <= critical"

        if self.max_reported_sigma < self.sigma_critical:
            return False, "max_reported_sigma must not be lower than sigma_critical"

        return True, "Thresholds valid"

    model_config = SettingsConfigDict(
        env_prefix="ARLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )
