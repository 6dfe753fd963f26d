"""
Configuration service for loading and validating application settings.
"""
import os
import configparser
from typing import Optional, Dict, Any, Mapping
from urllib.parse import urlparse
import logging

from ..models.config import Config, ConfigValidationError, ConfigValidationResult
from ..models.credentials import LoginCredentials
from .container_store import ContainerStore
from .material_sources import source_from_location


ENV_USER = "IDSE_USER"
ENV_PASSWORD = "IDSE_PASSWORD"
ENV_CONTAINER_LOCATION = "IDSE_PFX_URL"


class ConfigService:
    """Service for loading and validating application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._config = None
        if config_path:
            self._config = self.load_config(config_path)

    def get_config(self) -> Config:
        """
        Get the loaded configuration.

        Returns:
            Config object

        Raises:
            ValueError: If no configuration has been loaded
        """
        if self._config is None:
            raise ValueError("No configuration loaded. Call load_config() first.")
        return self._config

    def load_config(self, config_path: str) -> Config:
        """
        Load configuration from a property file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Config object with loaded settings

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid or has validation errors
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config_data = self._load_config_file(config_path)
        config = self._create_config_from_data(config_data)

        validation_result = self.validate_config(config)

        if validation_result.has_errors():
            error_summary = validation_result.get_error_summary()
            raise ValueError(f"Configuration validation failed:\n{error_summary}")

        if validation_result.has_warnings():
            warning_summary = validation_result.get_error_summary()
            self.logger.warning(f"Configuration warnings:\n{warning_summary}")

        self._config = config
        return config

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """Load configuration data from file."""
        config_parser = configparser.ConfigParser()

        try:
            config_parser.read(config_path)
        except configparser.Error as e:
            raise ValueError(f"Failed to parse configuration file: {e}")

        # Flatten to section.key
        config_data = {}
        for section in config_parser.sections():
            for key, value in config_parser.items(section):
                config_data[f"{section}.{key}"] = value

        for key, value in config_parser.defaults().items():
            if key not in config_data:
                config_data[key] = value

        return config_data

    def _create_config_from_data(self, config_data: Dict[str, Any]) -> Config:
        """Create Config object from configuration data."""
        config_mapping = {
            # Portal settings
            "portal.base_url": ("portal_base_url", str),
            "portal_base_url": ("portal_base_url", str),
            "portal.challenge_path": ("challenge_path", str),
            "portal.login_path": ("login_path", str),
            "portal.site_id": ("site_id", str),
            "site_id": ("site_id", str),
            "portal.location": ("location", str),
            "portal.user_agent": ("user_agent", str),

            # Container settings
            "container.cipher": ("container_cipher", str),
            "container_cipher": ("container_cipher", str),

            # Network settings
            "network.request_timeout_seconds": ("request_timeout_seconds", int),
            "request_timeout_seconds": ("request_timeout_seconds", int),
            "network.material_timeout_seconds": ("material_timeout_seconds", int),
            "material_timeout_seconds": ("material_timeout_seconds", int),

            # Container host settings
            "host.address": ("host_address", str),
            "host.port": ("host_port", int),
            "host_port": ("host_port", int),

            # Application settings
            "app.log_level": ("log_level", str),
            "log_level": ("log_level", str),
            "app.log_file_path": ("log_file_path", str),
            "log_file_path": ("log_file_path", str),
        }

        config_kwargs = {}

        for config_key, raw_value in config_data.items():
            if config_key in config_mapping:
                field_name, field_type = config_mapping[config_key]
                try:
                    if field_type == int:
                        value = int(raw_value)
                    else:
                        value = str(raw_value).strip()
                    config_kwargs[field_name] = value
                except (ValueError, TypeError) as e:
                    raise ValueError(f"Invalid value for {config_key}: {raw_value} ({e})")

        return Config(**config_kwargs)

    def validate_config(self, config: Config) -> ConfigValidationResult:
        """
        Validate configuration settings.

        Args:
            config: Configuration object to validate

        Returns:
            ConfigValidationResult with validation results
        """
        errors = []
        warnings = []

        parsed = urlparse(config.portal_base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(ConfigValidationError(
                "portal_base_url",
                "Portal base URL must be an absolute http(s) URL"
            ))
        elif parsed.scheme == "http":
            warnings.append(ConfigValidationError(
                "portal_base_url",
                "Portal base URL is not HTTPS; credentials would travel in clear text",
                "warning"
            ))

        if not config.site_id:
            errors.append(ConfigValidationError(
                "site_id",
                "Site id is required by the challenge and login requests"
            ))

        if not config.challenge_path or not config.login_path:
            errors.append(ConfigValidationError(
                "challenge_path" if not config.challenge_path else "login_path",
                "Challenge and login paths cannot be empty"
            ))

        if not urlparse(config.location).scheme:
            warnings.append(ConfigValidationError(
                "location",
                "Location should be an absolute URL",
                "warning"
            ))

        if config.container_cipher == "tripleDES":
            warnings.append(ConfigValidationError(
                "container_cipher",
                "tripleDES containers use legacy encryption; use aes256 unless the consumer needs it",
                "warning"
            ))

        if config.host_address not in ("127.0.0.1", "localhost", "::1"):
            warnings.append(ConfigValidationError(
                "host_address",
                f"Container host listens on {config.host_address}; containers are served without authentication",
                "warning"
            ))

        if config.log_file_path:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir and not os.path.exists(log_dir):
                warnings.append(ConfigValidationError(
                    "log_file_path",
                    f"Log directory does not exist: {log_dir}",
                    "warning"
                ))

        if config.request_timeout_seconds > 300:
            warnings.append(ConfigValidationError(
                "request_timeout_seconds",
                "Request timeout over 5 minutes may cause performance issues",
                "warning"
            ))

        all_issues = errors + warnings
        return ConfigValidationResult(
            is_valid=len(errors) == 0,
            errors=all_issues,
            warnings=[]
        )

    def load_credentials_from_env(self,
                                  environ: Optional[Mapping[str, str]] = None,
                                  store: Optional[ContainerStore] = None) -> LoginCredentials:
        """
        Build login credentials from environment variables.

        Args:
            environ: Mapping to read instead of os.environ
            store: Container store used to resolve store URLs in-process

        Raises:
            ValueError: If any of the variables is missing or empty
        """
        environ = os.environ if environ is None else environ
        missing = [
            name for name in (ENV_USER, ENV_PASSWORD, ENV_CONTAINER_LOCATION)
            if not environ.get(name)
        ]
        if missing:
            raise ValueError(f"Missing environment variables: {', '.join(missing)}")

        timeout = self._config.material_timeout_seconds if self._config else Config().material_timeout_seconds
        source = source_from_location(environ[ENV_CONTAINER_LOCATION], timeout=timeout, store=store)
        return LoginCredentials(
            username=environ[ENV_USER],
            password=environ[ENV_PASSWORD],
            container_source=source,
        )

    def create_default_config_file(self, config_path: str) -> None:
        """
        Create a default configuration file with example settings.

        Args:
            config_path: Path where to create the config file
        """
        config_content = """# IDSE signer configuration file
# Portal credentials are read from IDSE_USER, IDSE_PASSWORD and IDSE_PFX_URL.

[portal]
base_url = https://idse.imss.gob.mx/imss
challenge_path = SecuenciaFirma.idse
login_path = AccesoIDSE.idse
site_id = 9
location = https://idse.imss.gob.mx/imss/

[container]
cipher = tripleDES

[network]
request_timeout_seconds = 30
material_timeout_seconds = 20

[host]
address = 127.0.0.1
port = 8080

[app]
log_level = INFO
log_file_path = logs/idse_signer.log
"""

        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(config_path, 'w') as f:
            f.write(config_content)

        self.logger.info(f"Created default configuration file: {config_path}")
