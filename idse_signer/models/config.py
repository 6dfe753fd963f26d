"""
Configuration data models for the portal sign-in tooling.
"""
from dataclasses import dataclass


CONTAINER_CIPHERS = ("tripleDES", "aes256")


@dataclass
class Config:
    """Main configuration class containing all application settings."""

    # Portal settings
    portal_base_url: str = "https://idse.imss.gob.mx/imss"
    challenge_path: str = "SecuenciaFirma.idse"
    login_path: str = "AccesoIDSE.idse"
    site_id: str = "9"
    location: str = "https://idse.imss.gob.mx/imss/"
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/18.0 Safari/605.1.15"
    )

    # Network settings
    request_timeout_seconds: int = 30
    material_timeout_seconds: int = 20

    # Container settings
    container_cipher: str = "tripleDES"

    # Container host settings
    host_address: str = "127.0.0.1"
    host_port: int = 8080

    # Application settings
    log_level: str = "INFO"
    log_file_path: str = "logs/idse_signer.log"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()

    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        if not isinstance(self.request_timeout_seconds, int) or self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be a positive integer")

        if not isinstance(self.material_timeout_seconds, int) or self.material_timeout_seconds <= 0:
            raise ValueError("material_timeout_seconds must be a positive integer")

        if not isinstance(self.host_port, int) or not (1 <= self.host_port <= 65535):
            raise ValueError("host_port must be an integer between 1 and 65535")

        if self.container_cipher not in CONTAINER_CIPHERS:
            raise ValueError(f"container_cipher must be one of: {', '.join(CONTAINER_CIPHERS)}")

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @property
    def challenge_url(self) -> str:
        return f"{self.portal_base_url.rstrip('/')}/{self.challenge_path.lstrip('/')}"

    @property
    def login_url(self) -> str:
        return f"{self.portal_base_url.rstrip('/')}/{self.login_path.lstrip('/')}"

    @property
    def host_base_url(self) -> str:
        return f"http://{self.host_address}:{self.host_port}"


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    severity: str = "error"  # error, warning

    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: list[ConfigValidationError]
    warnings: list[ConfigValidationError]

    def __post_init__(self):
        """Separate errors and warnings."""
        all_issues = self.errors + self.warnings
        self.errors = [e for e in all_issues if e.severity == "error"]
        self.warnings = [e for e in all_issues if e.severity == "warning"]

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []

        if self.errors:
            lines.append("Configuration Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")

        if self.warnings:
            lines.append("Configuration Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines) if lines else "Configuration is valid"
