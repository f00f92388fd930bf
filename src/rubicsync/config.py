from dataclasses import dataclass
from typing import List, Optional

from pydantic_settings import BaseSettings

from rubicsync.urlcheck import validate_base_url


@dataclass(frozen=True)
class TargetEnvironment:
    """One Tripletex tenant the engine can sync into."""

    name: str
    base_url: str
    consumer_token: str
    employee_token: str


@dataclass(frozen=True)
class SourceEndpoint:
    base_url: str
    api_key: str
    organization_id: int


class Settings(BaseSettings):
    database_url: str = "sqlite:///./rubicsync.db"

    rubic_api_base_url: str = "https://rubicexternalapitest.azurewebsites.net"
    rubic_api_key: str = ""
    rubic_organization_id: int = 0

    tripletex_production_base_url: str = "https://tripletex.no/v2"
    tripletex_production_consumer_token: str = ""
    tripletex_production_employee_token: str = ""

    tripletex_sandbox_base_url: str = "https://api.tripletex.io/v2"
    tripletex_sandbox_consumer_token: str = ""
    tripletex_sandbox_employee_token: str = ""

    cron_secret: Optional[str] = None
    sync_hour: int = 2
    stale_run_minutes: int = 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def source_endpoint(self) -> SourceEndpoint:
        """Validated Rubic endpoint. Raises ConfigurationError if invalid."""
        validate_base_url(self.rubic_api_base_url, "rubic")
        return SourceEndpoint(
            base_url=self.rubic_api_base_url,
            api_key=self.rubic_api_key,
            organization_id=self.rubic_organization_id,
        )

    def target_environments(self) -> List[TargetEnvironment]:
        """Enabled Tripletex environments, production first.

        An environment is enabled when both of its tokens are set. Every
        enabled endpoint is validated here, before any client exists.

        Raises:
            ConfigurationError: if an enabled environment has a bad base URL.
        """
        envs = []
        for name in ("production", "sandbox"):
            consumer = getattr(self, f"tripletex_{name}_consumer_token")
            employee = getattr(self, f"tripletex_{name}_employee_token")
            if not (consumer and employee):
                continue
            base_url = getattr(self, f"tripletex_{name}_base_url")
            validate_base_url(base_url, "tripletex")
            envs.append(TargetEnvironment(name, base_url, consumer, employee))
        return envs


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
