from typing import List, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from plugnpin.utils.durations import parse_duration
from plugnpin.utils.errors import ConfigurationError


class Settings(BaseSettings):
    # General
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    dry_run: bool = Field(default=False)
    run_interval: float = Field(default=3600.0)  # seconds, accepts "1h", "30m", ...
    request_timeout: float = Field(default=10.0)

    # Docker
    docker_host: str = Field(default="")
    docker_hosts: str = Field(default="")  # comma separated

    # Nginx Proxy Manager
    nginx_proxy_manager_host: str = Field(default="")
    nginx_proxy_manager_username: str = Field(default="")
    nginx_proxy_manager_password: str = Field(default="")

    # Pi-hole
    pihole_disabled: bool = Field(default=False)
    pihole_host: str = Field(default="")
    pihole_password: str = Field(default="")

    # AdGuard Home
    adguard_home_disabled: bool = Field(default=True)
    adguard_home_host: str = Field(default="")
    adguard_home_username: str = Field(default="")
    adguard_home_password: str = Field(default="")

    model_config = {"env_file": ".env", "extra": "ignore"}

    @field_validator("run_interval", mode="before")
    @classmethod
    def validate_run_interval(cls, value: Union[str, int, float]) -> float:
        seconds = parse_duration(value)
        if seconds < 0:
            raise ValueError("RUN_INTERVAL must be >= 0")
        return seconds

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()

    @property
    def docker_host_list(self) -> List[str]:
        """Docker hosts to watch. An empty string means "use the environment defaults"."""
        hosts = [h.strip() for h in self.docker_hosts.split(",") if h.strip()]
        if hosts:
            return hosts
        return [self.docker_host]

    def validate_backends(self) -> None:
        missing: List[str] = []

        if not self.nginx_proxy_manager_host:
            missing.append("NGINX_PROXY_MANAGER_HOST")
        if not self.nginx_proxy_manager_username:
            missing.append("NGINX_PROXY_MANAGER_USERNAME")
        if not self.nginx_proxy_manager_password:
            missing.append("NGINX_PROXY_MANAGER_PASSWORD")

        if not self.pihole_disabled:
            if not self.pihole_host:
                missing.append("PIHOLE_HOST")
            if not self.pihole_password:
                missing.append("PIHOLE_PASSWORD")

        if not self.adguard_home_disabled:
            if not self.adguard_home_host:
                missing.append("ADGUARD_HOME_HOST")
            if not self.adguard_home_username:
                missing.append("ADGUARD_HOME_USERNAME")
            if not self.adguard_home_password:
                missing.append("ADGUARD_HOME_PASSWORD")

        if missing:
            raise ConfigurationError(f"Missing environment variables: {', '.join(missing)}")


def load_settings() -> Settings:
    return Settings()
