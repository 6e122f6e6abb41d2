from pathlib import Path
from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Protocol identity and shared secrets
    client_id: str = "client1"
    client_key: SecretStr = SecretStr("test_key_1")  # signs outbound requests
    server_key: SecretStr = SecretStr("server_key")  # verifies inbound responses

    # Session continuity
    session_file: Path = Path("session.json")
    session_ttl_seconds: int = 3600

    # TLS connect / exchange pacing
    connect_max_attempts: int = 3
    connect_retry_delay: float = 1.0
    reconnect_delay: float = 2.0  # cool-down after every exchange
    tls_server_name: str = "localhost"

    # Response read; None keeps the read unbounded
    read_chunk_size: int = 8192
    read_max_bytes: Optional[int] = None
    read_max_seconds: Optional[float] = None

    # Inventory relay service
    inventory_api_url: str = "http://localhost:3001"
    inventory_max_retries: int = 3
    inventory_retry_delay: float = 1.0
    inventory_timeout: float = 30.0
    wazuh_url: Optional[str] = None
    wazuh_username: Optional[str] = None
    wazuh_password: Optional[SecretStr] = None

    # Local files
    queries_dir: Path = Path("wql_queries")
    output_dir: Path = Path("query_results")

    def require_inventory_credentials(self) -> tuple[str, str, str]:
        """Return (url, username, password) or raise naming the first missing variable."""
        password = self.wazuh_password.get_secret_value() if self.wazuh_password else None
        missing = [
            env
            for env, value in (
                ("WAZUH_URL", self.wazuh_url),
                ("WAZUH_USERNAME", self.wazuh_username),
                ("WAZUH_PASSWORD", password),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"{missing[0]} must be set in the environment or .env file")
        return self.wazuh_url, self.wazuh_username, password

settings = Settings()
