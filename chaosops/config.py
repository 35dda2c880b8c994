"""Chaos Ops Server Configuration."""

import secrets
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    server_name: str = "Chaos Ops"
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:5174"]

    # Paths
    data_dir: Path = Path.home() / "chaosops" / "data"

    # Database
    db_path: Path = Path.home() / "chaosops" / "data" / "chaosops.db"

    # JWT
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    # Display pairing
    pairing_code_length: int = 6
    pairing_code_max_attempts: int = 10
    pairing_code_ttl_seconds: int = 0  # 0 = codes never expire

    # Seed
    admin_username: str = "admin"
    admin_password: str = ""
    default_organisation_name: str = "Chaos Ops"

    model_config = {"env_prefix": "CHAOSOPS_"}

    def ensure_dirs(self) -> None:
        """Create all required directories."""
        for d in [self.data_dir, self.db_path.parent]:
            d.mkdir(parents=True, exist_ok=True)

    def ensure_secrets(self) -> None:
        """Load or create the JWT secret in data_dir/.secrets (mode 0600).

        An explicit CHAOSOPS_JWT_SECRET wins and is never written to disk.
        """
        if self.jwt_secret:
            return
        secrets_file = self.data_dir / ".secrets"
        if secrets_file.exists():
            for line in secrets_file.read_text().splitlines():
                key, _, value = line.partition("=")
                if key.strip() == "jwt_secret" and value.strip():
                    self.jwt_secret = value.strip()
                    return

        self.jwt_secret = secrets.token_urlsafe(32)
        secrets_file.write_text(f"jwt_secret={self.jwt_secret}\n")
        secrets_file.chmod(0o600)


settings = Settings()
settings.ensure_dirs()
settings.ensure_secrets()
