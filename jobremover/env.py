import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .schema import Credential

DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


def load_env() -> None:
    """Load .env from the working directory if present."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


@dataclass(frozen=True)
class Settings:
    """Connection and logging settings, read from JOBREMOVER_* variables."""

    odbc_driver: str = DEFAULT_ODBC_DRIVER
    connect_timeout: int = 15
    trust_server_certificate: bool = True
    sql_user: Optional[str] = None
    sql_password: Optional[str] = None
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        log_dir = os.getenv("JOBREMOVER_LOG_DIR")
        return cls(
            odbc_driver=os.getenv("JOBREMOVER_ODBC_DRIVER") or DEFAULT_ODBC_DRIVER,
            connect_timeout=_env_int("JOBREMOVER_CONNECT_TIMEOUT", 15),
            trust_server_certificate=_env_bool("JOBREMOVER_TRUST_SERVER_CERTIFICATE", True),
            sql_user=os.getenv("JOBREMOVER_SQL_USER") or None,
            sql_password=os.getenv("JOBREMOVER_SQL_PASSWORD"),
            log_level=os.getenv("JOBREMOVER_LOG_LEVEL") or "INFO",
            log_dir=Path(log_dir) if log_dir else None,
        )

    def default_credential(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> Optional[Credential]:
        """SQL login from JOBREMOVER_SQL_*; explicit values win. None means integrated auth."""
        user = username or self.sql_user
        if not user:
            return None
        if password is None:
            password = self.sql_password
        return Credential(username=user, password=password or "")
