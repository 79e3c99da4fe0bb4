"""Configuration settings for the stock price service."""

from dataclasses import dataclass, field
import os

from dotenv import load_dotenv

from stockcorr.errors import ConfigError


load_dotenv()


DEFAULT_BASE_URL = "http://20.244.56.144/evaluation-service"

# Seconds subtracted from the upstream token lifetime
TOKEN_EXPIRY_BUFFER = 5 * 60

DEFAULT_MINUTES = 50
DEFAULT_PORT = 5000


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class Settings:
    """Application settings, read from the environment (and a local .env file)."""

    base_url: str = field(default_factory=lambda: _env("EVALUATION_BASE_URL", DEFAULT_BASE_URL))
    email: str = field(default_factory=lambda: _env("EMAIL"))
    name: str = field(default_factory=lambda: _env("NAME"))
    roll_no: str = field(default_factory=lambda: _env("ROLL_NO"))
    access_code: str = field(default_factory=lambda: _env("ACCESS_CODE"))
    client_id: str = field(default_factory=lambda: _env("CLIENT_ID"))
    client_secret: str = field(default_factory=lambda: _env("CLIENT_SECRET"))
    request_timeout: float = field(
        default_factory=lambda: _env_number("REQUEST_TIMEOUT", 10.0, float)
    )
    token_expiry_buffer: float = TOKEN_EXPIRY_BUFFER
    default_minutes: int = DEFAULT_MINUTES
    port: int = field(default_factory=lambda: _env_number("PORT", DEFAULT_PORT, int))

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")

    def auth_payload(self) -> dict:
        """Body of the upstream authentication request."""
        return {
            "email": self.email,
            "name": self.name,
            "rollNo": self.roll_no,
            "accessCode": self.access_code,
            "clientID": self.client_id,
            "clientSecret": self.client_secret,
        }

    def validate(self) -> None:
        """Validate that every client credential is set."""
        missing = [key for key, value in self.auth_payload().items() if not value]
        if missing:
            raise ConfigError(
                f"Missing upstream credentials: {', '.join(missing)}. "
                "Set them in the environment or a .env file."
            )
