from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_SMTP_PORT = 587
DEFAULT_SMTP_TIMEOUT = 30.0

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int = DEFAULT_SMTP_PORT
    username: str | None = None
    password: str | None = None
    ssl: bool | None = None
    starttls: bool | None = None
    timeout: float = DEFAULT_SMTP_TIMEOUT

    @staticmethod
    def from_env() -> "SmtpSettings":
        def require(name: str) -> str:
            value = os.getenv(name)
            if value is None or not value.strip():
                raise ValueError(f"Environment variable {name} is required.")
            return value.strip()

        def optional(name: str) -> str | None:
            value = os.getenv(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        def optional_bool(name: str) -> bool | None:
            value = optional(name)
            if value is None:
                return None
            if value.lower() in _TRUE:
                return True
            if value.lower() in _FALSE:
                return False
            raise ValueError(f"Environment variable {name} must be a boolean, got {value!r}.")

        def optional_number(name: str, default, cast):
            value = optional(name)
            if value is None:
                return default
            try:
                return cast(value)
            except ValueError as exc:
                raise ValueError(f"Environment variable {name} must be numeric, got {value!r}.") from exc

        username = optional("SMTP_USERNAME")
        password = optional("SMTP_PASSWORD")
        if (username is None) != (password is None):
            raise ValueError("SMTP_USERNAME and SMTP_PASSWORD must be set together.")

        return SmtpSettings(
            host=require("SMTP_HOST"),
            port=optional_number("SMTP_PORT", DEFAULT_SMTP_PORT, int),
            username=username,
            password=password,
            ssl=optional_bool("SMTP_SSL"),
            starttls=optional_bool("SMTP_STARTTLS"),
            timeout=optional_number("SMTP_TIMEOUT", DEFAULT_SMTP_TIMEOUT, float),
        )

    def to_smtp_dict(self) -> dict:
        smtp: dict = {"server": self.host, "port": self.port}
        if self.ssl is not None:
            smtp["ssl"] = self.ssl
        if self.starttls is not None:
            smtp["starttls"] = self.starttls
        return smtp

    def to_sender_dict(self) -> dict | None:
        if self.username is None:
            return None
        return {"email": self.username, "password": self.password or ""}
