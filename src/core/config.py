"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/JWKS) lean config de forma consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigurationError


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "outseta-demos"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "outseta-demos"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "outseta-demos"
    return Path.home() / ".config" / "outseta-demos"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v})

    lines = ["# outseta-demos user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Se lee una vez por proceso y no se muta: todas las llamadas salientes
    derivan de aquí la URL base del tenant y la cabecera de autorización.
    """

    model_config = SettingsConfigDict(
        env_prefix="OUTSETA_",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    subdomain: str | None = Field(
        default=None,
        description="Subdominio del tenant (https://<subdomain>.outseta.com).",
    )
    api_key: str | None = Field(
        default=None,
        description="API key del tenant.",
    )
    api_secret: str | None = Field(
        default=None,
        description="API secret del tenant.",
    )

    http_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Timeout por request (segundos). Sin timeout si no se configura.",
    )
    user_agent: str = Field(
        default="outseta-demos/0.1",
        min_length=1,
        description="User-Agent para las peticiones salientes.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging cuando no se pasa --verbose.",
    )

    @property
    def base_url(self) -> str:
        if not self.subdomain:
            raise ConfigurationError("OUTSETA_SUBDOMAIN is not configured")
        return f"https://{self.subdomain}.outseta.com"

    @property
    def authorization_header(self) -> str:
        """Valor `Authorization` para llamadas autenticadas como tenant."""

        missing = [
            name
            for name, value in (("OUTSETA_API_KEY", self.api_key), ("OUTSETA_API_SECRET", self.api_secret))
            if not value
        ]
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} not configured")
        return f"Outseta {self.api_key}:{self.api_secret}"
