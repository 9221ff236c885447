import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Raíz del proyecto (visit-counter/src -> visit-counter)
BACKEND_DIR = Path(__file__).parent.parent


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ Valor inválido para {name}: {raw!r}, usando {default}")
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"⚠️ Valor inválido para {name}: {raw!r}, usando {default}")
        return default


class Settings:
    """Configuración de la aplicación que lee variables de entorno dinámicamente."""

    @property
    def app_name(self) -> str:
        return "Visit Counter"

    @property
    def host(self) -> str:
        return os.getenv("HOST", "0.0.0.0")

    @property
    def port(self) -> int:
        return _int_env("PORT", 3000)

    @property
    def allowed_origins(self) -> list[str]:
        # Permitir múltiples orígenes separados por coma
        raw = os.getenv("ALLOWED_ORIGIN", "")
        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @property
    def database_url(self) -> str:
        # Vacía = modo en memoria (los contadores se pierden al reiniciar)
        return os.getenv("DATABASE_URL", "").strip()

    @property
    def database_ssl_required(self) -> bool:
        return "sslmode=require" in self.database_url

    @property
    def database_timeout_seconds(self) -> float:
        return _float_env("DATABASE_TIMEOUT_SECONDS", 5.0)

    @property
    def database_pool_size(self) -> int:
        return _int_env("DATABASE_POOL_SIZE", 5)

    @property
    def static_dir(self) -> Path:
        raw = os.getenv("STATIC_DIR", "").strip()
        return Path(raw) if raw else BACKEND_DIR / "public"

    @property
    def log_level(self) -> str:
        raw = os.getenv("LOG_LEVEL", "").strip().upper()
        if not raw:
            return "INFO"
        # getLevelName devuelve un int solo para niveles registrados
        if not isinstance(logging.getLevelName(raw), int):
            logger.warning(f"⚠️ Valor inválido para LOG_LEVEL: {raw!r}, usando INFO")
            return "INFO"
        return raw


# Instancia singleton de Settings (sin cache, lee valores dinámicamente)
_settings_instance = None


def get_settings() -> Settings:
    """Retorna la instancia de Settings. Lee variables de entorno dinámicamente."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def clear_settings_cache():
    """Limpia la instancia de settings (aunque no es necesario con propiedades dinámicas)."""
    global _settings_instance
    _settings_instance = None
