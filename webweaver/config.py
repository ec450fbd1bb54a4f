import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Settings:
    """Configuración de la aplicación que lee variables de entorno dinámicamente."""

    @property
    def app_name(self) -> str:
        return "WebWeaver API"

    @property
    def environment(self) -> str:
        # Producción si ENV=production o si el proveedor expone PORT
        env = os.getenv("ENV", "").lower()
        if env == "production" or os.getenv("PORT"):
            return "production"
        return "development"

    @property
    def cors_origin(self) -> str:
        return os.getenv("CORS_ORIGIN", "http://localhost:3000")

    @property
    def session_cookie_name(self) -> str:
        return os.getenv("SESSION_COOKIE_NAME", "session_id")

    @property
    def session_ttl_days(self) -> int:
        return _env_int("SESSION_TTL_DAYS", 30)

    @property
    def session_cookie_secure(self) -> bool:
        return os.getenv("SESSION_COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

    @property
    def recent_views_limit(self) -> int:
        return _env_int("RECENT_VIEWS_LIMIT", 10)

    @property
    def max_url_length(self) -> int:
        return _env_int("MAX_URL_LENGTH", 2048)


# Instancia singleton de Settings (sin cache, lee valores dinámicamente)
_settings_instance = None


def get_settings() -> Settings:
    """Retorna la instancia de Settings. Lee variables de entorno dinámicamente."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def clear_settings_cache():
    """Limpia la instancia de settings (se recrea en el próximo get_settings())."""
    global _settings_instance
    _settings_instance = None
