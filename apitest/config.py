import os
from dataclasses import dataclass, replace

TRUTHY = {"1", "true", "yes", "on"}


def _env(key, default=None):
    return os.environ.get(key, default)


def _flag(key):
    return (_env(key, "") or "").strip().lower() in TRUTHY


@dataclass(frozen=True)
class Settings:
    domain: str = "openfoodfacts.localhost"
    scheme: str = "http"
    user_agent: str = "Product-opener-tests/1.0"
    log_path: str = "/var/log/apache2/log4perl.log"
    static_asset: str = "/opt/product-opener/html/images/icons/dist/barcode.svg"
    redis_url: str = "redis://localhost:6379/0"
    jobs_namespace: str = "minion"
    update_expected_results: bool = False
    timeout: float = 60

    @property
    def website_url(self):
        return f"{self.scheme}://world.{self.domain}"

    def override(self, **changes):
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)


def load_settings():
    defaults = Settings()
    return Settings(
        domain=_env("OFFTEST_DOMAIN", defaults.domain),
        scheme=_env("OFFTEST_SCHEME", defaults.scheme),
        user_agent=_env("OFFTEST_USER_AGENT", defaults.user_agent),
        log_path=_env("OFFTEST_LOG_PATH", defaults.log_path),
        static_asset=_env("OFFTEST_STATIC_ASSET", defaults.static_asset),
        redis_url=_env("OFFTEST_REDIS_URL", defaults.redis_url),
        jobs_namespace=_env("OFFTEST_JOBS_NAMESPACE", defaults.jobs_namespace),
        update_expected_results=_flag("OFFTEST_UPDATE_EXPECTED_RESULTS"),
        timeout=float(_env("OFFTEST_TIMEOUT", defaults.timeout)),
    )


_settings = None


def get_settings():
    """Settings read from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def set_settings(settings):
    global _settings
    _settings = settings
