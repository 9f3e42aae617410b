import os


def _normalize_db_url(url: str) -> str:
    if url and url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


class Settings:
    def __init__(self, **overrides):
        self.SECRET_KEY = os.environ.get("APP_SECRET", "change_this_in_render_env")
        self.DATABASE_URL = _normalize_db_url(os.environ.get("DATABASE_URL", "sqlite:///licenses.db"))
        self.ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")
        self.PRODUCT_CODE = os.environ.get("PRODUCT_CODE", "sniper-buildflow")
        self.TOKEN_PREFIX = os.environ.get("TOKEN_PREFIX", "SNIPER")
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
        # Emit the old `key` field next to `token` for clients on the previous schema
        self.LEGACY_KEY_FIELD = os.environ.get("LEGACY_KEY_FIELD", "1") == "1"
        for name, value in overrides.items():
            if not hasattr(self, name):
                raise AttributeError(f"unknown setting: {name}")
            if name == "DATABASE_URL":
                value = _normalize_db_url(value)
            setattr(self, name, value)


settings = Settings()
