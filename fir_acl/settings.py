from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Every field can be overridden with a `FIR_ACL_` env var.
    - `db_url="sqlite://"` (in-memory) runs every request on one shared connection;
      use it for tests only.
    """

    model_config = SettingsConfigDict(env_prefix="FIR_ACL_", extra="ignore")

    db_url: str | None = None
    permissions_path: str | None = None
    log_level: str = "INFO"

    authz_cache_ttl_seconds: float = 60.0
    authz_cache_max_entries: int = 10_000

    # Comma-separated cids that always resolve as MAIN_ADMIN, e.g. "1234567,7654321".
    main_admin_cids: str = ""

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "fir_acl.db"
        return f"sqlite:///{db_path}"

    def resolved_permissions_path(self) -> Path:
        if self.permissions_path:
            return Path(self.permissions_path)

        return Path(__file__).resolve().parent / "permissions.yaml"

    def resolved_main_admin_cids(self) -> frozenset[int]:
        cids: set[int] = set()
        for part in self.main_admin_cids.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                cid = int(part)
            except ValueError:
                continue
            if cid > 0:
                cids.add(cid)
        return frozenset(cids)


@lru_cache
def get_settings() -> Settings:
    return Settings()
