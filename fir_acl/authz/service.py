"""
Query surface used by request handlers.

Every query returns a bool. Resolution failures (unknown user, store down) are
logged and answered with False; they are never cached and never retried into
an allow.
"""

from __future__ import annotations

import logging
import time

from .cache import AuthorizationCache, Clock
from .calculator import EffectivePermissionCalculator
from .errors import NotFound, Unavailable
from .policies import effective_level, region_levels
from .principal import PrincipalResolver
from .scope import applies_globally, applies_to_region
from .types import EffectiveLevel, EffectivePermissionSet, ResolvedAccess

logger = logging.getLogger(__name__)


class AuthorizationService:
    def __init__(
        self,
        resolver: PrincipalResolver,
        calculator: EffectivePermissionCalculator,
        *,
        cache_ttl_seconds: float = 60.0,
        cache_max_entries: int = 10_000,
        clock: Clock = time.monotonic,
    ) -> None:
        self._resolver = resolver
        self._calculator = calculator
        self.cache = AuthorizationCache(
            self.resolve_fresh,
            ttl_seconds=cache_ttl_seconds,
            max_entries=cache_max_entries,
            clock=clock,
        )

    # ---- Resolution -----------------------------------------------------------------

    def resolve_fresh(self, user_id: int) -> ResolvedAccess:
        """Resolve without the cache. Raises NotFound / Unavailable."""
        principal = self._resolver.load(user_id)
        return ResolvedAccess(principal=principal, permissions=self._calculator.compute(principal))

    def _resolve_or_deny(self, user_id: int) -> ResolvedAccess | None:
        try:
            return self.cache.resolve(user_id)
        except NotFound:
            logger.info("Authorization denied: unknown user_id=%s", user_id)
        except Unavailable:
            logger.warning("Authorization denied: store unavailable user_id=%s", user_id)
        return None

    # ---- Queries --------------------------------------------------------------------

    def has_permission(self, user_id: int, key: str) -> bool:
        """Global bucket only; region-scoped grants never satisfy this."""
        access = self._resolve_or_deny(user_id)
        if access is None:
            return False
        allowed = applies_globally(access.permissions, key)
        logger.debug("has_permission user_id=%s key=%s -> %s", user_id, key, allowed)
        return allowed

    def has_fir_permission(self, user_id: int, region_code: str, key: str) -> bool:
        access = self._resolve_or_deny(user_id)
        if access is None:
            return False
        allowed = applies_to_region(access.permissions, region_code.upper(), key)
        logger.debug("has_fir_permission user_id=%s fir=%s key=%s -> %s", user_id, region_code, key, allowed)
        return allowed

    def has_own_fir_permission(self, user_id: int, key: str) -> bool:
        access = self._resolve_or_deny(user_id)
        if access is None:
            return False
        if not isinstance(access.permissions, EffectivePermissionSet):
            return True

        home = access.principal.home_region
        if home is None:
            logger.debug("has_own_fir_permission user_id=%s key=%s -> False (no home FIR)", user_id, key)
            return False
        return applies_to_region(access.permissions, home, key)

    def is_leadership(self, user_id: int) -> bool:
        access = self._resolve_or_deny(user_id)
        if access is None:
            return False
        return access.is_global_operator

    def effective_level(self, user_id: int) -> EffectiveLevel:
        access = self._resolve_or_deny(user_id)
        if access is None:
            return EffectiveLevel.USER
        return effective_level(access.principal)

    def describe(self, user_id: int) -> dict[str, object]:
        """
        Summary for the "my permissions" view. A hint for UIs only; mutations
        always re-resolve server-side.
        """

        access = self.cache.resolve(user_id)
        principal = access.principal
        permissions = access.permissions
        return {
            "cid": principal.user_id,
            "role": principal.global_role.value,
            "home_fir": principal.home_region,
            "level": effective_level(principal).value,
            "fir_levels": {code: level.value for code, level in sorted(region_levels(principal).items())},
            "groups": [
                {
                    "id": m.group.id,
                    "name": m.group.name,
                    "kind": m.group.kind.value,
                    "fir": m.region_of_group.code if m.region_of_group else None,
                }
                for m in principal.memberships
            ],
            "universal": not isinstance(permissions, EffectivePermissionSet),
            "permissions": permissions.to_dict() if isinstance(permissions, EffectivePermissionSet) else None,
        }

    # ---- Invalidation ---------------------------------------------------------------

    def invalidate(self, user_id: int) -> None:
        self.cache.invalidate(user_id)

    def invalidate_all(self) -> None:
        self.cache.invalidate_all()
