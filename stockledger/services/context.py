from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TenantContext:
    """Who is acting, and for which business (negocio)."""

    tenant_id: int
    user_id: int
    user_alias: str
    role: Optional[str] = None
