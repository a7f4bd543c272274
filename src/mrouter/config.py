"""Router configuration.

RouterConfig is a frozen pydantic model: validated once, immutable after
creation.  Override what you need::

    config = RouterConfig(base_path="/app", strict=True)
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RouterConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Stripped from request paths before matching ("" disables it).
    base_path: str = ""

    # Validate callable handler signatures against their templates.
    strict: bool = False

    # Include tracebacks in ASGI 500 responses.
    debug: bool = False

    not_found_status: int = Field(default=404, ge=400, le=599)
    abort_status: int = Field(default=403, ge=400, le=599)

    # Helpers
    asset_root: str = "./public/assets"
    document_root: str | None = None

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str) -> str:
        stripped = value.strip("/")
        return f"/{stripped}" if stripped else ""

    def merged(self, **overrides: object) -> RouterConfig:
        """Return a validated copy with *overrides* applied."""
        if not overrides:
            return self
        return RouterConfig.model_validate({**self.model_dump(), **overrides})
