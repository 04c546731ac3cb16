"""
DNI Lookup - Pydantic Data Schemas

Core data models for search queries and extracted identity records.
Records are value objects: every tier of the extractor produces the same
fixed shape, and identity for deduplication is (dni, nombre_completo, enlace).
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QueryError(str, Enum):
    """Failure kinds surfaced to callers of the query pipeline."""
    INVALID_INPUT = "invalid_input"                # Missing required name fields
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"  # Navigation/timeout/network failure
    BLOCKED_BY_DEFENSES = "blocked_by_defenses"    # Anti-bot challenge page detected
    INTERNAL_ERROR = "internal_error"


class SearchQuery(BaseModel):
    """
    Person search by full name.

    All fields are trimmed. ``honeypot`` is the hidden ``company`` form field:
    humans leave it empty, naive bots fill it in.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    nombres: str = Field(default="", description="Given names")
    apellido_paterno: str = Field(default="", description="Paternal surname")
    apellido_materno: str = Field(default="", description="Maternal surname")
    honeypot: str = Field(
        default="",
        alias="company",
        description="Bot trap; must stay empty for a real search",
    )

    @field_validator("nombres", "apellido_paterno", "apellido_materno", "honeypot", mode="before")
    @classmethod
    def strip_text(cls, v):
        """Coerce to string and trim surrounding whitespace."""
        if v is None:
            return ""
        return str(v).strip()

    @property
    def is_trap(self) -> bool:
        return bool(self.honeypot)

    @property
    def is_complete(self) -> bool:
        return bool(self.nombres and self.apellido_paterno and self.apellido_materno)

    @property
    def is_servable(self) -> bool:
        """True when the query may trigger a network fetch."""
        return self.is_complete and not self.is_trap


class ResultItem(BaseModel):
    """
    One identity record extracted from a results page.

    Serialized with the wire name ``nombreCompleto`` for the full name.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dni: Optional[str] = Field(default=None, description="8-digit national ID")
    nombre_completo: Optional[str] = Field(
        default=None,
        alias="nombreCompleto",
        description="Full name as shown on the page",
    )
    enlace: Optional[str] = Field(default=None, description="Absolute link to a detail page")
    extra: Optional[str] = Field(default=None, description="Normalized source text of the row/block")

    @field_validator("dni", "nombre_completo", "enlace", "extra", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v)
        return v if v else None

    def has_identity(self) -> bool:
        """A record is kept only if it carries at least one identifying field."""
        return bool(self.dni or self.nombre_completo or self.enlace)

    def identity_key(self) -> tuple[str, str, str]:
        return (self.dni or "", self.nombre_completo or "", self.enlace or "")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class SearchResponse(BaseModel):
    """Successful search payload returned by the HTTP service and CLI."""
    ok: bool = True
    count: int
    items: list[ResultItem]

    @classmethod
    def from_items(cls, items: list[ResultItem]) -> "SearchResponse":
        return cls(ok=True, count=len(items), items=list(items))

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
