"""Tool input Pydantic models.

All seven tool input schemas with field-level constraints, null-byte
stripping and Unicode NFC normalization on free-text fields, age checks
on birth dates and energy-label normalization.

Amounts are euros, interest rates are decimals (0.0372 for 3.72%), terms
are months unless the field name says ``_jaren``.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from hypotheek_mcp.security.input_validators import (
    normalize_energielabel,
    parse_ltv,
    sanitize_string,
    validate_birth_date,
)

# ── Validation bounds ───────────────────────────────────────────────────

INKOMEN_MAX = 1_000_000
WONING_WAARDE_MIN = 50_000
WONING_WAARDE_MAX = 5_000_000
RENTE_MAX = 0.20
LOOPTIJD_MAX_MAANDEN = 360
LENINGDELEN_MAX = 10
VERPLICHTINGEN_MAX = 50_000


class Hypotheekvorm(str, Enum):
    ANNUITEIT = "annuiteit"
    LINEAIR = "lineair"
    AFLOSSINGSVRIJ = "aflossingsvrij"


def _sanitize_str_field(v):
    """Pydantic field_validator wrapper around sanitize_string."""
    if isinstance(v, str):
        return sanitize_string(v)
    return v


def _energielabel_field(v):
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return normalize_energielabel(v)


# ── Existing mortgage ───────────────────────────────────────────────────


class Leningdeel(BaseModel):
    """One loan part of an existing mortgage."""

    huidige_schuld: float = Field(..., ge=0)
    huidige_rente: float = Field(..., ge=0, le=RENTE_MAX)
    resterende_looptijd_in_maanden: int = Field(..., ge=1, le=LOOPTIJD_MAX_MAANDEN)
    rentevasteperiode_maanden: int = Field(..., ge=0, le=LOOPTIJD_MAX_MAANDEN)
    hypotheekvorm: Hypotheekvorm = Hypotheekvorm.ANNUITEIT

    @model_validator(mode="after")
    def rentevast_within_looptijd(self) -> "Leningdeel":
        if self.rentevasteperiode_maanden > self.resterende_looptijd_in_maanden:
            raise ValueError(
                f"rentevasteperiode ({self.rentevasteperiode_maanden}) kan niet langer zijn "
                f"dan resterende looptijd ({self.resterende_looptijd_in_maanden})"
            )
        return self


class BestaandeHypotheek(BaseModel):
    leningdelen: list[Leningdeel] = Field(..., min_length=1, max_length=LENINGDELEN_MAX)


# ── Applicants (shared by every calculation tool) ───────────────────────


class AanvragerInput(BaseModel):
    """Applicant fields shared by all calculation tools.

    ``session_id`` scopes the rate limit and doubles as correlation id.
    """

    session_id: str | None = Field(default=None, max_length=200)
    inkomen_aanvrager: float = Field(..., ge=0, le=INKOMEN_MAX)
    geboortedatum_aanvrager: date
    heeft_partner: bool
    inkomen_partner: float | None = Field(default=None, ge=0, le=INKOMEN_MAX)
    geboortedatum_partner: date | None = None
    verplichtingen_pm: float = Field(default=0, ge=0, le=VERPLICHTINGEN_MAX)

    @field_validator("session_id", mode="before")
    @classmethod
    def sanitize_session_id(cls, v):
        return _sanitize_str_field(v)

    @field_validator("geboortedatum_aanvrager", "geboortedatum_partner")
    @classmethod
    def check_age(cls, v: date | None) -> date | None:
        return validate_birth_date(v) if v is not None else None


# ── Maximum-mortgage calculation (bereken_*) ────────────────────────────


class BerekenStarterInput(AanvragerInput):
    """Input for bereken_hypotheek_starter tool."""


class BerekenDoorstromerInput(AanvragerInput):
    """Input for bereken_hypotheek_doorstromer tool."""

    waarde_huidige_woning: float = Field(..., ge=WONING_WAARDE_MIN, le=WONING_WAARDE_MAX)
    bestaande_hypotheek: BestaandeHypotheek


class NieuweHypotheek(BaseModel):
    """Custom parameters for the new mortgage; unset fields use market defaults."""

    looptijd_maanden: int = Field(default=360, ge=1, le=LOOPTIJD_MAX_MAANDEN)
    rentevaste_periode_maanden: int = Field(default=120, ge=0, le=LOOPTIJD_MAX_MAANDEN)
    rente: float | None = Field(default=None, ge=0, le=RENTE_MAX)
    hypotheekvorm: Hypotheekvorm = Hypotheekvorm.ANNUITEIT
    energielabel: str | None = None
    nhg: bool = False
    ltv: float = Field(default=1.0, gt=0)

    @field_validator("energielabel", mode="before")
    @classmethod
    def normalize_label(cls, v):
        return _energielabel_field(v)

    @field_validator("ltv", mode="before")
    @classmethod
    def parse_ltv_percentage(cls, v):
        if v is None:
            return 1.0
        return parse_ltv(v)


class BerekenUitgebreidInput(AanvragerInput):
    """Input for bereken_hypotheek_uitgebreid tool."""

    is_doorstromer: bool = False
    waarde_huidige_woning: float | None = Field(default=None, ge=WONING_WAARDE_MIN, le=WONING_WAARDE_MAX)
    bestaande_hypotheek: BestaandeHypotheek | None = None
    nieuwe_hypotheek: NieuweHypotheek | None = None

    @model_validator(mode="after")
    def doorstromer_needs_current_home(self) -> "BerekenUitgebreidInput":
        if self.is_doorstromer and (self.waarde_huidige_woning is None or self.bestaande_hypotheek is None):
            raise ValueError("waarde_huidige_woning en bestaande_hypotheek zijn verplicht voor doorstromers")
        return self


# ── Mortgage set-up (opzet_*) ───────────────────────────────────────────


class NieuweWoning(BaseModel):
    waarde_woning: float = Field(..., ge=WONING_WAARDE_MIN, le=WONING_WAARDE_MAX)
    bedrag_verbouwen: float = Field(default=0, ge=0)
    bedrag_verduurzamen: float = Field(default=0, ge=0)
    kosten_percentage: float = Field(default=0.05, ge=0, le=0.20)
    energielabel: str | None = None

    @field_validator("energielabel", mode="before")
    @classmethod
    def normalize_label(cls, v):
        return _energielabel_field(v)


class Renteklasse(BaseModel):
    """Interest rate bracket by loan-to-value."""

    naam: str = Field(..., min_length=1, max_length=100)
    lowerbound_ltv_pct: float = Field(..., ge=0)
    higherbound_ltv_pct: float = Field(..., ge=0)
    nhg: bool = False
    rente_jaarlijks_pct: float = Field(..., ge=0)

    @field_validator("naam", mode="before")
    @classmethod
    def sanitize_naam(cls, v):
        return _sanitize_str_field(v)


class OpzetNieuweLening(BaseModel):
    looptijd_jaren: int = Field(default=30, ge=1, le=30)
    rentevast_periode_jaren: int = Field(default=10, ge=0, le=30)
    nhg: bool = False
    renteklassen: list[Renteklasse] = Field(default_factory=list)


class OpzetStarterInput(AanvragerInput):
    """Input for opzet_hypotheek_starter tool."""

    eigen_vermogen: float = Field(default=0, ge=0)
    nieuwe_woning: NieuweWoning


class OpzetDoorstromerInput(OpzetStarterInput):
    """Input for opzet_hypotheek_doorstromer tool."""

    waarde_huidige_woning: float = Field(..., ge=WONING_WAARDE_MIN, le=WONING_WAARDE_MAX)
    bestaande_hypotheek: BestaandeHypotheek


class OpzetUitgebreidInput(OpzetStarterInput):
    """Input for opzet_hypotheek_uitgebreid tool."""

    is_doorstromer: bool = False
    waarde_huidige_woning: float | None = Field(default=None, ge=WONING_WAARDE_MIN, le=WONING_WAARDE_MAX)
    bestaande_hypotheek: BestaandeHypotheek | None = None
    nieuwe_lening: OpzetNieuweLening | None = None

    @model_validator(mode="after")
    def doorstromer_needs_current_home(self) -> "OpzetUitgebreidInput":
        if self.is_doorstromer and (self.waarde_huidige_woning is None or self.bestaande_hypotheek is None):
            raise ValueError("waarde_huidige_woning en bestaande_hypotheek zijn verplicht voor doorstromers")
        return self


# ── Rates ───────────────────────────────────────────────────────────────


class ActueleRentesInput(BaseModel):
    """Input for haal_actuele_rentes_op tool."""

    session_id: str | None = Field(default=None, max_length=200)

    @field_validator("session_id", mode="before")
    @classmethod
    def sanitize_session_id(cls, v):
        return _sanitize_str_field(v)
