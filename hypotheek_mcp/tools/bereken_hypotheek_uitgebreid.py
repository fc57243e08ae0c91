"""bereken_hypotheek_uitgebreid tool handler.

Maximum mortgage with custom parameters: optional existing mortgage
(``is_doorstromer``) and an optional ``nieuwe_hypotheek`` block.  Unset
new-mortgage fields fall back to 30 years, 10 years fixed, annuity,
no NHG and 100% loan-to-value.
"""

from typing import Any

from hypotheek_mcp.formatting import format_response
from hypotheek_mcp.models.schemas import BerekenUitgebreidInput, NieuweHypotheek
from hypotheek_mcp.services import Services
from hypotheek_mcp.tools.hypotheek_base import (
    aanvragers_payload,
    bestaande_hypotheek_payload,
    call_backend,
    tool_call,
    with_session,
)

TOOL_NAME = "bereken_hypotheek_uitgebreid"


def _nieuwe_lening(nieuwe: NieuweHypotheek) -> dict:
    return {
        "looptijd_maanden": nieuwe.looptijd_maanden,
        "rentevaste_periode_maanden": nieuwe.rentevaste_periode_maanden,
        "rente": nieuwe.rente,
        "hypotheekvorm": nieuwe.hypotheekvorm.value,
        "energielabel": nieuwe.energielabel,
        "nhg": nieuwe.nhg,
        "ltv": nieuwe.ltv,
    }


def _build_payload(validated: BerekenUitgebreidInput) -> dict:
    payload: dict[str, Any] = {"aanvragers": aanvragers_payload(validated)}
    if validated.is_doorstromer and validated.waarde_huidige_woning and validated.bestaande_hypotheek:
        payload["bestaande_hypotheek"] = bestaande_hypotheek_payload(
            validated.waarde_huidige_woning,
            validated.bestaande_hypotheek,
        )
    if validated.nieuwe_hypotheek is not None:
        payload["nieuwe_lening"] = _nieuwe_lening(validated.nieuwe_hypotheek)
    return with_session(payload, validated.session_id)


def create_handler(services: Services):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def bereken_hypotheek_uitgebreid(
        inkomen_aanvrager: float,
        geboortedatum_aanvrager: str,
        heeft_partner: bool,
        inkomen_partner: float | None = None,
        geboortedatum_partner: str | None = None,
        verplichtingen_pm: float = 0,
        is_doorstromer: bool = False,
        waarde_huidige_woning: float | None = None,
        bestaande_hypotheek: dict[str, Any] | None = None,
        nieuwe_hypotheek: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> str:
        """Calculate the maximum mortgage with custom interest, term and product."""
        async with tool_call(services, TOOL_NAME, session_id) as log:
            validated = BerekenUitgebreidInput(
                session_id=session_id,
                inkomen_aanvrager=inkomen_aanvrager,
                geboortedatum_aanvrager=geboortedatum_aanvrager,
                heeft_partner=heeft_partner,
                inkomen_partner=inkomen_partner,
                geboortedatum_partner=geboortedatum_partner,
                verplichtingen_pm=verplichtingen_pm,
                is_doorstromer=is_doorstromer,
                waarde_huidige_woning=waarde_huidige_woning,
                bestaande_hypotheek=bestaande_hypotheek,
                nieuwe_hypotheek=nieuwe_hypotheek,
            )
            log.info(
                "%s: validation passed (is_doorstromer=%s, custom=%s)",
                TOOL_NAME,
                validated.is_doorstromer,
                validated.nieuwe_hypotheek is not None,
            )
            data = await call_backend(
                services,
                services.settings.berekenen_url,
                _build_payload(validated),
                session_id=validated.session_id,
            )
            return format_response(data, TOOL_NAME)

    return bereken_hypotheek_uitgebreid
