"""bereken_hypotheek_doorstromer tool handler.

Maximum mortgage for homeowners moving house: applicant data plus the
current home's value and the loan parts of the existing mortgage.
"""

from typing import Any

from hypotheek_mcp.formatting import format_response
from hypotheek_mcp.models.schemas import BerekenDoorstromerInput
from hypotheek_mcp.services import Services
from hypotheek_mcp.tools.hypotheek_base import (
    aanvragers_payload,
    bestaande_hypotheek_payload,
    call_backend,
    tool_call,
    with_session,
)

TOOL_NAME = "bereken_hypotheek_doorstromer"


def _build_payload(validated: BerekenDoorstromerInput) -> dict:
    payload = {
        "aanvragers": aanvragers_payload(validated),
        "bestaande_hypotheek": bestaande_hypotheek_payload(
            validated.waarde_huidige_woning,
            validated.bestaande_hypotheek,
        ),
    }
    return with_session(payload, validated.session_id)


def create_handler(services: Services):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def bereken_hypotheek_doorstromer(
        inkomen_aanvrager: float,
        geboortedatum_aanvrager: str,
        heeft_partner: bool,
        waarde_huidige_woning: float,
        bestaande_hypotheek: dict[str, Any],
        inkomen_partner: float | None = None,
        geboortedatum_partner: str | None = None,
        verplichtingen_pm: float = 0,
        session_id: str | None = None,
    ) -> str:
        """Calculate the maximum mortgage for a homeowner moving house."""
        async with tool_call(services, TOOL_NAME, session_id) as log:
            validated = BerekenDoorstromerInput(
                session_id=session_id,
                inkomen_aanvrager=inkomen_aanvrager,
                geboortedatum_aanvrager=geboortedatum_aanvrager,
                heeft_partner=heeft_partner,
                inkomen_partner=inkomen_partner,
                geboortedatum_partner=geboortedatum_partner,
                verplichtingen_pm=verplichtingen_pm,
                waarde_huidige_woning=waarde_huidige_woning,
                bestaande_hypotheek=bestaande_hypotheek,
            )
            log.info(
                "%s: validation passed (woningwaarde=%.0f, leningdelen=%d)",
                TOOL_NAME,
                validated.waarde_huidige_woning,
                len(validated.bestaande_hypotheek.leningdelen),
            )
            data = await call_backend(
                services,
                services.settings.berekenen_url,
                _build_payload(validated),
                session_id=validated.session_id,
            )
            return format_response(data, TOOL_NAME)

    return bereken_hypotheek_doorstromer
