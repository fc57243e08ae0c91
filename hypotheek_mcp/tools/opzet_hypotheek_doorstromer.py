"""opzet_hypotheek_doorstromer tool handler.

Mortgage set-up for a homeowner moving house: the existing loan parts
are carried over, the current home's surplus value counts as funding.
"""

from typing import Any

from hypotheek_mcp.formatting import format_response
from hypotheek_mcp.models.schemas import OpzetDoorstromerInput
from hypotheek_mcp.services import Services
from hypotheek_mcp.tools.hypotheek_base import (
    bestaande_hypotheek_payload,
    call_backend,
    nieuwe_woning_payload,
    opzet_aanvrager_payload,
    tool_call,
    with_session,
)

TOOL_NAME = "opzet_hypotheek_doorstromer"


def _build_payload(validated: OpzetDoorstromerInput) -> dict:
    payload = {
        "aanvrager": opzet_aanvrager_payload(validated),
        "bestaande_hypotheek": bestaande_hypotheek_payload(
            validated.waarde_huidige_woning,
            validated.bestaande_hypotheek,
        ),
        "nieuwe_woning": nieuwe_woning_payload(validated.nieuwe_woning),
    }
    return with_session(payload, validated.session_id)


def create_handler(services: Services):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def opzet_hypotheek_doorstromer(
        inkomen_aanvrager: float,
        geboortedatum_aanvrager: str,
        heeft_partner: bool,
        waarde_huidige_woning: float,
        bestaande_hypotheek: dict[str, Any],
        nieuwe_woning: dict[str, Any],
        inkomen_partner: float | None = None,
        geboortedatum_partner: str | None = None,
        verplichtingen_pm: float = 0,
        eigen_vermogen: float = 0,
        session_id: str | None = None,
    ) -> str:
        """Set up a mortgage for a homeowner moving to a specific home."""
        async with tool_call(services, TOOL_NAME, session_id) as log:
            validated = OpzetDoorstromerInput(
                session_id=session_id,
                inkomen_aanvrager=inkomen_aanvrager,
                geboortedatum_aanvrager=geboortedatum_aanvrager,
                heeft_partner=heeft_partner,
                inkomen_partner=inkomen_partner,
                geboortedatum_partner=geboortedatum_partner,
                verplichtingen_pm=verplichtingen_pm,
                eigen_vermogen=eigen_vermogen,
                waarde_huidige_woning=waarde_huidige_woning,
                bestaande_hypotheek=bestaande_hypotheek,
                nieuwe_woning=nieuwe_woning,
            )
            log.info(
                "%s: validation passed (woningwaarde_huidig=%.0f, woningwaarde_nieuw=%.0f)",
                TOOL_NAME,
                validated.waarde_huidige_woning,
                validated.nieuwe_woning.waarde_woning,
            )
            data = await call_backend(
                services,
                services.settings.opzet_url,
                _build_payload(validated),
                session_id=validated.session_id,
            )
            return format_response(data, TOOL_NAME)

    return opzet_hypotheek_doorstromer
