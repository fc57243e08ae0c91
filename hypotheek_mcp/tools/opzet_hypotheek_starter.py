"""opzet_hypotheek_starter tool handler.

Full mortgage set-up for a first-time buyer: required amount (purchase
price, renovation, sustainability, buyer's costs), financing and monthly
costs for a specific new home.
"""

from typing import Any

from hypotheek_mcp.formatting import format_response
from hypotheek_mcp.models.schemas import OpzetStarterInput
from hypotheek_mcp.services import Services
from hypotheek_mcp.tools.hypotheek_base import (
    call_backend,
    nieuwe_woning_payload,
    opzet_aanvrager_payload,
    tool_call,
    with_session,
)

TOOL_NAME = "opzet_hypotheek_starter"


def _build_payload(validated: OpzetStarterInput) -> dict:
    payload = {
        "aanvrager": opzet_aanvrager_payload(validated),
        "nieuwe_woning": nieuwe_woning_payload(validated.nieuwe_woning),
    }
    return with_session(payload, validated.session_id)


def create_handler(services: Services):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def opzet_hypotheek_starter(
        inkomen_aanvrager: float,
        geboortedatum_aanvrager: str,
        heeft_partner: bool,
        nieuwe_woning: dict[str, Any],
        inkomen_partner: float | None = None,
        geboortedatum_partner: str | None = None,
        verplichtingen_pm: float = 0,
        eigen_vermogen: float = 0,
        session_id: str | None = None,
    ) -> str:
        """Set up a mortgage for a first-time buyer and a specific home."""
        async with tool_call(services, TOOL_NAME, session_id) as log:
            validated = OpzetStarterInput(
                session_id=session_id,
                inkomen_aanvrager=inkomen_aanvrager,
                geboortedatum_aanvrager=geboortedatum_aanvrager,
                heeft_partner=heeft_partner,
                inkomen_partner=inkomen_partner,
                geboortedatum_partner=geboortedatum_partner,
                verplichtingen_pm=verplichtingen_pm,
                eigen_vermogen=eigen_vermogen,
                nieuwe_woning=nieuwe_woning,
            )
            log.info(
                "%s: validation passed (woningwaarde=%.0f, verbouwing=%s)",
                TOOL_NAME,
                validated.nieuwe_woning.waarde_woning,
                validated.nieuwe_woning.bedrag_verbouwen > 0,
            )
            data = await call_backend(
                services,
                services.settings.opzet_url,
                _build_payload(validated),
                session_id=validated.session_id,
            )
            return format_response(data, TOOL_NAME)

    return opzet_hypotheek_starter
