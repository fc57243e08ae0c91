"""opzet_hypotheek_uitgebreid tool handler.

Mortgage set-up with full control: optional existing mortgage
(``is_doorstromer``) and optional ``nieuwe_lening`` terms with custom
interest brackets.
"""

from typing import Any

from hypotheek_mcp.formatting import format_response
from hypotheek_mcp.models.schemas import OpzetNieuweLening, OpzetUitgebreidInput
from hypotheek_mcp.services import Services
from hypotheek_mcp.tools.hypotheek_base import (
    bestaande_hypotheek_payload,
    call_backend,
    nieuwe_woning_payload,
    opzet_aanvrager_payload,
    tool_call,
    with_session,
)

TOOL_NAME = "opzet_hypotheek_uitgebreid"


def _nieuwe_lening(lening: OpzetNieuweLening) -> dict:
    block: dict[str, Any] = {
        "looptijd_jaren": lening.looptijd_jaren,
        "rentevast_periode_jaren": lening.rentevast_periode_jaren,
        "nhg": lening.nhg,
    }
    if lening.renteklassen:
        block["renteklassen"] = [klasse.model_dump() for klasse in lening.renteklassen]
    return block


def _build_payload(validated: OpzetUitgebreidInput) -> dict:
    payload: dict[str, Any] = {
        "aanvrager": opzet_aanvrager_payload(validated),
        "nieuwe_woning": nieuwe_woning_payload(validated.nieuwe_woning),
    }
    if validated.is_doorstromer and validated.waarde_huidige_woning and validated.bestaande_hypotheek:
        payload["bestaande_hypotheek"] = bestaande_hypotheek_payload(
            validated.waarde_huidige_woning,
            validated.bestaande_hypotheek,
        )
    if validated.nieuwe_lening is not None:
        payload["nieuwe_lening"] = _nieuwe_lening(validated.nieuwe_lening)
    return with_session(payload, validated.session_id)


def create_handler(services: Services):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def opzet_hypotheek_uitgebreid(
        inkomen_aanvrager: float,
        geboortedatum_aanvrager: str,
        heeft_partner: bool,
        nieuwe_woning: dict[str, Any],
        inkomen_partner: float | None = None,
        geboortedatum_partner: str | None = None,
        verplichtingen_pm: float = 0,
        eigen_vermogen: float = 0,
        is_doorstromer: bool = False,
        waarde_huidige_woning: float | None = None,
        bestaande_hypotheek: dict[str, Any] | None = None,
        nieuwe_lening: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> str:
        """Set up a mortgage with custom term, fixed-rate period and brackets."""
        async with tool_call(services, TOOL_NAME, session_id) as log:
            validated = OpzetUitgebreidInput(
                session_id=session_id,
                inkomen_aanvrager=inkomen_aanvrager,
                geboortedatum_aanvrager=geboortedatum_aanvrager,
                heeft_partner=heeft_partner,
                inkomen_partner=inkomen_partner,
                geboortedatum_partner=geboortedatum_partner,
                verplichtingen_pm=verplichtingen_pm,
                eigen_vermogen=eigen_vermogen,
                nieuwe_woning=nieuwe_woning,
                is_doorstromer=is_doorstromer,
                waarde_huidige_woning=waarde_huidige_woning,
                bestaande_hypotheek=bestaande_hypotheek,
                nieuwe_lening=nieuwe_lening,
            )
            log.info("%s: validation passed (is_doorstromer=%s)", TOOL_NAME, validated.is_doorstromer)
            data = await call_backend(
                services,
                services.settings.opzet_url,
                _build_payload(validated),
                session_id=validated.session_id,
            )
            return format_response(data, TOOL_NAME)

    return opzet_hypotheek_uitgebreid
