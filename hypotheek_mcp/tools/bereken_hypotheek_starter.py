"""bereken_hypotheek_starter tool handler.

Maximum mortgage for first-time buyers: applicant data only, standard
market conditions.  The backend returns an NHG and a non-NHG scenario.
"""

from hypotheek_mcp.formatting import format_response
from hypotheek_mcp.models.schemas import BerekenStarterInput
from hypotheek_mcp.services import Services
from hypotheek_mcp.tools.hypotheek_base import aanvragers_payload, call_backend, tool_call, with_session

TOOL_NAME = "bereken_hypotheek_starter"


def _build_payload(validated: BerekenStarterInput) -> dict:
    return with_session({"aanvragers": aanvragers_payload(validated)}, validated.session_id)


def create_handler(services: Services):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def bereken_hypotheek_starter(
        inkomen_aanvrager: float,
        geboortedatum_aanvrager: str,
        heeft_partner: bool,
        inkomen_partner: float | None = None,
        geboortedatum_partner: str | None = None,
        verplichtingen_pm: float = 0,
        session_id: str | None = None,
    ) -> str:
        """Calculate the maximum mortgage for a first-time buyer."""
        async with tool_call(services, TOOL_NAME, session_id) as log:
            validated = BerekenStarterInput(
                session_id=session_id,
                inkomen_aanvrager=inkomen_aanvrager,
                geboortedatum_aanvrager=geboortedatum_aanvrager,
                heeft_partner=heeft_partner,
                inkomen_partner=inkomen_partner,
                geboortedatum_partner=geboortedatum_partner,
                verplichtingen_pm=verplichtingen_pm,
            )
            log.info("%s: validation passed (heeft_partner=%s)", TOOL_NAME, validated.heeft_partner)
            data = await call_backend(
                services,
                services.settings.berekenen_url,
                _build_payload(validated),
                session_id=validated.session_id,
            )
            return format_response(data, TOOL_NAME)

    return bereken_hypotheek_starter
