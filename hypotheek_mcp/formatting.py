"""Render backend calculation results as Markdown for the chat client.

The backend's response shapes are opaque; every field is optional here
and missing values render as ``N/A`` rather than raising.
"""

from __future__ import annotations

import json
from typing import Any

_RULE = "━" * 34
_THIN_RULE = "─" * 45

_TITLES = {
    "bereken_hypotheek_starter": "HYPOTHEEKBEREKENING VOOR STARTER",
    "bereken_hypotheek_doorstromer": "HYPOTHEEKBEREKENING VOOR DOORSTROMER",
    "bereken_hypotheek_uitgebreid": "UITGEBREIDE HYPOTHEEKBEREKENING",
}

_LOW_LABELS = {"D", "E", "F", "G"}


# ── Number formatting (nl-NL) ───────────────────────────────────────────


def format_euro(value: Any, decimals: int = 0) -> str:
    """``1234567.5`` → ``€1.234.568`` (or ``€1.234.567,50`` with decimals=2)."""
    if not _is_number(value):
        return "N/A"
    text = f"{value:,.{decimals}f}"
    return "€" + text.replace(",", "_").replace(".", ",").replace("_", ".")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _amount(mapping: dict, key: str) -> float:
    """``mapping[key]`` when numeric, else 0."""
    value = mapping.get(key)
    return value if _is_number(value) else 0


def _years(months: Any) -> str:
    if not _is_number(months) or not months:
        return "N/A"
    return f"{months / 12:.0f} jaar"


def _percent(rate: Any) -> str:
    if not _is_number(rate) or not rate:
        return "N/A"
    return f"{rate * 100:.2f}%"


def _section(title: str) -> list[str]:
    return [_RULE, f"**{title}**", _RULE, ""]


# ── Maximum-mortgage results ────────────────────────────────────────────


def format_bereken_response(data: Any, tool_name: str) -> str:
    lines = [f"**{_TITLES.get(tool_name, tool_name.upper())}**", ""]
    if not isinstance(data, dict):
        return "\n".join(lines + [str(data)])

    for index, resultaat in enumerate(data.get("resultaat") or []):
        gegevens = resultaat.get("gebruikte_hypotheekgegevens") or {}
        opzet = gegevens.get("opzet_nieuwe_hypotheek") or []
        scenario = resultaat.get("resultaat_omschrijving") or f"Scenario {index + 1}"

        lines += _section(scenario)
        lines.append(f"- Maximale hypotheek: {format_euro(resultaat.get('maximaal_bedrag'))}")
        lines.append(f"- Maandlast: {format_euro(resultaat.get('bruto_maandlasten_nieuwe_lening'), 2)}")
        if resultaat.get("overwaarde") is not None:
            lines.append(f"- Overwaarde: {format_euro(resultaat.get('overwaarde'))}")
        if opzet:
            deel = opzet[0]
            lines.append(f"- Hypotheekvorm: {deel.get('hypotheekvorm') or 'N/A'}")
            lines.append(f"- Looptijd: {_years(deel.get('looptijd_maanden'))}")
            lines.append(f"- Rentevaste periode: {_years(deel.get('rentevastperiode_maanden'))}")
            lines.append(f"- Rentepercentage: {_percent(deel.get('rente'))}")
        lines.append(f"- Energielabel: {gegevens.get('energielabel') or 'N/A'}")
        lines.append(f"- NHG: {'Ja' if gegevens.get('nhg_toegepast') else 'Nee'}")

        bestaand = resultaat.get("bestaande_situatie")
        if bestaand:
            lines += ["", "**Huidige situatie:**"]
            lines.append(f"- Woningwaarde: {format_euro(bestaand.get('woningwaarde'))}")
            lines.append(f"- Totale restschuld: {format_euro(bestaand.get('totale_restschuld'))}")
            lines.append(f"- Huidige maandlast: {format_euro(bestaand.get('huidige_maandlast'), 2)}")
        lines.append("")

    verschil = data.get("energielabel_verschil")
    if verschil:
        lines += ["**Energielabel impact:**", str(verschil.get("opmerking") or ""), ""]
        per_label = verschil.get("verschil_per_label") or {}
        if per_label:
            lines.append("Verschil per energielabel:")
            for label in per_label:
                extra = " extra" if _amount(per_label, label) > 0 else ""
                lines.append(f"- {label}: {format_euro(_amount(per_label, label))}{extra}")

    return "\n".join(lines).rstrip() + "\n"


# ── Mortgage set-up results ─────────────────────────────────────────────


def _totaal_benodigd(benodigd: dict) -> float:
    return _amount(benodigd, "Totaal_benodigd") or sum(
        _amount(benodigd, key)
        for key in ("Woning_koopsom", "Verbouwingskosten_meerwerk", "Verduurzamingskosten", "Kosten")
    )


def _benodigd_section(benodigd: dict) -> list[str]:
    lines = _section("TOTAAL BENODIGD BEDRAG")
    lines.append(f"- Koopsom woning: {format_euro(benodigd.get('Woning_koopsom'))}")
    if _amount(benodigd, "Verbouwingskosten_meerwerk") > 0:
        lines.append(f"- Verbouwing/meerwerk: {format_euro(benodigd['Verbouwingskosten_meerwerk'])}")
    if _amount(benodigd, "Verduurzamingskosten") > 0:
        lines.append(f"- Verduurzaming: {format_euro(benodigd['Verduurzamingskosten'])}")
    lines.append(f"- Kosten koper: {format_euro(benodigd.get('Kosten'))}")
    lines += [_THIN_RULE, f"**TOTAAL BENODIGD: {format_euro(_totaal_benodigd(benodigd))}**", ""]
    return lines


def _financiering_section(resultaat: dict, is_doorstromer: bool) -> list[str]:
    financiering = resultaat["Financiering"]
    lines = _section("FINANCIERING")

    bestaand = financiering.get("Bestaande_hypotheek") or {}
    if is_doorstromer and bestaand:
        lines.append(f"- Bestaande hypotheek (over te sluiten): {format_euro(bestaand.get('Totaal_schuld'))}")

    nieuwe = _amount(financiering, "Nieuwe_hypotheek") or _amount(financiering, "Hypotheek")
    if is_doorstromer and nieuwe > 0:
        lines.append(f"- Nieuwe hypotheek (extra): {format_euro(nieuwe)}")
    else:
        lines.append(f"- Hypotheek: {format_euro(nieuwe)}")

    overwaarde = _amount(financiering, "Overwaarde")
    if overwaarde > 0:
        lines.append(f"- Overwaarde huidige woning: {format_euro(overwaarde)}")
    eigen_geld = _amount(financiering, "Eigen_geld")
    if eigen_geld > 0:
        lines.append(f"- Eigen geld: {format_euro(eigen_geld)}")

    totaal = _amount(financiering, "Totaal_financiering") or (
        _amount(bestaand, "Totaal_schuld") + nieuwe + overwaarde + eigen_geld
    )
    lines += [_THIN_RULE, f"**TOTAAL FINANCIERING: {format_euro(totaal)}**", ""]

    benodigd = resultaat.get("Benodigd_bedrag")
    if benodigd:
        nodig = _totaal_benodigd(benodigd)
        verschil = abs(totaal - nodig)
        if verschil < 1:
            lines.append("Balans: financiering dekt het benodigde bedrag.")
        elif totaal < nodig:
            lines.append(f"Let op: tekort van {format_euro(verschil)}. Meer eigen geld of een hogere hypotheek nodig.")
        else:
            lines.append(f"Overschot van {format_euro(verschil)}. Kan als buffer dienen.")
        lines.append("")
    return lines


def _maandlasten_section(resultaat: dict, is_doorstromer: bool) -> list[str]:
    lines = _section("MAANDLASTEN")
    maandlasten = resultaat.get("Maandlasten")
    if not maandlasten:
        bruto = _amount(resultaat, "bruto_maandlasten_nieuwe_lening")
        return lines + [f"**Bruto maandlast: {format_euro(bruto, 2)}/maand**", ""]

    totaal = round(_amount(maandlasten, "Totaal"))
    if not is_doorstromer:
        return lines + [f"**Bruto maandlast: {format_euro(totaal)}/maand**", ""]

    lines.append(f"- Bestaande hypotheek: {format_euro(round(_amount(maandlasten, 'Bestaande_hypotheek')))}/maand")
    lines.append(f"- Nieuwe hypotheek (extra): {format_euro(round(_amount(maandlasten, 'Nieuwe_hypotheek')))}/maand")
    lines += [_THIN_RULE, f"**TOTAAL MAANDLAST: {format_euro(totaal)}/maand**", ""]

    verschil = _amount(maandlasten, "Verschil")
    if verschil > 0:
        lines.append(f"Stijging maandlast: +{format_euro(round(verschil))}/maand")
    elif verschil < 0:
        lines.append(f"Daling maandlast: -{format_euro(round(abs(verschil)))}/maand")
    else:
        lines.append("Maandlast blijft gelijk")
    return lines + [""]


def _details_section(gegevens: dict) -> list[str]:
    lines = _section("HYPOTHEEKDETAILS")
    label = f"- Energielabel: {gegevens.get('energielabel') or 'N/A'}"
    if _amount(gegevens, "energielabel_toeslag") > 0:
        label += f" (+{format_euro(gegevens['energielabel_toeslag'])} extra leencapaciteit)"
    lines.append(label)
    lines.append(f"- NHG: {'Ja' if gegevens.get('nhg_toegepast') else 'Nee'}")

    for index, deel in enumerate(gegevens.get("opzet_nieuwe_hypotheek") or [], start=1):
        bestaand = deel.get("type") == "bestaand_leningdeel"
        lines += ["", f"**{'Bestaand' if bestaand else 'Nieuw'} deel {index}:**"]
        lines.append(f"- Bedrag: {format_euro(deel.get('hypotheekbedrag'))}")
        lines.append(f"- Rente: {_percent(deel.get('rente'))}")
        lines.append(f"- Type: {deel.get('hypotheekvorm') or 'N/A'}")
        if bestaand:
            lines.append(f"- Resterende looptijd: {_years(deel.get('resterende_looptijd_maanden'))}")
        else:
            lines.append(f"- Looptijd: {_years(deel.get('looptijd_maanden'))}")
        rentevast = deel.get("rentevastperiode_maanden")
        lines.append(f"- Rentevast: {_years(rentevast) if rentevast else 'Variabel'}")
    return lines + [""]


def format_opzet_response(data: Any, tool_name: str) -> str:
    tool_type = tool_name.removeprefix("opzet_hypotheek_").upper()
    is_doorstromer = "doorstromer" in tool_name
    lines = [f"**OPZET HYPOTHEEK - {tool_type}**", ""]
    if not isinstance(data, dict):
        return "\n".join(lines + [str(data)])

    resultaat = data.get("resultaat") or {}
    if resultaat:
        if resultaat.get("Benodigd_bedrag"):
            lines += _benodigd_section(resultaat["Benodigd_bedrag"])
        if resultaat.get("Financiering"):
            lines += _financiering_section(resultaat, is_doorstromer)
        lines += _maandlasten_section(resultaat, is_doorstromer)
        if resultaat.get("gebruikte_hypotheekgegevens"):
            lines += _details_section(resultaat["gebruikte_hypotheekgegevens"])

        label = (resultaat.get("gebruikte_hypotheekgegevens") or {}).get("energielabel")
        if isinstance(label, str) and label in _LOW_LABELS:
            lines.append("Tip: met verduurzaming naar label A++ of hoger kunt u extra lenen tegen een lagere rente.")
        elif isinstance(label, str) and label.startswith("A"):
            lines.append("Uitstekend energielabel: dit geeft extra leencapaciteit.")

    disclaimers = (data.get("extra_informatie") or {}).get("disclaimers") or []
    if disclaimers:
        lines += [""] + _section("DISCLAIMERS")
        lines += [f"- {disclaimer}" for disclaimer in disclaimers]

    return "\n".join(lines).rstrip() + "\n"


def format_rentes_response(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def format_response(data: Any, tool_name: str) -> str:
    """Dispatch to the formatter for *tool_name*."""
    if tool_name.startswith("opzet_hypotheek_"):
        return format_opzet_response(data, tool_name)
    if tool_name.startswith("bereken_hypotheek_"):
        return format_bereken_response(data, tool_name)
    return format_rentes_response(data)
