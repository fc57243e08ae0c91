"""Tests for Markdown rendering of backend results."""

import json

import pytest

from hypotheek_mcp.formatting import format_euro, format_response

BEREKEN_DATA = {
    "resultaat": [
        {
            "resultaat_omschrijving": "Met NHG",
            "maximaal_bedrag": 325_000,
            "bruto_maandlasten_nieuwe_lening": 1_432.5,
            "gebruikte_hypotheekgegevens": {
                "energielabel": "A",
                "nhg_toegepast": True,
                "opzet_nieuwe_hypotheek": [
                    {
                        "hypotheekvorm": "annuiteit",
                        "looptijd_maanden": 360,
                        "rentevastperiode_maanden": 120,
                        "rente": 0.0372,
                    }
                ],
            },
        }
    ],
    "energielabel_verschil": {
        "opmerking": "Een beter label verhoogt de leencapaciteit.",
        "verschil_per_label": {"A++": 10_000, "G": 0},
    },
}

OPZET_DATA = {
    "resultaat": {
        "Benodigd_bedrag": {"Woning_koopsom": 400_000, "Kosten": 20_000},
        "Financiering": {"Hypotheek": 380_000, "Eigen_geld": 40_000},
        "Maandlasten": {"Totaal": 1_650.4},
        "gebruikte_hypotheekgegevens": {"energielabel": "E", "nhg_toegepast": False},
    },
    "extra_informatie": {"disclaimers": ["Indicatief, geen advies."]},
}


class TestFormatEuro:
    @pytest.mark.parametrize(
        ("value", "decimals", "expected"),
        [(1_234_567.5, 0, "€1.234.568"), (1_234.5, 2, "€1.234,50"), (0, 0, "€0"), (999, 0, "€999")],
    )
    def test_dutch_grouping(self, value, decimals, expected):
        assert format_euro(value, decimals) == expected

    @pytest.mark.parametrize("value", [None, "12", True])
    def test_non_numbers(self, value):
        assert format_euro(value) == "N/A"


class TestBereken:
    def test_scenario_rendered(self):
        text = format_response(BEREKEN_DATA, "bereken_hypotheek_starter")
        assert text.startswith("**HYPOTHEEKBEREKENING VOOR STARTER**")
        assert "**Met NHG**" in text
        assert "Maximale hypotheek: €325.000" in text
        assert "Maandlast: €1.432,50" in text
        assert "Looptijd: 30 jaar" in text
        assert "Rentepercentage: 3.72%" in text
        assert "NHG: Ja" in text

    def test_energielabel_impact(self):
        text = format_response(BEREKEN_DATA, "bereken_hypotheek_uitgebreid")
        assert "- A++: €10.000 extra" in text
        assert "- G: €0" in text

    def test_missing_fields_render_na(self):
        text = format_response({"resultaat": [{}]}, "bereken_hypotheek_doorstromer")
        assert "Maximale hypotheek: N/A" in text
        assert "Scenario 1" in text

    def test_string_numbers_render_na(self):
        data = {
            "resultaat": [
                {
                    "gebruikte_hypotheekgegevens": {
                        "opzet_nieuwe_hypotheek": [
                            {"looptijd_maanden": "360", "rentevastperiode_maanden": "120", "rente": "0.04"}
                        ]
                    }
                }
            ],
            "energielabel_verschil": {"verschil_per_label": {"A": "5000"}},
        }
        text = format_response(data, "bereken_hypotheek_starter")
        assert "Looptijd: N/A" in text
        assert "Rentevaste periode: N/A" in text
        assert "Rentepercentage: N/A" in text
        assert "- A: €0" in text


class TestOpzet:
    def test_sections_and_balance(self):
        text = format_response(OPZET_DATA, "opzet_hypotheek_starter")
        assert text.startswith("**OPZET HYPOTHEEK - STARTER**")
        assert "**TOTAAL BENODIGD: €420.000**" in text
        assert "**TOTAAL FINANCIERING: €420.000**" in text
        assert "financiering dekt het benodigde bedrag" in text
        assert "Bruto maandlast: €1.650/maand" in text
        assert "Tip: met verduurzaming" in text
        assert "- Indicatief, geen advies." in text

    def test_shortfall_reported(self):
        data = {"resultaat": {**OPZET_DATA["resultaat"], "Financiering": {"Hypotheek": 300_000}}}
        assert "tekort van €120.000" in format_response(data, "opzet_hypotheek_starter")

    def test_non_numeric_amounts_count_as_zero(self):
        data = {
            "resultaat": {
                **OPZET_DATA["resultaat"],
                "Financiering": {"Hypotheek": "380000", "Eigen_geld": 40_000},
                "Maandlasten": {"Totaal": "1650"},
            }
        }
        text = format_response(data, "opzet_hypotheek_starter")
        assert "**TOTAAL FINANCIERING: €40.000**" in text
        assert "tekort van €380.000" in text
        assert "Bruto maandlast: €0/maand" in text

    def test_doorstromer_monthly_breakdown(self):
        data = {
            "resultaat": {
                "Maandlasten": {"Totaal": 2_000, "Bestaande_hypotheek": 800, "Nieuwe_hypotheek": 1_200, "Verschil": 400}
            }
        }
        text = format_response(data, "opzet_hypotheek_doorstromer")
        assert "TOTAAL MAANDLAST: €2.000/maand" in text
        assert "Stijging maandlast: +€400/maand" in text


class TestRentes:
    def test_json_passthrough(self):
        data = {"rentes": [{"periode": "10 jaar", "rente": 0.037}]}
        assert json.loads(format_response(data, "haal_actuele_rentes_op")) == data
