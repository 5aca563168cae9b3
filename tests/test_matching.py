"""
test_matching.py

Name normalization, metric resolution and relationship expansion.
"""
import pytest

from lab_analyzer.analysis.matching import find_matching_metric, find_related, names_match, normalize
from lab_analyzer.knowledge.models import Condition, Diagnostic, DiagnosticGroup, DiagnosticMetric


def metric(name, codes=(), units=""):
    return DiagnosticMetric(name=name, oru_codes=list(codes), units=units)


METRICS = [
    metric("Glucose", ["GLU"], "mmol/L"),
    metric("Total Cholesterol", ["CHOL"], "mmol/L"),
    metric("Haemoglobin", ["HGB", "Hb"], "g/L"),
]

CONDITIONS = [
    Condition(name="Diabetes", metric_names=["Glucose", "HbA1c"], group_names=["Diabetes Screen"]),
    Condition(name="Anaemia", metric_names=["haemoglobin"], group_names=["Full Blood Count"]),
    Condition(name="Dyslipidaemia", metric_names=["Cholesterol"], group_names=["Lipid Panel"]),
]

GROUPS = [
    DiagnosticGroup(name="Metabolic Panel", metric_names=["GLUCOSE"]),
    DiagnosticGroup(name="Lipid Panel", metric_names=["Total Cholesterol"]),
    DiagnosticGroup(name="Full Blood Count", metric_names=["Haemoglobin"]),
]

DIAGNOSTICS = [
    Diagnostic(name="Fasting Glucose Test", metric_names=["Glucose"]),
    Diagnostic(name="Full Blood Examination", metric_names=["Haemoglobin", "Platelets"]),
]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("HbA1c (%)", "hba1c"),
        ("Total-Cholesterol", "totalcholesterol"),
        ("  GLU  ", "glu"),
        ("Naïve", "nave"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize("raw", ["HbA1c (%)", "a-B_c 1", "ÄÖÜ", "x" * 3, "123 abc"])
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(once) == once
    assert all(c in "abcdefghijklmnopqrstuvwxyz0123456789" for c in once)


def test_names_match_equal_and_substring_both_ways():
    assert names_match("Glucose", "GLUCOSE")
    assert names_match("Cholesterol", "Total Cholesterol")
    assert names_match("Total Cholesterol", "cholesterol")
    assert not names_match("Glucose", "Cholesterol")


def test_empty_normalized_name_matches_everything():
    assert names_match("", "Glucose")
    assert names_match("---", "Glucose")
    assert names_match("Glucose", "%")


def test_punctuation_only_test_name_resolves_to_first_metric():
    table = [DiagnosticMetric(name="Glucose", oru_codes=["GLU"])]
    assert find_matching_metric("%", table) is table[0]
    assert find_matching_metric("%", METRICS).name == "Glucose"


def test_empty_alias_is_ignored():
    table = [metric("Sodium", ["---"]), metric("Glucose", ["GLU"])]
    assert find_matching_metric("GLU", table).name == "Glucose"


def test_punctuation_only_test_name_relates_every_listed_entity():
    m = find_matching_metric("%", METRICS)
    rel = find_related(m, "%", CONDITIONS, GROUPS, DIAGNOSTICS)
    assert rel.conditions == ["Diabetes", "Anaemia", "Dyslipidaemia"]
    assert rel.groups == [
        "Metabolic Panel",
        "Lipid Panel",
        "Full Blood Count",
        "Diabetes Screen",
    ]
    assert rel.diagnostics == ["Fasting Glucose Test", "Full Blood Examination"]


def test_exact_name_match():
    assert find_matching_metric("glucose", METRICS).name == "Glucose"


def test_units_hint_requires_exact_units_on_first_pass():
    # Unidades distintas: el primer paso falla, pero el segundo encuentra por nombre parcial
    m = find_matching_metric("Glucose", METRICS, units="mg/dL")
    assert m.name == "Glucose"

    table = [metric("Glucose", units="mg/dL"), metric("Glucose", units="mmol/L")]
    assert find_matching_metric("Glucose", table, units="mmol/L") is table[1]
    assert find_matching_metric("Glucose", table) is table[0]
    assert find_matching_metric("Glucose", table, units="") is table[0]


def test_first_match_in_table_order_wins():
    first = metric("Sodium", units="mmol/L")
    second = metric("SODIUM", units="mmol/L")
    assert find_matching_metric("sodium", [first, second]) is first
    assert find_matching_metric("sodium", [second, first]) is second


def test_code_alias_match():
    assert find_matching_metric("HGB", METRICS).name == "Haemoglobin"
    # El alias aparece dentro del nombre del examen
    assert find_matching_metric("CHOL HDL", METRICS).name == "Total Cholesterol"


def test_partial_name_match():
    assert find_matching_metric("Fasting Glucose", METRICS).name == "Glucose"
    assert find_matching_metric("Cholesterol", METRICS).name == "Total Cholesterol"


def test_short_name_false_positive_is_kept():
    table = [metric("Potassium", ["K"]), metric("Creatinine Kinase", ["CK"])]
    # "k" es subcadena de "ckmb": gana el primero en la tabla
    assert find_matching_metric("CK-MB", table).name == "Potassium"


def test_no_match():
    assert find_matching_metric("Troponin", METRICS) is None
    assert find_matching_metric("", METRICS) is None


def test_related_entities():
    m = find_matching_metric("Glucose", METRICS)
    rel = find_related(m, "Glucose", CONDITIONS, GROUPS, DIAGNOSTICS)
    assert rel.conditions == ["Diabetes"]
    # Metabolic Panel directo; Diabetes Screen vía la condición
    assert rel.groups == ["Metabolic Panel", "Diabetes Screen"]
    assert rel.diagnostics == ["Fasting Glucose Test"]


def test_related_groups_are_deduplicated():
    m = find_matching_metric("Total Cholesterol", METRICS)
    rel = find_related(m, "Total Cholesterol", CONDITIONS, GROUPS, DIAGNOSTICS)
    assert rel.conditions == ["Dyslipidaemia"]
    # Lipid Panel directo y por condición: sin duplicados
    assert rel.groups == ["Lipid Panel"]
    assert rel.diagnostics == []


def test_related_matches_via_test_name_when_metric_name_differs():
    m = find_matching_metric("HGB", METRICS)
    conditions = [Condition(name="Polycythaemia", metric_names=["HGB"])]
    rel = find_related(m, "HGB", conditions, GROUPS, DIAGNOSTICS)
    assert rel.conditions == ["Polycythaemia"]
    assert rel.groups == ["Full Blood Count"]
    assert rel.diagnostics == ["Full Blood Examination"]


def test_no_metric_means_no_relations():
    rel = find_related(None, "Glucose", CONDITIONS, GROUPS, DIAGNOSTICS)
    assert rel.conditions == [] and rel.groups == [] and rel.diagnostics == []
