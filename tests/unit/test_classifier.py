import pytest

from inspection_import.findings.classifier import (
    DEFAULT_DEPARTMENT,
    classify,
    context_department,
    infer_category,
    infer_department,
    infer_severity,
    parse_category,
    parse_inspection_type,
    parse_severity,
)
from inspection_import.findings.models import FindingCategory, InspectionType, Severity


class TestInferCategory:
    def test_material_keyword(self) -> None:
        assert infer_category("Material porosity on casting") == FindingCategory.MATERIAL_DEFECT

    def test_assembly_keyword(self) -> None:
        assert infer_category("Assembly torque out of range") == FindingCategory.ASSEMBLY_ISSUE

    def test_process_keyword(self) -> None:
        assert infer_category("Process sheet not followed") == FindingCategory.PROCESS_DEVIATION

    def test_keyword_match_is_case_insensitive(self) -> None:
        assert infer_category("MATERIAL certificate missing") == FindingCategory.MATERIAL_DEFECT

    def test_no_keyword_defaults_to_quality_standard_violation(self) -> None:
        assert infer_category("Bent bracket") == FindingCategory.QUALITY_STANDARD_VIOLATION

    def test_first_keyword_in_table_order_wins(self) -> None:
        assert infer_category("assembly of material") == FindingCategory.MATERIAL_DEFECT


class TestInferSeverity:
    @pytest.mark.parametrize("text", ["Critical weld crack", "severe corrosion"])
    def test_critical_keywords(self, text: str) -> None:
        assert infer_severity(text) == Severity.CRITICAL

    @pytest.mark.parametrize("text", ["Major dent", "significant misalignment"])
    def test_major_keywords(self, text: str) -> None:
        assert infer_severity(text) == Severity.MAJOR

    def test_default_is_minor(self) -> None:
        assert infer_severity("Bent bracket") == Severity.MINOR

    def test_critical_outranks_major(self) -> None:
        assert infer_severity("major and critical") == Severity.CRITICAL


class TestParsers:
    def test_parse_inspection_type_known(self) -> None:
        assert parse_inspection_type(" Final-QC ") == InspectionType.FINAL_QC

    def test_parse_inspection_type_unknown(self) -> None:
        assert parse_inspection_type("weekly") is None

    def test_parse_inspection_type_none(self) -> None:
        assert parse_inspection_type(None) is None

    def test_parse_category_by_value(self) -> None:
        assert parse_category("Assembly Issue") == FindingCategory.ASSEMBLY_ISSUE

    def test_parse_category_by_compact_name(self) -> None:
        assert parse_category("QualityStandardViolation") == (
            FindingCategory.QUALITY_STANDARD_VIOLATION
        )

    def test_parse_category_by_enum_name(self) -> None:
        assert parse_category("process_deviation") == FindingCategory.PROCESS_DEVIATION

    def test_parse_category_unknown(self) -> None:
        assert parse_category("Cosmetic") is None

    def test_parse_severity(self) -> None:
        assert parse_severity("MAJOR") == Severity.MAJOR

    def test_parse_severity_unknown(self) -> None:
        assert parse_severity("blocker") is None


class TestContextDepartment:
    @pytest.mark.parametrize(
        ("inspection_type", "department"),
        [
            ("in-process", "Manufacturing"),
            ("final-qc", "Quality Control"),
            ("executive-review", "Management"),
            ("pdi", "Pre-Delivery"),
        ],
    )
    def test_known_contexts(self, inspection_type: str, department: str) -> None:
        assert context_department(inspection_type) == department

    def test_missing_context_uses_default(self) -> None:
        assert context_department(None) == DEFAULT_DEPARTMENT

    def test_unknown_context_uses_default(self) -> None:
        assert context_department("audit") == DEFAULT_DEPARTMENT


class TestInferDepartment:
    @pytest.mark.parametrize(
        ("text", "department"),
        [
            ("Production line stopped at station 4", "Manufacturing"),
            ("Loose wiring behind dashboard", "Electrical"),
            ("Trip hazard near conveyor", "Safety"),
            ("Structural weld fatigue", "Mechanical"),
            ("Design drawing out of date", "Engineering"),
            ("Raw material batch mislabeled", "Materials"),
        ],
    )
    def test_text_keywords_without_context(self, text: str, department: str) -> None:
        assert infer_department(text) == department

    def test_first_matching_department_wins(self) -> None:
        assert infer_department("Assembly wiring harness pinched") == "Manufacturing"

    def test_context_takes_precedence_over_keywords(self) -> None:
        assert infer_department("Loose wiring behind dashboard", "pdi") == "Pre-Delivery"

    def test_unknown_context_falls_back_to_keywords(self) -> None:
        assert infer_department("Trip hazard near conveyor", "audit") == "Safety"

    def test_no_keyword_uses_default(self) -> None:
        assert infer_department("Bent bracket") == DEFAULT_DEPARTMENT


class TestClassify:
    def test_two_fragment_final_qc_scenario(self) -> None:
        findings = [
            classify("Bent bracket", None, None, inspection_type="final-qc"),
            classify("Critical weld crack", inspection_type="final-qc"),
        ]

        assert [(f.category, f.severity) for f in findings] == [
            (FindingCategory.QUALITY_STANDARD_VIOLATION, Severity.MINOR),
            (FindingCategory.QUALITY_STANDARD_VIOLATION, Severity.CRITICAL),
        ]
        assert all(f.department == "Quality Control" for f in findings)

    def test_explicit_values_take_precedence(self) -> None:
        finding = classify(
            "Critical material crack",
            category="Assembly Issue",
            severity="minor",
            department="Paint Shop",
            inspection_type="in-process",
        )
        assert finding.category == FindingCategory.ASSEMBLY_ISSUE
        assert finding.severity == Severity.MINOR
        assert finding.department == "Paint Shop"

    def test_unrecognized_explicit_values_fall_back_to_heuristics(self) -> None:
        finding = classify("Major material void", category="Cosmetic", severity="blocker")
        assert finding.category == FindingCategory.MATERIAL_DEFECT
        assert finding.severity == Severity.MAJOR

    def test_blank_department_uses_context(self) -> None:
        finding = classify("Scratch", department="  ", inspection_type="pdi")
        assert finding.department == "Pre-Delivery"

    def test_department_from_text_without_context(self) -> None:
        assert classify("Exposed wiring at rear panel").department == "Electrical"

    def test_confidence_is_clamped(self) -> None:
        assert classify("Scratch", confidence=1.7).confidence == 1.0
        assert classify("Scratch", confidence=-0.2).confidence == 0.0

    def test_default_confidence(self) -> None:
        assert classify("Scratch").confidence == 0.8

    def test_text_is_stripped(self) -> None:
        assert classify("  Scratch \n").text == "Scratch"

    def test_bounding_box_and_location_are_kept(self) -> None:
        finding = classify("Scratch", bounding_box=[0, 0, 1, 0, 1, 1, 0, 1], location=" Hood ")
        assert finding.bounding_box == (0.0, 0.0, 1.0, 0.0, 1.0, 1.0, 0.0, 1.0)
        assert finding.location == "Hood"

    def test_empty_text_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            classify("   ")
