"""Tests for reportgen.framework.enrichment.ParameterEnricher."""

import pytest

from reportgen.core.errors import DuplicateParameterError, ErrorCode, ParameterStructureError, ReportAbortedError
from reportgen.core.params import ParameterRequest, ParamType
from reportgen.framework.arbitration import ErrorArbiter, ErrorSeverity
from reportgen.framework.enrichment import ParameterEnricher, split_codes
from reportgen.framework.sources.memory import InMemoryLookupService


@pytest.fixture
def enricher(data_source, lookups, arbiter):
    return ParameterEnricher(data_source, lookups, arbiter)


class TestSplitCodes:
    """Comma separated code lists."""

    def test_split(self):
        assert split_codes("1, 2,,3") == ["1", "2", "3"]
        assert split_codes(None) == []
        assert split_codes("  ") == []
        assert split_codes(7) == ["7"]


class TestNormalize:
    """Caller input handling."""

    def test_none_gives_empty_map_before_gap_fill(self, enricher):
        params = enricher.enrich("r", None, None)
        assert "mnt" not in params
        assert params.value("rashutName") == "מועצה אזורית"

    def test_malformed_triples_are_fatal(self, enricher):
        with pytest.raises(ParameterStructureError):
            enricher.enrich("r", "rpt_charges", ["mnt", 275])

    def test_duplicate_names_are_fatal(self, enricher):
        with pytest.raises(DuplicateParameterError):
            enricher.enrich("r", "rpt_charges", ["mnt", 1, 11, "MNT", 2, 11])

    def test_request_is_not_mutated(self, enricher):
        request = ParameterRequest.builder().add("mnt", 275, ParamType.INT32).build()
        enricher.enrich("r", "rpt_charges", request)
        assert list(request.parameters) == ["mnt"]


class TestGapFill:
    """Declared parameters the caller omitted."""

    def test_fills_declared_defaults(self, enricher):
        params = enricher.enrich("charges", "rpt_charges", ["mnt", 275, 11])
        assert params.value("sugtslist") == ""
        assert params["sugtslist"].type == ParamType.STRING
        assert params.value("fromdate") is None
        assert params["fromdate"].type == ParamType.DATETIME

    def test_non_nullable_integer_defaults_to_zero(self, enricher):
        params = enricher.enrich("charges", "rpt_charges", [])
        assert params.value("mnt") == 0

    def test_supplied_values_win(self, enricher):
        params = enricher.enrich("charges", "rpt_charges", ["SugtsList", "4", 16])
        assert params.value("sugtslist") == "4"

    def test_unreadable_declarations_warn(self, lookups, arbiter, sink):
        class Broken:
            def get_declared_parameters(self, name):
                raise RuntimeError("no metadata")

        params = ParameterEnricher(Broken(), lookups, arbiter).enrich("r", "src", ["mnt", 275, 11])
        assert params.value("mnt") == 275
        assert sink.events[0].code == ErrorCode.PARAMETERS_MISSING


class TestDerivations:
    """Human-readable names derived from codes."""

    def test_month_and_period(self, enricher):
        params = enricher.enrich("charges", "rpt_charges", ["mnt", 275, 11])
        assert params.value("mntname") == "מרץ 2024"
        assert params.value("PeriodName") == "רבעון 1"

    def test_single_charge_type_is_looked_up(self, enricher):
        params = enricher.enrich("charges", "rpt_charges", ["sugts", "4", 16])
        assert params.value("sugtsname") == "ארנונה"

    def test_charge_type_list(self, enricher):
        params = enricher.enrich("charges", "rpt_charges", ["sugtslist", "4,5", 16])
        assert params.value("sugtsname") == "מספר סוגי חיוב"

    def test_no_charge_type_means_all(self, enricher):
        params = enricher.enrich("charges", "rpt_charges", [])
        assert params.value("sugtsname") == "כל סוגי חיוב"

    def test_settlements(self, enricher):
        assert enricher.enrich("r", None, ["isvkod", "12", 16]).value("ishvname") == "גבעת עדה"
        assert enricher.enrich("r", None, ["isvkod", "12,13", 16]).value("ishvname") == "מספר יישובים"
        assert enricher.enrich("r", None, []).value("ishvname") == "כל היישובים"

    def test_existing_names_are_not_overwritten(self, enricher):
        params = enricher.enrich("r", None, ["mnt", 275, 11, "mntname", "custom", 16])
        assert params.value("mntname") == "custom"
        assert params.value("PeriodName") == "רבעון 1"

    def test_rerun_on_output_is_idempotent(self, enricher):
        first = enricher.enrich("charges", "rpt_charges", ["mnt", 275, 11, "isvkod", "12", 16])
        second = enricher.enrich("charges", "rpt_charges", first)
        assert second.values_by_name() == first.values_by_name()

    def test_non_numeric_code_warns_and_continues(self, enricher, sink):
        params = enricher.enrich("r", None, ["mnt", "March", 16, "isvkod", "12", 16])
        assert "mntname" not in params
        assert params.value("ishvname") == "גבעת עדה"
        assert [e.code for e in sink.events] == [ErrorCode.DB_MONTH_NAME_NOT_FOUND]
        assert sink.events[0].severity == ErrorSeverity.WARNING

    def test_failing_lookup_is_isolated(self, data_source, arbiter, sink):
        class FlakyLookups(InMemoryLookupService):
            def organization_name(self):
                raise ConnectionError("db down")

        enricher = ParameterEnricher(data_source, FlakyLookups(), arbiter)
        params = enricher.enrich("r", None, ["sugts", "1", 16])
        assert "rashutName" not in params
        assert params.value("sugtsname") == "סוג חיוב 1"
        assert sink.events[0].code == ErrorCode.DB_ORGANIZATION_NAME_NOT_FOUND

    def test_abort_when_warnings_break(self, data_source, sink):
        class FlakyLookups(InMemoryLookupService):
            def month_name(self, code):
                raise ConnectionError("db down")

        arbiter = ErrorArbiter([sink], break_threshold=ErrorSeverity.WARNING)
        enricher = ParameterEnricher(data_source, FlakyLookups(), arbiter)
        with pytest.raises(ReportAbortedError) as exc_info:
            enricher.enrich("r", None, ["mnt", 275, 11])
        assert exc_info.value.code == ErrorCode.DB_MONTH_NAME_NOT_FOUND
