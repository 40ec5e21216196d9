"""Tests for reportgen.cli.utils parameter parsing."""

from __future__ import annotations

import pytest

from reportgen.cli.utils import build_request, parse_param_option
from reportgen.core.errors import DuplicateParameterError, ParameterStructureError
from reportgen.core.params import ParamType


class TestParseParamOption:
    def test_default_type_is_string(self):
        assert parse_param_option("sugtslist=1,2") == ("sugtslist", "1,2", ParamType.STRING)

    def test_type_by_name(self):
        assert parse_param_option("mnt=275:int32") == ("mnt", "275", ParamType.INT32)

    def test_type_by_number(self):
        assert parse_param_option("mnt=275:11") == ("mnt", "275", ParamType.INT32)

    def test_colon_in_value_is_kept(self):
        assert parse_param_option("at=10:30") == ("at", "10:30", ParamType.STRING)
        assert parse_param_option("at=10:30:STRING") == ("at", "10:30", ParamType.STRING)

    @pytest.mark.parametrize("option", ["novalue", "=x", "  =x"])
    def test_malformed(self, option):
        with pytest.raises(ParameterStructureError):
            parse_param_option(option)


class TestBuildRequest:
    def test_builds_in_order(self):
        request = build_request(["mnt=275:INT32", "isvkod=12"])
        assert list(request.parameters) == ["mnt", "isvkod"]
        assert request.parameters["mnt"].type == ParamType.INT32

    def test_duplicates_rejected(self):
        with pytest.raises(DuplicateParameterError):
            build_request(["mnt=1", "MNT=2"])
