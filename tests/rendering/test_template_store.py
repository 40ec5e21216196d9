"""Tests for reportgen.rendering.store.FileTemplateStore."""

import pytest

from reportgen.core.errors import ErrorCode, TemplateNotFoundError
from reportgen.rendering.store import FileTemplateStore, safe_file_name


class TestSafeFileName:
    def test_replaces_invalid_characters(self):
        assert safe_file_name(' a/b:c*d?"e<f>g|h ') == "a_b_c_d__e_f_g_h"

    def test_keeps_hebrew(self):
        assert safe_file_name("דוח חיובים") == "דוח חיובים"


class TestFileTemplateStore:
    """Templates on disk."""

    def test_save_then_get(self, tmp_path):
        store = FileTemplateStore(tmp_path / "templates")
        path = store.save("דוח/חודשי", "<h1>{{ReportTitle}}</h1>")
        assert path.name == "דוח_חודשי.html"
        assert store.exists("דוח/חודשי")
        assert store.get("דוח/חודשי") == "<h1>{{ReportTitle}}</h1>"

    def test_missing(self, tmp_path):
        store = FileTemplateStore(tmp_path)
        assert not store.exists("nope")
        with pytest.raises(TemplateNotFoundError) as exc_info:
            store.get("nope")
        assert exc_info.value.code == ErrorCode.TEMPLATE_NOT_FOUND

    def test_list_templates(self, tmp_path):
        store = FileTemplateStore(tmp_path)
        assert FileTemplateStore(tmp_path / "missing").list_templates() == []
        store.save("b", "x")
        store.save("a", "y")
        (tmp_path / "notes.txt").write_text("z")
        assert store.list_templates() == ["a", "b"]
