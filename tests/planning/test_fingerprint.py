"""Tests for attribute fingerprints and field diffs."""

from stackforge.planning.fingerprint import canonical_json, changed_fields, fingerprint_attributes


class TestFingerprint:
    """Test fingerprint stability."""

    def test_key_order_does_not_matter(self):
        assert fingerprint_attributes({"a": 1, "b": {"x": 1, "y": 2}}) == \
            fingerprint_attributes({"b": {"y": 2, "x": 1}, "a": 1})

    def test_value_change_changes_fingerprint(self):
        assert fingerprint_attributes({"a": 1}) != fingerprint_attributes({"a": 2})

    def test_list_order_matters(self):
        assert fingerprint_attributes({"ids": ["a", "b"]}) != fingerprint_attributes({"ids": ["b", "a"]})

    def test_prefix(self):
        assert fingerprint_attributes({}).startswith("sha256:")

    def test_placeholders_fingerprinted_unresolved(self):
        """Test a new upstream remote id does not look like a change."""
        assert fingerprint_attributes({"vpc_id": "${vpc.main}"}) == fingerprint_attributes({"vpc_id": "${vpc.main}"})

    def test_canonical_json_compact(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'


class TestChangedFields:
    """Test top-level attribute diffs."""

    def test_added_removed_changed(self):
        previous = {"keep": 1, "change": "x", "drop": True}
        desired = {"keep": 1, "change": "y", "add": [1]}
        assert changed_fields(previous, desired) == ["add", "change", "drop"]

    def test_nested_change_reports_top_level_key(self):
        assert changed_fields({"tags": {"a": "1"}}, {"tags": {"a": "2"}}) == ["tags"]

    def test_no_change(self):
        assert changed_fields({"a": {"b": 1}}, {"a": {"b": 1}}) == []
