"""Tests for query descriptors, fingerprints and cursors."""

from datetime import datetime

from app.models.requirements import (
    Cursor,
    PageResult,
    QueryDescriptor,
    RemoteFilter,
    SortDirection,
    SortField,
    decode_cursor,
    encode_cursor,
)


class TestFingerprint:
    def test_key_order_does_not_matter(self):
        a = QueryDescriptor.from_dict(
            {"user_id": "u1", "status": "NEW", "search": "python", "page": 0, "page_size": 20, "sort_by": "rate"}
        )
        b = QueryDescriptor.from_dict(
            {"sort_by": "rate", "page_size": 20, "page": 0, "search": "python", "status": "NEW", "user_id": "u1"}
        )
        assert a.fingerprint() == b.fingerprint()

    def test_equivalent_spellings_share_a_key(self):
        a = QueryDescriptor.from_dict({"user_id": "u1", "status": " new ", "search": "python  "})
        b = QueryDescriptor.from_dict({"user_id": "u1", "status": "NEW", "search": "python"})
        assert a.fingerprint() == b.fingerprint()

    def test_unknown_status_keys_like_all(self):
        unknown = QueryDescriptor(user_id="u1", status="FOO")
        base = QueryDescriptor(user_id="u1")
        assert unknown.fingerprint() == base.fingerprint()
        assert unknown.filter_fingerprint() == base.filter_fingerprint()
        assert unknown.is_unfiltered

    def test_defaults_match_explicit_values(self):
        a = QueryDescriptor.from_dict({"user_id": "u1"})
        b = QueryDescriptor(user_id="u1", sort_by=SortField.DATE, sort_order=SortDirection.DESC)
        assert a.fingerprint() == b.fingerprint()

    def test_different_values_differ(self):
        base = QueryDescriptor(user_id="u1")
        assert base.fingerprint() != QueryDescriptor(user_id="u2").fingerprint()
        assert base.fingerprint() != QueryDescriptor(user_id="u1", page=1).fingerprint()
        assert base.fingerprint() != QueryDescriptor(user_id="u1", sort_order=SortDirection.ASC).fingerprint()

    def test_key_is_prefixed(self):
        assert QueryDescriptor(user_id="u1").fingerprint().startswith("requirements-page:")

    def test_filter_fingerprint_ignores_window_and_sort(self):
        first = QueryDescriptor(user_id="u1", status="NEW")
        later = QueryDescriptor(user_id="u1", status="NEW", page=3, sort_by=SortField.TITLE)
        assert first.filter_fingerprint() == later.filter_fingerprint()
        assert first.filter_fingerprint() != QueryDescriptor(user_id="u1").filter_fingerprint()


class TestFromDict:
    def test_unknown_enums_fall_back(self):
        d = QueryDescriptor.from_dict({"user_id": "u1", "sort_by": "salary", "sort_order": "sideways", "remote": "moon"})
        assert d.sort_by is SortField.DATE
        assert d.sort_order is SortDirection.DESC
        assert d.remote is RemoteFilter.ALL

    def test_enum_case_insensitive(self):
        d = QueryDescriptor.from_dict({"user_id": "u1", "sort_by": "Company", "sort_order": "ASC", "remote": "hybrid"})
        assert d.sort_by is SortField.COMPANY
        assert d.sort_order is SortDirection.ASC
        assert d.remote is RemoteFilter.HYBRID

    def test_cursor_token_decoded(self):
        token = encode_cursor(Cursor(sort_value="2025-06-01T10:00:00", id="abc"))
        d = QueryDescriptor.from_dict({"user_id": "u1", "cursor": token})
        assert d.cursor == Cursor(sort_value="2025-06-01T10:00:00", id="abc")

    def test_blank_filters_become_none(self):
        d = QueryDescriptor.from_dict({"user_id": "u1", "min_rate": "  ", "date_from": ""})
        assert d.min_rate is None
        assert d.date_from is None


class TestCursorTokens:
    def test_token_round_trip(self):
        cursor = Cursor(sort_value=72.5, id="abc")
        assert decode_cursor(encode_cursor(cursor)) == cursor

    def test_malformed_tokens(self):
        assert decode_cursor("not base64 !!") is None
        assert decode_cursor("e30=") is None  # {}
        assert decode_cursor("") is None
        assert decode_cursor(None) is None

    def test_from_record_uses_iso_timestamps(self, make_requirement):
        record = make_requirement(3, created_at=datetime(2025, 6, 1, 12, 30))
        cursor = Cursor.from_record(record, SortField.DATE)
        assert cursor.sort_value == "2025-06-01T12:30:00"
        assert cursor.id == record.id

    def test_from_record_coalesces_nulls(self, make_requirement):
        record = make_requirement(4, rate=None, company=None)
        assert Cursor.from_record(record, SortField.RATE).sort_value == 0
        assert Cursor.from_record(record, SortField.COMPANY).sort_value == ""


class TestNavigation:
    def test_with_filters_resets_window(self):
        d = QueryDescriptor(user_id="u1", page=4, cursor=Cursor(sort_value=1, id="x"))
        changed = d.with_filters(search="rust")
        assert changed.page == 0
        assert changed.cursor is None
        assert changed.search == "rust"

    def test_next_page_uses_cursor(self):
        cursor = Cursor(sort_value="2025-06-01T10:00:00", id="abc")
        d = QueryDescriptor(user_id="u1")
        nxt = d.next_page(PageResult(has_more=True, next_cursor=cursor))
        assert nxt.page == 1
        assert nxt.cursor == cursor

    def test_next_page_at_end(self):
        assert QueryDescriptor(user_id="u1").next_page(PageResult(has_more=False)) is None

    def test_offline_mirror_only_for_unfiltered_first_page(self):
        assert QueryDescriptor(user_id="u1").is_offline_mirror
        assert QueryDescriptor(user_id="u1", sort_by=SortField.TITLE).is_offline_mirror
        assert not QueryDescriptor(user_id="u1", page=1).is_offline_mirror
        assert not QueryDescriptor(user_id="u1", status="NEW").is_offline_mirror
        assert not QueryDescriptor(user_id="u1", search="x").is_offline_mirror
