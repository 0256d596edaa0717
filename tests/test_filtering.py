from datetime import UTC, datetime

from allbackups.application.filtering import (
    DIRECTORY_FILTERS,
    DateRangeFilter,
    FilterSet,
    TextFilter,
    TextOperator,
)
from allbackups.domain.entities import AutoBackupEntry


def _day(year: int, month: int, day: int) -> int:
    return int(datetime(year, month, day, tzinfo=UTC).timestamp())


def test_empty_params_give_no_active_filters():
    filters = FilterSet.from_params({})
    assert filters.active == {}
    assert filters.get_sql_filter() == ("", {})


def test_text_filter_defaults_to_contains():
    filters = FilterSet.from_params({"filename": "course"})
    assert filters.filename == TextFilter("course", TextOperator.CONTAINS)

    sql, params = filters.get_sql_filter()
    assert sql == "LOWER(f.filename) LIKE :ex_filename ESCAPE '\\'"
    assert params == {"ex_filename": "%course%"}


def test_text_filter_escapes_like_wildcards():
    sql, params = TextFilter("50%_off", TextOperator.STARTS_WITH).to_sql(
        "f.filename", "p"
    )
    assert params == {"p": "50\\%\\_off%"}
    assert "ESCAPE" in sql


def test_not_contains_negates_like():
    sql, _ = TextFilter("x", TextOperator.NOT_CONTAINS).to_sql("f.filename", "p")
    assert sql.startswith("LOWER(f.filename) NOT LIKE")


def test_is_empty_needs_no_value():
    filters = FilterSet.from_params({"realname": "", "realname_op": "is_empty"})
    assert filters.realname == TextFilter("", TextOperator.IS_EMPTY)
    sql, params = filters.get_sql_filter()
    assert sql == "TRIM((u.firstname || ' ' || u.lastname)) = ''"
    assert params == {}


def test_unknown_operator_falls_back_to_contains():
    filters = FilterSet.from_params({"filename": "abc", "filename_op": "regex"})
    assert filters.filename is not None
    assert filters.filename.operator == TextOperator.CONTAINS


def test_invalid_category_and_dates_are_ignored():
    filters = FilterSet.from_params(
        {"coursecategory": "science", "timecreated_from": "yesterday"}
    )
    assert filters.coursecategory is None
    assert filters.timecreated is None


def test_date_range_covers_whole_days():
    filters = FilterSet.from_params(
        {"timecreated_from": "2024-03-01", "timecreated_to": "2024-03-02"}
    )
    assert filters.timecreated is not None
    assert filters.timecreated.after == _day(2024, 3, 1)
    assert filters.timecreated.before == _day(2024, 3, 3) - 1

    sql, params = filters.get_sql_filter()
    assert sql == (
        "f.timecreated >= :ex_timecreated_after"
        " AND f.timecreated <= :ex_timecreated_before"
    )
    assert params["ex_timecreated_after"] == _day(2024, 3, 1)


def test_predicates_are_joined_with_and():
    filters = FilterSet.from_params(
        {"filename": "phy", "coursecategory": "3", "filearea": "automated"}
    )
    sql, params = filters.get_sql_filter()
    assert sql.count(" AND ") == 2
    assert params["ex_coursecategory"] == 3
    assert params["ex_filearea"] == "automated"
    assert filters.needs_course_join


def test_directory_listing_drops_unsupported_filters():
    filters = FilterSet.from_params(
        {"filename": "auto", "realname": "Ada", "coursecategory": "1"},
        DIRECTORY_FILTERS,
    )
    assert set(filters.active) == {"filename"}
    assert not filters.needs_course_join


def test_matches_entry_uses_filename_and_time():
    entry = AutoBackupEntry("Backup-Auto.mbz", timecreated=_day(2024, 3, 1) + 60)
    assert FilterSet(filename=TextFilter("auto")).matches_entry(entry)
    assert FilterSet(
        filename=TextFilter("backup-", TextOperator.STARTS_WITH)
    ).matches_entry(entry)
    assert not FilterSet(
        filename=TextFilter("auto", TextOperator.NOT_CONTAINS)
    ).matches_entry(entry)
    assert not FilterSet(
        timecreated=DateRangeFilter(after=_day(2024, 3, 2))
    ).matches_entry(entry)


def test_describe_and_to_params():
    filters = FilterSet.from_params(
        {
            "filename": "phy",
            "filename_op": "ends_with",
            "timecreated_from": "2024-03-01",
        }
    )
    assert filters.describe() == [
        ("filename", 'Filename ends with "phy"'),
        ("timecreated", "Time created on or after 2024-03-01"),
    ]
    assert filters.to_params() == {
        "filename": "phy",
        "filename_op": "ends_with",
        "timecreated_from": "2024-03-01",
    }
    assert filters.to_params(exclude="filename") == {
        "timecreated_from": "2024-03-01"
    }
