"""
Unit tests for candidate filtering, search and pagination
"""
import pytest

from tests.conftest import make_candidate
from app.models.requests import FilterSpec
from app.services.filter_engine import (
    Facet,
    ListViewState,
    filter_candidates,
    paginate,
    parse_min_years,
    toggle_facet,
)


@pytest.fixture
def candidates():
    return [
        make_candidate("c-1"),
        make_candidate(
            "c-2",
            name="Li Na",
            phone=None,
            location="北京",
            work_years=2,
            degree_level="硕士",
            is_outsourcing=True,
            company_tags=["outsourcing"],
            candidate_educations=[{"school": "MIT", "degree": "Master", "major": "EE", "school_tags": ["QS50"]}],
            candidate_work_experiences=[{"company": "Accenture", "role": "Consultant"}],
            candidate_tags=[{"tags": {"id": 3, "tag_name": "Java", "category": "tech"}}],
            candidate_projects=[],
            self_evaluation="",
        ),
        make_candidate(
            "c-3",
            name="王芳",
            work_years=8,
            degree_level="博士",
            company_tags=["bigtech"],
            candidate_work_experiences=[{"company": "Alibaba", "role": "Architect", "description": "分布式存储"}],
            candidate_tags=[{"tags": {"id": 4, "tag_name": "Go", "category": "tech"}}],
            candidate_projects=[],
            self_evaluation="",
        ),
    ]


class TestIdentityFilter:
    """Rows without a real identity never show up"""

    def test_placeholder_and_blank_names_are_hidden(self):
        rows = [
            make_candidate("c-1"),
            make_candidate("c-2", name="   "),
            make_candidate("c-3", name="Unknown"),
            make_candidate("", name="No Id"),
        ]

        result = filter_candidates(rows, FilterSpec())

        assert [c.id for c in result] == ["c-1"]

    def test_empty_spec_keeps_order(self, candidates):
        result = filter_candidates(list(reversed(candidates)), FilterSpec())

        assert [c.id for c in result] == ["c-3", "c-2", "c-1"]

    def test_blank_spec_counts_as_empty(self):
        spec = FilterSpec(search="   ", min_years=" ")

        assert spec.is_empty()
        assert not FilterSpec(tags=["Python"]).is_empty()


class TestSearch:
    """Whitespace tokens, all of which must match"""

    def test_ascii_search_is_case_insensitive(self, candidates):
        result = filter_candidates(candidates, FilterSpec(search="kafka"))

        assert [c.id for c in result] == ["c-1"]

    def test_cjk_search_matches_substring(self, candidates):
        result = filter_candidates(candidates, FilterSpec(search="分布式"))

        assert [c.id for c in result] == ["c-3"]

    def test_tokens_are_conjunctive(self, candidates):
        assert [c.id for c in filter_candidates(candidates, FilterSpec(search="python 上海"))] == ["c-1"]
        assert filter_candidates(candidates, FilterSpec(search="python 北京")) == []

    def test_search_covers_nested_records(self, candidates):
        assert [c.id for c in filter_candidates(candidates, FilterSpec(search="elasticsearch"))] == ["c-1"]
        assert [c.id for c in filter_candidates(candidates, FilterSpec(search="qs50"))] == ["c-2"]
        assert [c.id for c in filter_candidates(candidates, FilterSpec(search="INFRA"))] == ["c-1"]

    def test_whitespace_only_search_is_ignored(self, candidates):
        result = filter_candidates(candidates, FilterSpec(search="   \t "))

        assert len(result) == 3

    def test_cjk_token_is_not_case_folded(self):
        rows = [make_candidate("c-9", self_evaluation="java工程师，熟悉微服务")]

        assert [c.id for c in filter_candidates(rows, FilterSpec(search="java工程师"))] == ["c-9"]
        assert filter_candidates(rows, FilterSpec(search="Java工程师")) == []

    def test_cjk_token_does_not_match_transliteration(self):
        rows = [make_candidate("c-9", location="bei jing")]

        assert [c.id for c in filter_candidates(rows, FilterSpec(search="bei jing"))] == ["c-9"]
        assert filter_candidates(rows, FilterSpec(search="北京")) == []


class TestFacets:
    """AND across facets, OR within a facet"""

    def test_degree_facet_is_or_within(self, candidates):
        result = filter_candidates(candidates, FilterSpec(degrees=["硕士", "博士"]))

        assert [c.id for c in result] == ["c-2", "c-3"]

    def test_school_tags(self, candidates):
        result = filter_candidates(candidates, FilterSpec(schoolTags=["985", "QS50"]))

        assert [c.id for c in result] == ["c-1", "c-2", "c-3"]

    def test_min_years(self, candidates):
        assert [c.id for c in filter_candidates(candidates, FilterSpec(minYears="5"))] == ["c-1", "c-3"]
        assert [c.id for c in filter_candidates(candidates, FilterSpec(minYears="6 years"))] == ["c-3"]

    def test_non_numeric_min_years_is_skipped(self, candidates):
        assert len(filter_candidates(candidates, FilterSpec(minYears="abc"))) == 3

    def test_company_types_and_tags(self, candidates):
        assert [c.id for c in filter_candidates(candidates, FilterSpec(companyTypes=["bigtech"]))] == ["c-3"]
        assert [c.id for c in filter_candidates(candidates, FilterSpec(tags=["Java"]))] == ["c-2"]

    def test_special_flags(self, candidates):
        assert [c.id for c in filter_candidates(candidates, FilterSpec(special=["outsourcing"]))] == ["c-2"]
        assert [c.id for c in filter_candidates(candidates, FilterSpec(special=["noPhone"]))] == ["c-1", "c-3"]

    def test_facets_combine_with_and(self, candidates):
        spec = FilterSpec(degrees=["本科", "博士"], minYears="6", search="alibaba")

        assert [c.id for c in filter_candidates(candidates, spec)] == ["c-3"]

    def test_adding_a_constraint_never_grows_the_result(self, candidates):
        base = FilterSpec(degrees=["本科", "硕士", "博士"])
        narrower = base.model_copy(update={"min_years": "3"})
        narrowest = narrower.model_copy(update={"search": "python"})

        sizes = [len(filter_candidates(candidates, s)) for s in (base, narrower, narrowest)]

        assert sizes == sorted(sizes, reverse=True)


class TestMinYearsParsing:
    @pytest.mark.parametrize("value,expected", [
        ("", None),
        ("3", 3),
        (" 10", 10),
        ("7.5", 7),
        ("x1", None),
    ])
    def test_leading_integer(self, value, expected):
        assert parse_min_years(value) == expected


class TestPagination:
    def test_second_page_of_twenty_five(self):
        items = list(range(25))

        page = paginate(items, 2, 10)

        assert page.items == list(range(10, 20))
        assert page.total_pages == 3
        assert page.total == 25

    def test_last_page_is_short(self):
        assert paginate(list(range(25)), 3, 10).items == [20, 21, 22, 23, 24]

    def test_page_beyond_range_is_empty(self):
        assert paginate(list(range(5)), 4, 10).items == []

    def test_empty_list_has_zero_pages(self):
        page = paginate([], 1, 10)

        assert page.total_pages == 0
        assert page.items == []

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            paginate([1, 2], 1, 0)


class TestListViewState:
    def test_changing_filters_resets_page(self):
        state = ListViewState(current_page=4)

        updated = state.with_filters(FilterSpec(search="go"))

        assert updated.current_page == 1
        assert updated.filters.search == "go"

    def test_same_filters_keep_page(self):
        state = ListViewState(current_page=4, filters=FilterSpec(search="go"))

        assert state.with_filters(FilterSpec(search="go")).current_page == 4

    def test_changing_page_keeps_filters(self):
        state = ListViewState(filters=FilterSpec(tags=["Python"]))

        updated = state.with_page(3)

        assert updated.current_page == 3
        assert updated.filters.tags == ["Python"]

    def test_reset_clears_filters_and_selection(self):
        state = ListViewState(current_page=2, filters=FilterSpec(search="go"), selected_ids=("c-1",))

        cleared = state.reset()

        assert cleared.filters.is_empty()
        assert cleared.selected_ids == ()
        assert cleared.current_page == 1

    def test_toggle_facet_adds_then_removes(self):
        spec = toggle_facet(FilterSpec(), Facet.SCHOOL_TAGS, "985")
        assert spec.school_tags == ["985"]

        spec = toggle_facet(spec, Facet.SCHOOL_TAGS, "985")
        assert spec.school_tags == []

    def test_toggle_does_not_mutate_original(self):
        original = FilterSpec(degrees=["本科"])

        toggle_facet(original, Facet.DEGREES, "硕士")

        assert original.degrees == ["本科"]
