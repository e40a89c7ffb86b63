"""
Candidate filter/search engine and list pagination

Everything here is pure: no I/O, no mutation of the inputs. Callers own the
base ordering of the candidate list (normally most recently updated first);
filtering never re-sorts.
"""
import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Generic, List, Optional, Sequence, TypeVar

from app.models.entities import PLACEHOLDER_NAME, Candidate
from app.models.requests import FilterSpec

T = TypeVar("T")

CJK_PATTERN = re.compile(r"[\u4e00-\u9fa5]")
LEADING_INT_PATTERN = re.compile(r"^\s*([+-]?\d+)")

SPECIAL_OUTSOURCING = "outsourcing"
SPECIAL_NO_PHONE = "noPhone"


def has_valid_identity(candidate: Candidate) -> bool:
    """Candidates without id or with a blank/placeholder name never show up"""
    name = (candidate.name or "").strip()
    return bool(candidate.id) and bool(name) and name != PLACEHOLDER_NAME


def search_tokens(search: str) -> List[str]:
    return [token for token in search.split() if token]


def build_search_corpus(candidate: Candidate) -> str:
    """Flatten every searchable text field of a candidate into one string"""
    parts: List[str] = [
        candidate.name or "",
        candidate.email or "",
        candidate.phone or "",
        candidate.location or "",
        candidate.title or "",
        candidate.company or "",
        candidate.degree or "",
        candidate.self_evaluation or "",
        candidate.school.name or "",
    ]
    parts.extend(candidate.school.tags or [])
    parts.extend(candidate.skills or [])
    for work in candidate.work_experiences:
        parts.extend([work.company, work.role, work.department, work.description])
    for edu in candidate.educations:
        parts.extend([edu.school, edu.degree, edu.major])
        parts.extend(edu.school_tags or [])
    for project in candidate.projects:
        parts.extend([project.project_name, project.role, project.description])
    return " ".join(p or "" for p in parts)


def token_matches(token: str, corpus: str, corpus_lower: Optional[str] = None) -> bool:
    # Case folding is meaningless for CJK; those tokens match literally.
    if CJK_PATTERN.search(token):
        return token in corpus
    if corpus_lower is None:
        corpus_lower = corpus.lower()
    return token.lower() in corpus_lower


def matches_search(candidate: Candidate, tokens: Sequence[str]) -> bool:
    """Conjunctive: every token must appear somewhere in the corpus"""
    if not tokens:
        return True
    corpus = build_search_corpus(candidate)
    corpus_lower = corpus.lower()
    return all(token_matches(token, corpus, corpus_lower) for token in tokens)


def parse_min_years(value: str) -> Optional[int]:
    """Leading-integer parse; blank or non-numeric input disables the facet"""
    if not value:
        return None
    match = LEADING_INT_PATTERN.match(value)
    if not match:
        return None
    return int(match.group(1))


def _intersects(values: Sequence[str], selected: Sequence[str]) -> bool:
    return any(v in selected for v in values)


def matches_facets(candidate: Candidate, spec: FilterSpec, min_years: Optional[int]) -> bool:
    if spec.degrees and candidate.degree not in spec.degrees:
        return False
    if spec.school_tags and not _intersects(candidate.school.tags, spec.school_tags):
        return False
    if min_years is not None and candidate.work_years < min_years:
        return False
    if spec.company_types and not _intersects(candidate.company_tags, spec.company_types):
        return False
    if spec.tags and not _intersects(candidate.skills, spec.tags):
        return False
    if SPECIAL_OUTSOURCING in spec.special and not candidate.is_outsourcing:
        return False
    # Kept as "phone present" pending product confirmation of the label
    if SPECIAL_NO_PHONE in spec.special and candidate.phone is None:
        return False
    return True


def filter_candidates(candidates: Sequence[Candidate], spec: FilterSpec) -> List[Candidate]:
    """Return the visible subset of candidates, preserving input order"""
    if spec.is_empty():
        return [c for c in candidates if has_valid_identity(c)]
    tokens = search_tokens(spec.search or "")
    min_years = parse_min_years(spec.min_years)
    return [
        c for c in candidates
        if has_valid_identity(c) and matches_search(c, tokens) and matches_facets(c, spec, min_years)
    ]


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total: int
    total_pages: int


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    """Slice [(page-1)*size, page*size) out of an already filtered list"""
    if page_size < 1:
        raise ValueError("page_size must be positive")
    page = max(1, page)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        page=page,
        page_size=page_size,
        total=len(items),
        total_pages=math.ceil(len(items) / page_size),
    )


class Facet(str, Enum):
    """Set-valued filter fields that can be toggled from the sidebar"""
    DEGREES = "degrees"
    SCHOOL_TAGS = "schoolTags"
    COMPANY_TYPES = "companyTypes"
    TAGS = "tags"
    SPECIAL = "special"


def _toggled(values: List[str], value: str) -> List[str]:
    if value in values:
        return [v for v in values if v != value]
    return values + [value]


def toggle_degree(spec: FilterSpec, value: str) -> FilterSpec:
    return spec.model_copy(update={"degrees": _toggled(spec.degrees, value)})


def toggle_school_tag(spec: FilterSpec, value: str) -> FilterSpec:
    return spec.model_copy(update={"school_tags": _toggled(spec.school_tags, value)})


def toggle_company_type(spec: FilterSpec, value: str) -> FilterSpec:
    return spec.model_copy(update={"company_types": _toggled(spec.company_types, value)})


def toggle_tag(spec: FilterSpec, value: str) -> FilterSpec:
    return spec.model_copy(update={"tags": _toggled(spec.tags, value)})


def toggle_special(spec: FilterSpec, value: str) -> FilterSpec:
    return spec.model_copy(update={"special": _toggled(spec.special, value)})


_TOGGLES = {
    Facet.DEGREES: toggle_degree,
    Facet.SCHOOL_TAGS: toggle_school_tag,
    Facet.COMPANY_TYPES: toggle_company_type,
    Facet.TAGS: toggle_tag,
    Facet.SPECIAL: toggle_special,
}


def toggle_facet(spec: FilterSpec, facet: Facet, value: str) -> FilterSpec:
    """Add or remove one value of a set-valued facet, returning a new spec"""
    return _TOGGLES[Facet(facet)](spec, value)


@dataclass(frozen=True)
class ListViewState:
    """
    Page + filters + selection of the candidate list.

    Changing any filter field resets the page to 1; changing only the page
    leaves the filters untouched.
    """
    current_page: int = 1
    filters: FilterSpec = field(default_factory=FilterSpec)
    selected_ids: tuple = ()

    def with_filters(self, filters: FilterSpec) -> "ListViewState":
        if filters == self.filters:
            return self
        return replace(self, filters=filters, current_page=1)

    def with_page(self, page: int) -> "ListViewState":
        return replace(self, current_page=max(1, page))

    def with_selection(self, selected_ids: Sequence[str]) -> "ListViewState":
        return replace(self, selected_ids=tuple(selected_ids))

    def reset(self) -> "ListViewState":
        return replace(self, filters=FilterSpec(), selected_ids=(), current_page=1)

    def visible_page(self, candidates: Sequence[Candidate], page_size: int) -> Page[Candidate]:
        return paginate(filter_candidates(candidates, self.filters), self.current_page, page_size)
