"""
Data model for the scholarship discovery engine.

Items extracted from listing pages, source descriptors, per-page fetch
results, the cross-source discovery budget and the statistics reported
for each source at the end of a run.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# Longest display name kept on a DiscoveredItem
MAX_ITEM_NAME_LENGTH = 100


@dataclass(frozen=True)
class DiscoveredItem:
    """
    A scholarship candidate that survived extraction and filtering.

    Items are immutable and compared by URL only: two items with the same
    URL are the same scholarship regardless of name or source.

    Attributes:
        url: Absolute URL of the scholarship detail page.
        name: Display name, whitespace-collapsed and capped at 100 chars.
        source_id: Identifier of the source the item was found on.
    """
    url: str
    name: str = field(compare=False)
    source_id: str = field(compare=False)

    def __post_init__(self) -> None:
        if len(self.name) > MAX_ITEM_NAME_LENGTH:
            object.__setattr__(self, "name", self.name[:MAX_ITEM_NAME_LENGTH])

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "name": self.name, "source_id": self.source_id}


@dataclass(frozen=True)
class SourceDescriptor:
    """
    A configured website that scholarship listings are scraped from.

    Attributes:
        id: Stable identifier ("bold", "custom-1700000000000", ...).
        display_name: Human-readable name used in logs and stats.
        base_url: Site root; links pointing elsewhere are discarded.
        search_url_template: Listing URL; ``{page}`` is replaced by the page
            number. Templates without ``{page}`` describe single-page sources.
        enabled: Whether the source takes part in discovery runs.
        is_built_in: Built-in sources ship with the engine and cannot be edited.
        first_page_url: Canonical page-1 URL when it differs from the template.
        requires_browser: Listing is rendered client-side and needs the
            scripted browser transport.
        page_timeout: Per-page timeout override in seconds.
    """
    id: str
    display_name: str
    base_url: str
    search_url_template: str
    enabled: bool = True
    is_built_in: bool = False
    first_page_url: Optional[str] = None
    requires_browser: bool = False
    page_timeout: Optional[float] = None

    @property
    def is_paginated(self) -> bool:
        return "{page}" in self.search_url_template

    def page_url(self, page: int) -> str:
        """
        Build the listing URL for a 1-based page number.

        Args:
            page: Page number, starting at 1.

        Returns:
            Absolute URL of that listing page.
        """
        if page <= 1 and self.first_page_url:
            return self.first_page_url
        if not self.is_paginated:
            return self.search_url_template
        return self.search_url_template.replace("{page}", str(page))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PageFetchResult:
    """
    Represents one fetched listing page.

    Attributes:
        html: Raw (or browser-rendered) HTML.
        final_url: URL after all redirects; compared with the requested URL
            to detect silent bounces back to page 1.
        requested_url: URL that was asked for.
        status_code: HTTP status if known.
    """
    html: str
    final_url: str
    requested_url: str = ""
    status_code: Optional[int] = None


@dataclass
class SharedDiscoveryBudget:
    """
    Cross-source counter of new scholarships found in one discovery run.

    The same instance is handed to every paginator of a run so later
    sources can see what earlier ones contributed. Once ``current_new_count``
    reaches ``target_new_count`` no paginator issues another request.
    """
    target_new_count: int
    current_new_count: int = 0

    @property
    def is_exhausted(self) -> bool:
        return self.current_new_count >= self.target_new_count

    def record_new(self, count: int) -> None:
        """Add ``count`` newly discovered items to the run total."""
        if count > 0:
            self.current_new_count += count


class SourceStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class PerSourceStats:
    """
    Statistics accumulated while paginating one source.

    Attributes:
        source_id: Identifier of the source.
        source_name: Display name of the source.
        found: Valid candidates found across all pages.
        new: Candidates not known to the store nor collected earlier in the run.
        duplicates: Candidates that were already known.
        pages_scanned: Pages requested, including failed ones.
        status: Final classification, see ``finalize``.
        error: Human-readable explanation for partial/failed sources.
        stop_reason: Why pagination stopped (budget, redirect, empty pages, ...).
    """
    source_id: str
    source_name: str = ""
    found: int = 0
    new: int = 0
    duplicates: int = 0
    pages_scanned: int = 0
    status: SourceStatus = SourceStatus.SUCCESS
    error: Optional[str] = None
    stop_reason: Optional[str] = None

    def finalize(self) -> "PerSourceStats":
        """
        Classify the source once its pagination loop has ended.

        ``failed`` when nothing was found on any page, ``partial`` when
        everything found was already known, ``success`` otherwise. An error
        recorded earlier (blocking, crash) is kept.

        Returns:
            This stats object, for chaining.
        """
        if self.found == 0:
            self.status = SourceStatus.FAILED
            if not self.error:
                self.error = "No scholarships found (site may be blocking or changed structure)"
        elif self.new == 0:
            self.status = SourceStatus.PARTIAL
            if not self.error:
                self.error = "All found scholarships were duplicates"
        else:
            self.status = SourceStatus.SUCCESS
        return self

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


class EligibilityStatus(str, Enum):
    ELIGIBLE = "Eligible"
    INELIGIBLE = "Ineligible"
    UNSURE = "Unsure"

    @classmethod
    def parse(cls, value: Any) -> "EligibilityStatus":
        for status in cls:
            if status.value == value:
                return status
        return cls.UNSURE


class AIPolicy(str, Enum):
    SAFE = "Safe"
    PROHIBITED = "Prohibited"
    UNSURE = "Unsure"

    @classmethod
    def parse(cls, value: Any) -> "AIPolicy":
        for policy in cls:
            if policy.value == value:
                return policy
        return cls.UNSURE


@dataclass
class ScholarshipRecord:
    """
    An analyzed scholarship, ready to be persisted keyed by URL.

    Attributes mirror what the analysis service reports; ``fit_score`` is
    clamped to 0-100.
    """
    url: str
    name: str
    source_id: str = ""
    deadline: str = "Not specified"
    award_amount: str = "Not specified"
    requirements: str = ""
    eligibility_status: EligibilityStatus = EligibilityStatus.UNSURE
    fit_score: int = 0
    analysis_text: str = ""
    clarifying_questions: List[str] = field(default_factory=list)
    essay_prompt: str = ""
    ai_policy: AIPolicy = AIPolicy.UNSURE

    def __post_init__(self) -> None:
        self.fit_score = min(100, max(0, int(self.fit_score or 0)))
        self.eligibility_status = EligibilityStatus.parse(
            getattr(self.eligibility_status, "value", self.eligibility_status)
        )
        self.ai_policy = AIPolicy.parse(getattr(self.ai_policy, "value", self.ai_policy))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["eligibility_status"] = self.eligibility_status.value
        data["ai_policy"] = self.ai_policy.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScholarshipRecord":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class DiscoveryResult:
    """
    Outcome of one discovery run.

    Attributes:
        items: New items, deduplicated and truncated to the target count.
        stats: One PerSourceStats per source that was attempted.
        errors: Human-readable messages for failed sources and analyses.
        analyzed: Analysis records, only set when analysis ran.
        duplicate_count: Unique items found in the run that were already known.
    """
    items: List[DiscoveredItem] = field(default_factory=list)
    stats: List[PerSourceStats] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    analyzed: Optional[List[ScholarshipRecord]] = None
    duplicate_count: int = 0

    @property
    def new_count(self) -> int:
        return len(self.items)

    @property
    def success(self) -> bool:
        return bool(self.items) or self.duplicate_count > 0 or not self.errors
