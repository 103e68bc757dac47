"""
Tests for the extract module.

Tests cover:
- Bold.org card extraction with name fallbacks and category skipping
- Scholarships360 content-area selection and dashboard link exclusion
- Scholarships.com selector choice by link count
- Generic extraction for custom sources
- Per-page deduplication and off-site links
"""

from scholarship_discovery.extract import (
    GENERIC_RULE,
    extract_candidates,
    get_rule,
)
from scholarship_discovery.models import MAX_ITEM_NAME_LENGTH, DiscoveredItem


def urls_of(items):
    return [item.url for item in items]


class TestBoldExtraction:
    """Tests for Bold.org listing pages."""

    HTML = """
    <html><body>
      <article><a href="/scholarships/jane-doe-memorial-award/">Jane Doe Memorial Award</a></article>
      <article class="card">
        <h3>Future Leaders in STEM Award</h3>
        <a href="/scholarships/future-leaders-stem/">Apply</a>
      </article>
      <article><a href="/scholarships/women/">Women</a></article>
      <article><a href="/scholarships/by-state/texas/">Texas Scholarship Listing</a></article>
      <article><a href="https://other.com/scholarships/foo-bar/">External Scholarship Award</a></article>
      <article><a href="/scholarships/nursing-scholarships/">Nursing Scholarships</a></article>
      <article><a href="/scholarships/for-nurses/">Scholarships for Nurses Everywhere</a></article>
      <article><a href="/scholarships/jane-doe-memorial-award/#apply">Jane Doe Memorial Award</a></article>
    </body></html>
    """

    def test_extracts_specific_scholarships(self):
        """Test that only real scholarship cards are extracted."""
        items = extract_candidates(self.HTML, "bold", "https://bold.org/scholarships/")

        assert urls_of(items) == [
            "https://bold.org/scholarships/jane-doe-memorial-award/",
            "https://bold.org/scholarships/future-leaders-stem/",
        ]
        assert all(item.source_id == "bold" for item in items)

    def test_name_from_card_heading(self):
        """Test that short link text falls back to the card heading."""
        items = extract_candidates(self.HTML, "bold", "https://bold.org/scholarships/")

        assert items[1].name == "Future Leaders in STEM Award"

    def test_falls_back_to_all_scholarship_links(self):
        """Test the broad selector when no card container matches."""
        html = """
        <div><a href="/scholarships/green-future-grant/">Green Future Grant Program</a></div>
        """
        items = extract_candidates(html, "bold", "https://bold.org/scholarships/")

        assert urls_of(items) == ["https://bold.org/scholarships/green-future-grant/"]

    def test_name_from_slug(self):
        """Test that a link with no usable text is named from its slug."""
        html = '<div><a href="/scholarships/ocean-research-fellowship/"><img src="x.png"></a></div>'
        items = extract_candidates(html, "bold", "https://bold.org/scholarships/")

        assert items[0].name == "Ocean Research Fellowship"


class TestScholarships360Extraction:
    """Tests for Scholarships360 listing pages."""

    @staticmethod
    def build_page(main_count, nav_links=""):
        cards = "".join(
            f'<a href="/scholarships/community-award-{i}/">Community Award Number {i}</a>'
            for i in range(main_count)
        )
        return f"""
        <html><body>
          <nav>{nav_links}</nav>
          <main>
            {cards}
            <a href="https://app.scholarships360.org/scholarships/dashboard/">My Dashboard Scholarships</a>
          </main>
        </body></html>
        """

    def test_prefers_main_content_area(self):
        """Test that navigation links are ignored when the content area has enough links."""
        nav = '<a href="/scholarships/nav-featured-award/">Nav Featured Award</a>'
        html = self.build_page(21, nav_links=nav)

        items = extract_candidates(
            html,
            "scholarships360",
            "https://scholarships360.org/scholarships/search/",
            base_url="https://scholarships360.org",
        )

        assert len(items) == 21
        assert "https://scholarships360.org/scholarships/nav-featured-award/" not in urls_of(items)

    def test_dashboard_links_excluded(self):
        """Test that app subdomain links never become candidates."""
        items = extract_candidates(
            self.build_page(21),
            "scholarships360",
            "https://scholarships360.org/scholarships/search/",
        )

        assert not any("app.scholarships360.org" in url for url in urls_of(items))

    def test_uses_all_links_when_content_area_sparse(self):
        """Test fallback to every scholarship link on sparse pages."""
        nav = '<a href="/scholarships/nav-featured-award/">Nav Featured Award</a>'
        html = self.build_page(3, nav_links=nav)

        items = extract_candidates(html, "scholarships360", "https://scholarships360.org/scholarships/search/")

        assert len(items) == 4
        assert "https://scholarships360.org/scholarships/nav-featured-award/" in urls_of(items)


class TestScholarshipsComExtraction:
    """Tests for Scholarships.com directory pages."""

    HTML = """
    <html><body>
      <ul>
        <li><a href="/scholarship/abc-foundation-grant/">ABC Foundation Grant</a></li>
        <li><h3>Doe Family Grant</h3><a href="/scholarship/doe-family-grant/">Go</a></li>
        <li><a href="/financial-aid/college-scholarships/scholarship-directory/academic-major">Academic Major</a></li>
        <li><a href="/scholarships/rivera-arts-award/">Rivera Arts Award</a></li>
      </ul>
      <a href="https://partner.example/scholarship/elsewhere/">Partner Scholarship Award</a>
    </body></html>
    """

    def test_extracts_directory_entries(self):
        """Test that scholarship detail links are extracted and category links skipped."""
        items = extract_candidates(
            self.HTML,
            "scholarshipscom",
            "https://www.scholarships.com/financial-aid/college-scholarships/scholarship-directory",
        )

        assert urls_of(items) == [
            "https://www.scholarships.com/scholarship/abc-foundation-grant/",
            "https://www.scholarships.com/scholarship/doe-family-grant/",
            "https://www.scholarships.com/scholarships/rivera-arts-award/",
        ]

    def test_name_from_list_item_heading(self):
        """Test that a short link text falls back to the list item heading."""
        items = extract_candidates(
            self.HTML,
            "scholarshipscom",
            "https://www.scholarships.com/financial-aid/college-scholarships/scholarship-directory",
        )

        assert items[1].name == "Doe Family Grant"


class TestGenericExtraction:
    """Tests for custom sources without specialized rules."""

    HTML = """
    <html><body>
      <a href="#top">Back to top</a>
      <a href="/awards/smith-engineering-award">Smith Engineering Award</a>
      <a href="/about/">About Us</a>
      <a href="https://twitter.com/example">Follow us on Twitter</a>
      <a href="tel:5551234567">555-123-4567</a>
      <a href="/blog/post-one">Read Our Latest Post</a>
      <a href="/awards/green-future-grant"><img src="logo.png"></a>
      <a href="javascript:void(0)">Open Menu Panel</a>
    </body></html>
    """

    def test_unknown_source_uses_generic_rule(self):
        """Test that custom sources get the generic rule."""
        assert get_rule("custom-1700000000000") is GENERIC_RULE

    def test_extracts_same_site_listing_links(self):
        """Test that generic extraction keeps only valid same-site links."""
        items = extract_candidates(self.HTML, "custom-1", "https://example.org/awards")

        assert urls_of(items) == [
            "https://example.org/awards/smith-engineering-award",
            "https://example.org/awards/green-future-grant",
        ]
        assert items[1].name == "Green Future Grant"

    def test_base_url_controls_site(self):
        """Test that the base URL, not the page URL, defines the site."""
        html = '<a href="https://example.org/awards/smith-engineering-award">Smith Engineering Award</a>'

        items = extract_candidates(
            html, "custom-1", "https://mirror.example.net/list", base_url="https://example.org"
        )

        assert len(items) == 1

    def test_duplicates_on_page_removed(self):
        """Test that a URL appears only once per page."""
        html = """
        <a href="/awards/smith-engineering-award">Smith Engineering Award</a>
        <a href="/awards/smith-engineering-award">Smith Engineering Award (again)</a>
        """
        items = extract_candidates(html, "custom-1", "https://example.org/awards")

        assert len(items) == 1
        assert items[0].name == "Smith Engineering Award"

    def test_empty_html(self):
        """Test that an empty page yields no candidates."""
        assert extract_candidates("", "custom-1", "https://example.org/awards") == []


class TestDiscoveredItem:
    """Tests for the DiscoveredItem model."""

    def test_name_truncated(self):
        """Test that long names are capped."""
        item = DiscoveredItem(url="https://a.org/x", name="x" * 140, source_id="s")

        assert len(item.name) == MAX_ITEM_NAME_LENGTH

    def test_identity_by_url(self):
        """Test that items compare equal by URL only."""
        a = DiscoveredItem(url="https://a.org/x", name="First Name", source_id="one")
        b = DiscoveredItem(url="https://a.org/x", name="Other Name", source_id="two")

        assert a == b
        assert len({a, b}) == 1
