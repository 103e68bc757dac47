"""
Scholarship Discovery - Multi-source scholarship listing discovery engine.

This package provides functionality to:
- Fetch listing pages over plain HTTP or a headless browser
- Extract scholarship links with per-source rules and a generic fallback
- Filter out category, article, utility and tracking links
- Paginate each source with redirect detection and stopping heuristics
- Collect new scholarships across sources against a shared target
- Hand new scholarships to an external analysis service
"""

__version__ = "1.0.0"
__author__ = "Scholarship Discovery Team"
