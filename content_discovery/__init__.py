"""
django-content-discovery - Query, filter and selection engines for a bilingual blog.

Features:
- Generic data grid for admin lists (stable sort, filter, pagination, selection by id)
- Bilingual content discovery for public lists (taxonomy and tag filters,
  debounced diacritic-insensitive search, infinite-scroll cursor pages)
- Concurrent bulk actions with per-record failure reporting
- Abstract repository boundary with in-memory and Django ORM implementations
"""

__version__ = "0.1.0"
__author__ = "Nestor Wheelock"
