"""Constants used by the posts app.

Categories are kept in a single place so both validation and the browse
filter reuse the same source.
"""

from __future__ import annotations


CATEGORIES = [
    "Web Development",
    "Mobile Development",
    "Design & Creative",
    "Writing & Content",
    "Data & Analytics",
    "Digital Marketing",
    "Other",
]

CATEGORY_CHOICES = [(c, c) for c in CATEGORIES]
