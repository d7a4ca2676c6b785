"""Line rule definitions for the procedural narrative grammar.

Congress exports describe the procedure followed by an initiative as a
block of lines such as::

    Comisión de Justicia
    desde 12/03/2024 hasta 20/04/2024
    Pleno
    desde 25/04/2024

Each line is one of four kinds; the rules below recognise them.
"""

import re
from typing import List

from timeline.models import LineKind, LineRule


DATE = r"\d{1,2}/\d{1,2}/\d{4}"


def create_line_rules() -> List[LineRule]:
    """Create all line rule definitions.

    Returns:
        List of LineRule objects, one per line kind
    """
    rules = []

    rules.append(LineRule(
        kind=LineKind.RANGE,
        patterns=[
            re.compile(
                rf"desde\s+(?P<start>{DATE})\s+hasta\s+(?P<end>{DATE})", re.I
            ),
        ],
        priority=10,
    ))
    rules.append(LineRule(
        kind=LineKind.OPEN,
        patterns=[
            re.compile(rf"desde\s+(?P<start>{DATE})", re.I),
        ],
        priority=20,
    ))
    # Mentions a boundary but carries no date we can read
    rules.append(LineRule(
        kind=LineKind.NOISE,
        patterns=[
            re.compile(r"\b(?:desde|hasta)\b", re.I),
        ],
        priority=30,
    ))
    rules.append(LineRule(
        kind=LineKind.LABEL,
        patterns=[
            re.compile(r"\S"),
        ],
        priority=40,
    ))

    return rules


LINE_RULES = create_line_rules()
