"""
Chart palette: repositories get colours in the order they are added, cycling the list.
"""
from typing import Dict, Iterable

COLORS = [
    '#FF6B9D',  # pink
    '#51C4D3',  # aqua
    '#FFB347',  # tangerine
    '#87D68D',  # mint
    '#C084FC',  # lavender
    '#FF6B6B',  # coral
    '#4ECDC4',  # teal
    '#FFE66D',  # yellow
    '#7C83FD',  # periwinkle
    '#F38181',  # salmon
]


def get_color(index: int) -> str:
    return COLORS[index % len(COLORS)]


def assign_colors(repos: Iterable[str]) -> Dict[str, str]:
    """Stable repo -> colour mapping; a repeated repo keeps its first colour."""
    mapping: Dict[str, str] = {}
    for repo in repos:
        if repo not in mapping:
            mapping[repo] = get_color(len(mapping))
    return mapping
