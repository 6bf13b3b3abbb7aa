"""
Enumerated profile appearance options: base colours, theme colours and grid layouts.

Profiles store only the option id; the full definition is looked up here.
"""
from typing import NamedTuple


class BaseColor(NamedTuple):
    id: str
    name: str
    background: str
    text_primary: str
    text_secondary: str
    surface: str
    surface_hover: str
    border: str


class ThemeColor(NamedTuple):
    id: str
    name: str
    gradient: str
    primary: str
    secondary: str
    primary_hex: str
    secondary_hex: str


class GridLayout(NamedTuple):
    id: str
    name: str
    size: int
    total_cells: int
    # Cells reserved for the profile icon: one centre cell on odd grids, four on even grids
    center_positions: tuple[int, ...]


BASE_COLORS: list[BaseColor] = [
    BaseColor(
        "light", "Light",
        "bg-gradient-to-br from-gray-50 to-gray-100",
        "text-gray-800", "text-gray-600",
        "bg-white/80", "bg-gray-100", "border-gray-300",
    ),
    BaseColor(
        "dark", "Dark",
        "bg-black",
        "text-white", "text-white/80",
        "bg-white/10", "bg-white/20", "border-white/20",
    ),
]

THEME_COLORS: list[ThemeColor] = [
    ThemeColor("blue", "Blue", "from-blue-500 to-blue-600", "blue-500", "blue-100", "#3B82F6", "#DBEAFE"),
    ThemeColor("purple", "Purple", "from-purple-500 to-purple-600", "purple-500", "purple-100", "#8B5CF6", "#EDE9FE"),
    ThemeColor("green", "Green", "from-green-500 to-green-600", "green-500", "green-100", "#10B981", "#DCFCE7"),
    ThemeColor("pink", "Pink", "from-pink-500 to-pink-600", "pink-500", "pink-100", "#EC4899", "#FCE7F3"),
    ThemeColor("orange", "Orange", "from-orange-500 to-orange-600", "orange-500", "orange-100", "#F97316", "#FED7AA"),
    ThemeColor("red", "Red", "from-red-500 to-red-600", "red-500", "red-100", "#EF4444", "#FEE2E2"),
    ThemeColor("indigo", "Indigo", "from-indigo-500 to-indigo-600", "indigo-500", "indigo-100", "#6366F1", "#E0E7FF"),
    ThemeColor("teal", "Teal", "from-teal-500 to-teal-600", "teal-500", "teal-100", "#14B8A6", "#CCFBF1"),
]

GRID_LAYOUTS: list[GridLayout] = [
    GridLayout("3x3", "3x3 (9 cells)", 3, 9, (4,)),
    GridLayout("4x4", "4x4 (16 cells)", 4, 16, (5, 6, 9, 10)),
    GridLayout("5x5", "5x5 (25 cells)", 5, 25, (12,)),
    GridLayout("6x6", "6x6 (36 cells)", 6, 36, (14, 15, 20, 21)),
]

DEFAULT_BASE_COLOR = BASE_COLORS[0].id
DEFAULT_THEME_COLOR = THEME_COLORS[0].id
DEFAULT_GRID_LAYOUT = GRID_LAYOUTS[1].id


def get_base_color(color_id: str) -> BaseColor | None:
    return next((c for c in BASE_COLORS if c.id == color_id), None)


def get_theme_color(color_id: str) -> ThemeColor | None:
    return next((c for c in THEME_COLORS if c.id == color_id), None)


def get_grid_layout(layout_id: str) -> GridLayout | None:
    return next((g for g in GRID_LAYOUTS if g.id == layout_id), None)


def grid_layout_for_size(size: int | None) -> GridLayout:
    """Layout with the given side length, or the default 4x4."""
    for layout in GRID_LAYOUTS:
        if layout.size == size:
            return layout
    return GRID_LAYOUTS[1]
