"""
Shared configuration and constants.
"""

import dataclasses


POINTS_PER_INCH = 72.0
MM_PER_INCH = 25.4
MM_TO_PX = 3.7795275591

MAX_BOOKS = 50
BOOK_GAP_MM = 2.0
MAX_BOOK_HEIGHT_MM = 265.0
MAX_JACKET_WIDTH_MM = 400.0

DEFAULT_SPINE_WIDTH_MM = 30.0
DEFAULT_COVER_WIDTH_MM = 140.0
DEFAULT_HEIGHT_MM = 210.0
DEFAULT_BOOK_COLOR = "#1d4ed8"

WRAP_MARGIN_MM = 20.0
TOP_MARGIN_MM = 2.0

MIN_ZOOM_PERCENT = 50
MAX_ZOOM_PERCENT = 200
DEFAULT_ZOOM_PERCENT = 100
MIN_OFFSET_PERCENT = -100.0
MAX_OFFSET_PERCENT = 100.0

MIN_IMAGE_WIDTH = 3300
MIN_IMAGE_HEIGHT = 5100
IMAGE_MIME_PREFIX = "image/"
FETCH_TIMEOUT_SECONDS = 20.0

PAGE_WIDTH_IN = 17.0
PAGE_HEIGHT_IN = 11.0
PAGE_GUIDE_INSET_PX = 16.0
ARTWORK_OPACITY = 0.95
SPINE_FILL_ALPHA = 0x33 / 255.0
PAGE_LABEL_SIZE = 10.0
TEXT_COLOR = "#f8fafc"

FALLBACK_CONTAINER_WIDTH = 1100.0
FALLBACK_CONTAINER_HEIGHT = 520.0

DEFAULT_FONT_REGULAR = "Helvetica"
DEFAULT_FONT_BOLD = "Helvetica-Bold"
FIT_TOLERANCE_PX = 0.5
PROGRESS_BAR_WIDTH = 20


@dataclasses.dataclass(frozen=True)
class TextFieldConfig:
	default_font_size: int
	min_font_size: int
	max_lines: int
	line_height_multiplier: float
	font_name: str = DEFAULT_FONT_BOLD
	tracking_em: float = 0.3
	uppercase: bool = False
	horizontal_padding_px: float = 0.0
	bottom_offset_mm: float = 0.0
	overflow_message: str = ""


LARGE_TEXT_CONFIG = TextFieldConfig(
	default_font_size=72,
	min_font_size=16,
	max_lines=3,
	line_height_multiplier=1.15,
	overflow_message="Large text is too long to fit within three lines. Try shortening your message.",
)

SMALL_TEXT_CONFIG = TextFieldConfig(
	default_font_size=11,
	min_font_size=8,
	max_lines=3,
	line_height_multiplier=1.1,
	uppercase=True,
	horizontal_padding_px=8.0,
	bottom_offset_mm=0.5 * MM_PER_INCH,
	overflow_message="Spine text is too long to fit within three lines.",
)


@dataclasses.dataclass(frozen=True)
class ProofConfig:
	page_width_mm: float = PAGE_WIDTH_IN * MM_PER_INCH
	page_height_mm: float = PAGE_HEIGHT_IN * MM_PER_INCH
	draw_guides: bool = True
	guide_inset_px: float = PAGE_GUIDE_INSET_PX
	artwork_opacity: float = ARTWORK_OPACITY


@dataclasses.dataclass
class ExportResult:
	output_path: str
	pages: int
	book_ids: list[int]
	advisories: list[str]
