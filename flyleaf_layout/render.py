"""
Drawing helpers shared by the preview and proof renderers.
"""

# Standard Library
import dataclasses

# PIP3 modules
import reportlab.pdfbase.pdfmetrics
import reportlab.pdfgen.canvas

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config
import flyleaf_layout.textfit


TextLayout = fl.textfit.TextLayout
TextFieldConfig = fl.config.TextFieldConfig
PROGRESS_BAR_WIDTH = fl.config.PROGRESS_BAR_WIDTH


@dataclasses.dataclass(frozen=True)
class Rect:
	x: float
	y: float
	width: float
	height: float

	@property
	def right(self) -> float:
		return self.x + self.width

	@property
	def bottom(self) -> float:
		return self.y + self.height

	def offset(self, dx: float, dy: float) -> "Rect":
		return Rect(self.x + dx, self.y + dy, self.width, self.height)

	def scaled(self, scale: float) -> "Rect":
		return Rect(self.x * scale, self.y * scale, self.width * scale, self.height * scale)


@dataclasses.dataclass(frozen=True)
class LinePlacement:
	text: str
	x: float
	center_y: float
	width: float


#============================================
def compute_align_offset(available: float, scaled: float, align: str) -> float:
	"""
	Compute an alignment offset.

	Args:
		available: Available dimension.
		scaled: Content dimension.
		align: Alignment string.

	Returns:
		Offset from the start of the available span.
	"""
	normalized = align.strip().upper()
	if normalized in ("LEFT", "TOP"):
		return 0.0
	if normalized in ("RIGHT", "BOTTOM"):
		return available - scaled
	return (available - scaled) / 2.0


#============================================
def place_text_lines(
	layout: TextLayout,
	box: Rect,
	config: TextFieldConfig,
	align_vertical: str = "CENTER",
) -> list[LinePlacement]:
	"""
	Position the lines of a text layout inside a box.

	Lines are centered horizontally; the block is aligned vertically.
	Coordinates are y-down.

	Args:
		layout: Fitted text layout.
		box: Target box.
		config: Text field configuration (font and tracking).
		align_vertical: TOP, CENTER or BOTTOM.

	Returns:
		List of LinePlacement.
	"""
	measurer = fl.textfit.measurer_for_field(config)
	block_height = layout.line_height * layout.line_count
	top = box.y + compute_align_offset(box.height, block_height, align_vertical)
	placements: list[LinePlacement] = []
	for index, line in enumerate(layout.lines):
		line_width = measurer.text_width(line, layout.font_size)
		placements.append(
			LinePlacement(
				text=line,
				x=box.x + (box.width - line_width) / 2.0,
				center_y=top + layout.line_height * (index + 0.5),
				width=line_width,
			)
		)
	return placements


#============================================
def parse_hex_color(value: str) -> tuple[float, float, float]:
	"""
	Parse a hex color string into RGB floats.

	Args:
		value: Color string like "#AABBCC".

	Returns:
		Tuple of (r, g, b) in 0.0-1.0 range.
	"""
	if not value or not value.startswith("#") or len(value) != 7:
		return (0.0, 0.0, 0.0)
	try:
		red = int(value[1:3], 16) / 255.0
		green = int(value[3:5], 16) / 255.0
		blue = int(value[5:7], 16) / 255.0
	except ValueError:
		return (0.0, 0.0, 0.0)
	return (red, green, blue)


#============================================
def hex_to_rgb255(value: str) -> tuple[int, int, int]:
	red, green, blue = parse_hex_color(value)
	return (int(round(red * 255)), int(round(green * 255)), int(round(blue * 255)))


#============================================
def print_progress(prefix: str, current: int, total: int) -> None:
	"""
	Print a simple progress bar.

	Args:
		prefix: Label text.
		current: Current count.
		total: Total count.
	"""
	if total <= 0:
		return
	percent = int(round((current / total) * 100.0))
	filled = int(round(PROGRESS_BAR_WIDTH * percent / 100.0))
	bar = "#" * filled + "-" * (PROGRESS_BAR_WIDTH - filled)
	print(f"{prefix} [{bar}] {current}/{total} ({percent}%)", end="\r")


#============================================
def draw_text_lines(
	pdf: reportlab.pdfgen.canvas.Canvas,
	placements: list[LinePlacement],
	layout: TextLayout,
	config: TextFieldConfig,
	page_height: float,
	color: str,
) -> None:
	"""
	Draw placed text lines onto a y-up PDF canvas.

	Args:
		pdf: ReportLab canvas, already scaled to the pixel basis.
		placements: Lines from place_text_lines (y-down).
		layout: Text layout the lines belong to.
		config: Text field configuration.
		page_height: Page height in the same basis, for flipping y.
		color: Hex text color.
	"""
	font_name = config.font_name
	font_size = layout.font_size
	ascent = reportlab.pdfbase.pdfmetrics.getAscent(font_name) * font_size / 1000.0
	descent = reportlab.pdfbase.pdfmetrics.getDescent(font_name) * font_size / 1000.0
	red, green, blue = parse_hex_color(color)
	pdf.setFillColorRGB(red, green, blue)
	for placement in placements:
		# baseline so the glyph box is centered on the line
		baseline_down = placement.center_y + (ascent + descent) / 2.0
		text_object = pdf.beginText()
		text_object.setFont(font_name, font_size)
		text_object.setCharSpace(config.tracking_em * font_size)
		text_object.setTextOrigin(placement.x, page_height - baseline_down)
		text_object.textLine(placement.text)
		pdf.drawText(text_object)
