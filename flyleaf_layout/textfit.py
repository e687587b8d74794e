"""
Text autofit: choose the largest font size that fits a box.

Text is measured off-page with ReportLab font metrics. Wrapping follows the
preview's rules: explicit newlines are kept, lines break at spaces, and a
word longer than the line is broken between characters.
"""

# Standard Library
import dataclasses
import math
import typing

# PIP3 modules
import reportlab.pdfbase.pdfmetrics

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config


TextFieldConfig = fl.config.TextFieldConfig
DEFAULT_FONT_BOLD = fl.config.DEFAULT_FONT_BOLD
FIT_TOLERANCE_PX = fl.config.FIT_TOLERANCE_PX


@dataclasses.dataclass(frozen=True)
class TextMeasurement:
	width: float
	height: float
	line_count: int
	lines: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class TextLayout:
	text: str
	font_size: float
	line_height: float
	line_count: int
	lines: tuple[str, ...]
	overflowed: bool
	advisory: str | None = None


class TextMeasurer(typing.Protocol):
	def measure(
		self,
		text: str,
		font_size: float,
		max_width: float,
		line_height: float | None = None,
	) -> TextMeasurement:
		...


class ReportLabTextMeasurer:
	"""
	Measures wrapped text with the metrics of a standard PDF font.
	"""

	def __init__(self, font_name: str = DEFAULT_FONT_BOLD, tracking_em: float = 0.0):
		self.font_name = font_name
		self.tracking_em = tracking_em

	def char_space(self, font_size: float) -> float:
		return self.tracking_em * font_size

	def text_width(self, text: str, font_size: float) -> float:
		width = reportlab.pdfbase.pdfmetrics.stringWidth(text, self.font_name, font_size)
		return width + self.char_space(font_size) * len(text)

	#============================================
	def break_word(self, word: str, font_size: float, max_width: float) -> list[str]:
		"""
		Split a word that is wider than the line into line-sized chunks.

		Args:
			word: Word to split.
			font_size: Font size.
			max_width: Available line width.

		Returns:
			Chunks, each holding at least one character.
		"""
		chunks: list[str] = []
		current = ""
		for char in word:
			candidate = current + char
			if current and self.text_width(candidate, font_size) > max_width + FIT_TOLERANCE_PX:
				chunks.append(current)
				current = char
			else:
				current = candidate
		if current:
			chunks.append(current)
		return chunks

	#============================================
	def wrap(self, text: str, font_size: float, max_width: float) -> list[str]:
		"""
		Wrap text into lines no wider than max_width where possible.

		Args:
			text: Text with optional newlines.
			font_size: Font size.
			max_width: Available line width.

		Returns:
			Wrapped lines.
		"""
		lines: list[str] = []
		for paragraph in text.split("\n"):
			current = ""
			for word in paragraph.split(" "):
				candidate = f"{current} {word}" if current else word
				if self.text_width(candidate, font_size) <= max_width + FIT_TOLERANCE_PX:
					current = candidate
					continue
				if current:
					lines.append(current)
					current = ""
				if self.text_width(word, font_size) <= max_width + FIT_TOLERANCE_PX:
					current = word
					continue
				chunks = self.break_word(word, font_size, max_width)
				lines.extend(chunks[:-1])
				current = chunks[-1] if chunks else ""
			lines.append(current)
		return lines

	def measure(
		self,
		text: str,
		font_size: float,
		max_width: float,
		line_height: float | None = None,
	) -> TextMeasurement:
		if line_height is None:
			line_height = font_size
		lines = self.wrap(text, font_size, max_width)
		width = max((self.text_width(line, font_size) for line in lines), default=0.0)
		return TextMeasurement(
			width=width,
			height=line_height * len(lines),
			line_count=len(lines),
			lines=tuple(lines),
		)


#============================================
def measurer_for_field(config: TextFieldConfig) -> ReportLabTextMeasurer:
	"""
	Build the measurer matching a text field's font and tracking.

	Args:
		config: Text field configuration.

	Returns:
		ReportLabTextMeasurer.
	"""
	return ReportLabTextMeasurer(config.font_name, config.tracking_em)


#============================================
def cap_line_breaks(text: str, max_lines: int) -> str:
	"""
	Normalize newlines and drop line breaks past max_lines.

	Args:
		text: Raw text.
		max_lines: Maximum number of explicit lines.

	Returns:
		Trimmed text with at most max_lines - 1 newlines. Text after a
		dropped break continues on the last allowed line.
	"""
	normalized = text.replace("\r\n", "\n").replace("\r", "\n").strip()
	parts = normalized.split("\n")
	if max_lines < 1 or len(parts) <= max_lines:
		return normalized
	head = parts[: max_lines - 1]
	tail = " ".join(part.strip() for part in parts[max_lines - 1 :] if part.strip())
	return "\n".join(head + [tail])


#============================================
def fit_text(
	text: str,
	box_width: float,
	box_height: float,
	min_font_size: int,
	default_font_size: int,
	max_lines: int,
	line_height_multiplier: float,
	measurer: TextMeasurer,
	overflow_message: str = "",
) -> TextLayout:
	"""
	Find the largest font size at which the text fits the box.

	The default size is tried first so short text keeps its intended size;
	otherwise integer sizes between the minimum and default are bisected.

	Args:
		text: Prepared text (see cap_line_breaks).
		box_width: Box width in pixels.
		box_height: Box height in pixels.
		min_font_size: Smallest allowed size.
		default_font_size: Preferred size.
		max_lines: Maximum rendered line count.
		line_height_multiplier: Line height as a multiple of the font size.
		measurer: Text measurement capability.
		overflow_message: Advisory used when nothing fits.

	Returns:
		TextLayout. When nothing fits, the minimum size is used and
		overflowed is True.
	"""
	default_line_height = default_font_size * line_height_multiplier
	valid_box = (
		math.isfinite(box_width) and box_width > 0.0
		and math.isfinite(box_height) and box_height > 0.0
	)
	if not text or not valid_box:
		return TextLayout(text, default_font_size, default_line_height, 0, (), False)

	def measure_at(size: int) -> TextMeasurement:
		return measurer.measure(text, size, box_width, size * line_height_multiplier)

	def fits(size: int) -> bool:
		measurement = measure_at(size)
		if measurement.width > box_width + FIT_TOLERANCE_PX:
			return False
		max_height = min(box_height, size * line_height_multiplier * max_lines)
		if measurement.height > max_height + FIT_TOLERANCE_PX:
			return False
		return measurement.line_count <= max_lines

	best = min_font_size
	found = False
	if fits(default_font_size):
		best = default_font_size
		found = True
	else:
		low = min_font_size
		high = max(min_font_size, default_font_size - 1)
		while low <= high:
			mid = (low + high) // 2
			if fits(mid):
				best = mid
				found = True
				low = mid + 1
			else:
				high = mid - 1

	final_size = best if found else min_font_size
	measurement = measure_at(final_size)
	overflowed = not found
	return TextLayout(
		text=text,
		font_size=final_size,
		line_height=final_size * line_height_multiplier,
		line_count=measurement.line_count,
		lines=measurement.lines,
		overflowed=overflowed,
		advisory=(overflow_message or "Text does not fit.") if overflowed else None,
	)


#============================================
def autofit_field(
	text: str,
	box_width: float,
	box_height: float,
	config: TextFieldConfig,
	measurer: TextMeasurer | None = None,
) -> TextLayout:
	"""
	Autofit one configured text field.

	Args:
		text: Raw text as entered.
		box_width: Box width in pixels, before field padding.
		box_height: Box height in pixels.
		config: Text field configuration.
		measurer: Optional measurer override.

	Returns:
		TextLayout.
	"""
	prepared = cap_line_breaks(text, config.max_lines)
	if config.uppercase:
		prepared = prepared.upper()
	if measurer is None:
		measurer = measurer_for_field(config)
	content_width = max(box_width - config.horizontal_padding_px, 1.0)
	return fit_text(
		prepared,
		content_width,
		box_height,
		config.min_font_size,
		config.default_font_size,
		config.max_lines,
		config.line_height_multiplier,
		measurer,
		config.overflow_message,
	)
