import pytest

import flyleaf_layout.config
import flyleaf_layout.textfit


LARGE_TEXT_CONFIG = flyleaf_layout.config.LARGE_TEXT_CONFIG
SMALL_TEXT_CONFIG = flyleaf_layout.config.SMALL_TEXT_CONFIG
LONG_CAPTION = "A very very very long caption that cannot possibly fit"


#============================================
def fit_large(text: str, width: float, height: float) -> flyleaf_layout.textfit.TextLayout:
	"""
	Fit text with the large caption settings.
	"""
	return flyleaf_layout.textfit.autofit_field(text, width, height, LARGE_TEXT_CONFIG)


#============================================
def test_long_caption_overflows_narrow_box() -> None:
	"""
	A long caption in a 200 px box falls back to 16 px and overflows.
	"""
	layout = fit_large(LONG_CAPTION, 200.0, 600.0)
	assert layout.overflowed
	assert layout.font_size == 16
	assert layout.advisory == LARGE_TEXT_CONFIG.overflow_message


#============================================
def test_short_text_keeps_default_size() -> None:
	"""
	Text that fits at the default size is not shrunk.
	"""
	layout = fit_large("Hi", 1200.0, 600.0)
	assert layout.font_size == 72
	assert layout.line_count == 1
	assert not layout.overflowed


#============================================
@pytest.mark.parametrize(
	"text, width, height",
	[
		("Collected Works", 400.0, 700.0),
		("The quick brown fox jumps over the lazy dog", 500.0, 300.0),
		(LONG_CAPTION, 900.0, 500.0),
		("Line one\nLine two\nLine three\nLine four", 700.0, 700.0),
	],
)
def test_fit_is_idempotent_and_bounded(text: str, width: float, height: float) -> None:
	"""
	Fitting twice gives the same size; sizes and lines stay in range.
	"""
	first = fit_large(text, width, height)
	second = fit_large(text, width, height)
	assert first == second
	assert LARGE_TEXT_CONFIG.min_font_size <= first.font_size <= LARGE_TEXT_CONFIG.default_font_size
	if not first.overflowed:
		assert first.line_count <= LARGE_TEXT_CONFIG.max_lines
		measurer = flyleaf_layout.textfit.measurer_for_field(LARGE_TEXT_CONFIG)
		for line in first.lines:
			assert measurer.text_width(line, first.font_size) <= width + 0.5


#============================================
def test_fitted_size_is_largest_that_fits() -> None:
	"""
	One size up from a shrunk fit no longer fits.
	"""
	text = "The quick brown fox jumps over the lazy dog"
	layout = fit_large(text, 500.0, 300.0)
	assert not layout.overflowed
	assert layout.font_size < LARGE_TEXT_CONFIG.default_font_size
	measurer = flyleaf_layout.textfit.measurer_for_field(LARGE_TEXT_CONFIG)
	bigger = layout.font_size + 1
	line_height = bigger * LARGE_TEXT_CONFIG.line_height_multiplier
	measurement = measurer.measure(text, bigger, 500.0, line_height)
	too_wide = measurement.width > 500.5
	too_tall = measurement.height > min(300.0, line_height * 3) + 0.5
	assert too_wide or too_tall or measurement.line_count > 3


#============================================
def test_empty_text_has_no_lines() -> None:
	"""
	Empty text keeps the default size with zero lines.
	"""
	layout = fit_large("   ", 300.0, 300.0)
	assert layout.line_count == 0
	assert layout.font_size == 72
	assert not layout.overflowed


#============================================
def test_line_breaks_are_capped() -> None:
	"""
	Breaks past the maximum join the last allowed line.
	"""
	capped = flyleaf_layout.textfit.cap_line_breaks("one\r\ntwo\rthree\nfour\nfive", 3)
	assert capped == "one\ntwo\nthree four five"
	assert flyleaf_layout.textfit.cap_line_breaks("a\nb", 3) == "a\nb"


#============================================
def test_long_word_breaks_between_characters() -> None:
	"""
	A word wider than the line is split into chunks.
	"""
	measurer = flyleaf_layout.textfit.ReportLabTextMeasurer("Helvetica-Bold", 0.0)
	lines = measurer.wrap("Supercalifragilistic", 12.0, 40.0)
	assert len(lines) > 1
	assert "".join(lines) == "Supercalifragilistic"


#============================================
def test_spine_caption_is_uppercased() -> None:
	"""
	Spine captions are uppercase and fit inside the padded spine width.
	"""
	layout = flyleaf_layout.textfit.autofit_field("vol. 1", 113.0, 700.0, SMALL_TEXT_CONFIG)
	assert layout.lines == ("VOL. 1",)
	assert layout.font_size == SMALL_TEXT_CONFIG.default_font_size
