import pytest

import flyleaf_layout.books
import flyleaf_layout.geometry
import flyleaf_layout.units
import flyleaf_layout.viewport


BookSpec = flyleaf_layout.books.BookSpec
ViewportState = flyleaf_layout.viewport.ViewportState
mm_to_px = flyleaf_layout.units.mm_to_px

WRAP_PX = mm_to_px(20.0)
TOLERANCE = 1e-6


#============================================
def build_stack(spines: list[float], height: float = 210.0) -> flyleaf_layout.geometry.StackGeometry:
	"""
	Build a stack of equal-height books.
	"""
	books = [BookSpec(id=index + 1, spine_width_mm=spine, height_mm=height) for index, spine in enumerate(spines)]
	return flyleaf_layout.geometry.compute_stack_geometry(books, 2.0)


#============================================
def transform_at(stack, fit, zoom: float, offset_x: float, offset_y: float = 0.0):
	"""
	Clamp a viewport and compute its transform.
	"""
	limits = flyleaf_layout.viewport.compute_viewport_limits(fit)
	state = flyleaf_layout.viewport.clamp_viewport(ViewportState(zoom, offset_x, offset_y), stack, fit, limits)
	return flyleaf_layout.viewport.compute_artwork_transform(state, stack, fit)


#============================================
def test_base_scale_matches_tallest_book() -> None:
	"""
	3300x5100 artwork on a 210 mm stack scales by stack height / 5100.
	"""
	stack = build_stack([30.0])
	fit = flyleaf_layout.viewport.compute_artwork_fit(stack, 3300, 5100)
	assert fit.base_scale == pytest.approx(mm_to_px(210.0) / 5100)
	assert fit.base_height_px == pytest.approx(stack.height_px)


#============================================
@pytest.mark.parametrize(
	"spines, size",
	[
		([30.0], (3300, 5100)),
		([30.0, 40.0, 25.0], (3300, 5100)),
		([12.0] * 8, (6000, 2400)),
		([55.0, 20.0], (1200, 900)),
	],
)
def test_wrap_margin_covered_at_min_zoom(spines: list[float], size: tuple[int, int]) -> None:
	"""
	At the minimum zoom the artwork overhangs both stack edges by the wrap margin.
	"""
	stack = build_stack(spines)
	fit = flyleaf_layout.viewport.compute_artwork_fit(stack, *size)
	limits = flyleaf_layout.viewport.compute_viewport_limits(fit)
	assert limits.full_wrap_attainable
	for offset_x in (-100.0, -50.0, 0.0, 37.5, 100.0):
		transform = transform_at(stack, fit, limits.min_zoom_percent, offset_x)
		x0, _y0, x1, _y1 = transform.bounds(stack)
		assert x0 <= -WRAP_PX + TOLERANCE
		assert x1 >= stack.width_px + WRAP_PX - TOLERANCE


#============================================
def test_full_offset_consumes_max_shift() -> None:
	"""
	offset_x 100 at the minimum zoom translates by exactly the max shift.
	"""
	stack = build_stack([30.0, 40.0])
	fit = flyleaf_layout.viewport.compute_artwork_fit(stack, 3300, 5100)
	limits = flyleaf_layout.viewport.compute_viewport_limits(fit)
	transform = transform_at(stack, fit, limits.min_zoom_percent, 100.0)
	assert transform.translate_x_px == transform.max_horizontal_shift_px
	x0, _y0, _x1, _y1 = transform.bounds(stack)
	assert x0 == pytest.approx(-WRAP_PX)


#============================================
def test_min_vertical_offset_is_monotonic() -> None:
	"""
	The minimum offset never decreases as the extra height shrinks.
	"""
	top_px = mm_to_px(2.0)
	previous = None
	for extra in (900.0, 400.0, 120.0, 40.0, 12.0, 8.0, top_px + 0.01, top_px, 3.0, 0.5):
		value = flyleaf_layout.viewport.compute_min_vertical_offset(extra, top_px)
		if previous is not None:
			assert value >= previous
		previous = value
		if extra <= top_px:
			assert value == 100.0
	assert flyleaf_layout.viewport.compute_min_vertical_offset(0.0, top_px) == -100.0


#============================================
def test_top_margin_stays_covered() -> None:
	"""
	Clamped vertical offsets keep the artwork above the top margin.
	"""
	stack = build_stack([30.0])
	fit = flyleaf_layout.viewport.compute_artwork_fit(stack, 3300, 5100)
	for zoom in (110.0, 150.0, 200.0):
		transform = transform_at(stack, fit, zoom, 0.0, -100.0)
		_x0, y0, _x1, _y1 = transform.bounds(stack)
		assert y0 <= -mm_to_px(2.0) + TOLERANCE


#============================================
def test_in_range_state_is_kept() -> None:
	"""
	Valid stored values are returned as they are.
	"""
	stack = build_stack([30.0])
	fit = flyleaf_layout.viewport.compute_artwork_fit(stack, 3300, 5100)
	limits = flyleaf_layout.viewport.compute_viewport_limits(fit)
	state = ViewportState(150.0, 25.0, 10.0)
	assert flyleaf_layout.viewport.clamp_viewport(state, stack, fit, limits) is state
	clamped = flyleaf_layout.viewport.clamp_viewport(ViewportState(20.0, 400.0, 0.0), stack, fit, limits)
	assert clamped.zoom_percent == limits.min_zoom_percent
	assert clamped.offset_x_percent == 100.0


#============================================
def test_unreachable_wrap_carries_advisory() -> None:
	"""
	Very tall narrow artwork caps zoom at 200 and reports it.
	"""
	stack = build_stack([40.0] * 10)
	fit = flyleaf_layout.viewport.compute_artwork_fit(stack, 500, 5000)
	limits = flyleaf_layout.viewport.compute_viewport_limits(fit)
	assert limits.min_zoom_percent == 200
	assert not limits.full_wrap_attainable
	assert limits.advisory == flyleaf_layout.viewport.COVERAGE_MESSAGE


#============================================
def test_no_artwork_is_inert() -> None:
	"""
	Without artwork the fit and transform are absent and min zoom is 50.
	"""
	stack = build_stack([30.0])
	assert flyleaf_layout.viewport.compute_artwork_fit(stack, 0, 0) is None
	limits = flyleaf_layout.viewport.compute_viewport_limits(None)
	assert limits.min_zoom_percent == 50
	assert flyleaf_layout.viewport.compute_artwork_transform(ViewportState(), stack, None) is None


#============================================
def test_reset_viewport() -> None:
	"""
	Reset returns to 100% or the minimum zoom, with centered offsets.
	"""
	low = flyleaf_layout.viewport.ViewportLimits(50, 200, True)
	high = flyleaf_layout.viewport.ViewportLimits(140, 200, True)
	state = ViewportState(180.0, 40.0, -20.0)
	assert flyleaf_layout.viewport.reset_viewport(state, low) == ViewportState(100, 0.0, 0.0)
	assert flyleaf_layout.viewport.reset_viewport(state, high) == ViewportState(140, 0.0, 0.0)
