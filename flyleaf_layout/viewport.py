"""
Artwork fit and viewport model.

The artwork is scaled so its height matches the tallest book, then zoomed and
panned by the user. Zoom and pan are clamped so the artwork keeps a wrap
margin of overhang beyond both stack edges and never uncovers the top margin.
All sizes here are screen pixels at the 96 DPI reference.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config
import flyleaf_layout.geometry
import flyleaf_layout.units


StackGeometry = fl.geometry.StackGeometry
mm_to_px = fl.units.mm_to_px

WRAP_MARGIN_MM = fl.config.WRAP_MARGIN_MM
TOP_MARGIN_MM = fl.config.TOP_MARGIN_MM
MIN_ZOOM_PERCENT = fl.config.MIN_ZOOM_PERCENT
MAX_ZOOM_PERCENT = fl.config.MAX_ZOOM_PERCENT
DEFAULT_ZOOM_PERCENT = fl.config.DEFAULT_ZOOM_PERCENT
MIN_OFFSET_PERCENT = fl.config.MIN_OFFSET_PERCENT
MAX_OFFSET_PERCENT = fl.config.MAX_OFFSET_PERCENT

COVERAGE_MESSAGE = (
	"This artwork is too narrow to cover the wrap margin on every side, "
	"even at maximum zoom."
)


@dataclasses.dataclass(frozen=True)
class ViewportState:
	zoom_percent: float = DEFAULT_ZOOM_PERCENT
	offset_x_percent: float = 0.0
	offset_y_percent: float = 0.0


@dataclasses.dataclass(frozen=True)
class ArtworkFit:
	base_scale: float
	base_width_px: float
	base_height_px: float
	required_width_px: float
	required_height_px: float


@dataclasses.dataclass(frozen=True)
class ViewportLimits:
	min_zoom_percent: float
	max_zoom_percent: float
	full_wrap_attainable: bool
	advisory: str | None = None


@dataclasses.dataclass(frozen=True)
class ArtworkTransform:
	zoom_percent: float
	offset_x_percent: float
	offset_y_percent: float
	display_width_px: float
	display_height_px: float
	extra_width_px: float
	extra_height_px: float
	max_horizontal_shift_px: float
	min_vertical_offset_percent: float
	translate_x_px: float
	translate_y_px: float

	def bounds(self, stack: StackGeometry) -> tuple[float, float, float, float]:
		"""
		Artwork rectangle in stack coordinates (origin top-left, y down).

		Args:
			stack: Stack geometry the transform was computed for.

		Returns:
			Tuple of (x0, y0, x1, y1).
		"""
		center_x = stack.width_px / 2.0 + self.translate_x_px
		center_y = stack.height_px / 2.0 + self.translate_y_px
		half_width = self.display_width_px / 2.0
		half_height = self.display_height_px / 2.0
		return (
			center_x - half_width,
			center_y - half_height,
			center_x + half_width,
			center_y + half_height,
		)


#============================================
def clamp(value: float, low: float, high: float) -> float:
	return min(high, max(low, value))


#============================================
def compute_artwork_fit(
	stack: StackGeometry,
	pixel_width: int,
	pixel_height: int,
	wrap_margin_mm: float = WRAP_MARGIN_MM,
	top_margin_mm: float = TOP_MARGIN_MM,
) -> ArtworkFit | None:
	"""
	Scale the artwork so its height fills the tallest book.

	Args:
		stack: Stack geometry.
		pixel_width: Native artwork width.
		pixel_height: Native artwork height.
		wrap_margin_mm: Overhang required past each side of the stack.
		top_margin_mm: Headroom required above the tallest book.

	Returns:
		ArtworkFit, or None when there is no usable artwork.
	"""
	if pixel_width <= 0 or pixel_height <= 0:
		return None
	base_scale = stack.height_px / pixel_height
	return ArtworkFit(
		base_scale=base_scale,
		base_width_px=pixel_width * base_scale,
		base_height_px=stack.height_px,
		required_width_px=stack.width_px + 2.0 * mm_to_px(wrap_margin_mm),
		required_height_px=stack.height_px + mm_to_px(top_margin_mm),
	)


#============================================
def compute_viewport_limits(fit: ArtworkFit | None) -> ViewportLimits:
	"""
	Compute the zoom range for an artwork fit.

	Args:
		fit: Artwork fit, or None without artwork.

	Returns:
		ViewportLimits. When full wrap coverage would need more than the
		maximum zoom, the limits carry an advisory.
	"""
	if fit is None or fit.base_width_px <= 0.0:
		return ViewportLimits(MIN_ZOOM_PERCENT, MAX_ZOOM_PERCENT, True)

	min_scale = max(
		fit.required_width_px / fit.base_width_px,
		fit.required_height_px / fit.base_height_px if fit.base_height_px > 0.0 else 0.0,
	)
	if not math.isfinite(min_scale) or min_scale <= 0.0:
		return ViewportLimits(MIN_ZOOM_PERCENT, MAX_ZOOM_PERCENT, True)

	# round before ceil so float noise like 120.00000000001 stays 120
	raw_percent = math.ceil(round(min_scale * 100.0, 9))
	attainable = raw_percent <= MAX_ZOOM_PERCENT
	min_percent = clamp(raw_percent, MIN_ZOOM_PERCENT, MAX_ZOOM_PERCENT)
	advisory = None if attainable else COVERAGE_MESSAGE
	return ViewportLimits(min_percent, MAX_ZOOM_PERCENT, attainable, advisory)


#============================================
def compute_min_vertical_offset(extra_height_px: float, top_margin_px: float) -> float:
	"""
	Lowest vertical offset percent that keeps the top margin covered.

	Args:
		extra_height_px: Artwork height beyond the stack height.
		top_margin_px: Required headroom in pixels.

	Returns:
		Minimum offset in percent.
	"""
	if extra_height_px <= 0.0:
		return MIN_OFFSET_PERCENT
	if extra_height_px <= top_margin_px:
		return MAX_OFFSET_PERCENT
	computed = -100.0 + (200.0 * top_margin_px) / extra_height_px
	if not math.isfinite(computed):
		return MIN_OFFSET_PERCENT
	return clamp(computed, MIN_OFFSET_PERCENT, MAX_OFFSET_PERCENT)


#============================================
def clamp_viewport(
	state: ViewportState,
	stack: StackGeometry,
	fit: ArtworkFit | None,
	limits: ViewportLimits,
	top_margin_mm: float = TOP_MARGIN_MM,
) -> ViewportState:
	"""
	Re-clamp stored viewport values into the current valid ranges.

	Values already in range are kept as they are.

	Args:
		state: Stored viewport state.
		stack: Stack geometry.
		fit: Artwork fit or None.
		limits: Current zoom limits.
		top_margin_mm: Headroom above the tallest book.

	Returns:
		Clamped ViewportState.
	"""
	zoom = clamp(state.zoom_percent, limits.min_zoom_percent, limits.max_zoom_percent)
	offset_x = clamp(state.offset_x_percent, MIN_OFFSET_PERCENT, MAX_OFFSET_PERCENT)
	min_offset_y = MIN_OFFSET_PERCENT
	if fit is not None:
		display_height = fit.base_height_px * zoom / 100.0
		extra_height = max(display_height - stack.height_px, 0.0)
		min_offset_y = compute_min_vertical_offset(extra_height, mm_to_px(top_margin_mm))
	offset_y = clamp(state.offset_y_percent, min_offset_y, MAX_OFFSET_PERCENT)
	if (zoom, offset_x, offset_y) == (state.zoom_percent, state.offset_x_percent, state.offset_y_percent):
		return state
	return ViewportState(zoom, offset_x, offset_y)


#============================================
def reset_viewport(state: ViewportState, limits: ViewportLimits) -> ViewportState:
	"""
	Return to the default zoom with centered artwork.

	Args:
		state: Current viewport state.
		limits: Current zoom limits.

	Returns:
		Reset ViewportState.
	"""
	if state.zoom_percent < limits.min_zoom_percent:
		zoom = limits.min_zoom_percent
	else:
		zoom = max(DEFAULT_ZOOM_PERCENT, limits.min_zoom_percent)
	return ViewportState(zoom, 0.0, 0.0)


#============================================
def compute_artwork_transform(
	state: ViewportState,
	stack: StackGeometry,
	fit: ArtworkFit | None,
	wrap_margin_mm: float = WRAP_MARGIN_MM,
	top_margin_mm: float = TOP_MARGIN_MM,
) -> ArtworkTransform | None:
	"""
	Turn zoom and offset percentages into an artwork placement.

	Args:
		state: Viewport state, assumed already clamped.
		stack: Stack geometry.
		fit: Artwork fit or None.
		wrap_margin_mm: Overhang kept past the side the user pans toward.
		top_margin_mm: Headroom above the tallest book.

	Returns:
		ArtworkTransform, or None without artwork.
	"""
	if fit is None:
		return None
	zoom_scale = state.zoom_percent / 100.0
	display_width = fit.base_width_px * zoom_scale
	display_height = fit.base_height_px * zoom_scale

	extra_width = max(display_width - stack.width_px, 0.0)
	max_shift = max(extra_width / 2.0 - mm_to_px(wrap_margin_mm), 0.0)
	translate_x = max_shift * (state.offset_x_percent / 100.0)

	extra_height = max(display_height - stack.height_px, 0.0)
	min_offset_y = compute_min_vertical_offset(extra_height, mm_to_px(top_margin_mm))
	offset_y = clamp(state.offset_y_percent, min_offset_y, MAX_OFFSET_PERCENT)
	translate_y = -extra_height * (offset_y / 200.0)

	return ArtworkTransform(
		zoom_percent=state.zoom_percent,
		offset_x_percent=state.offset_x_percent,
		offset_y_percent=offset_y,
		display_width_px=display_width,
		display_height_px=display_height,
		extra_width_px=extra_width,
		extra_height_px=extra_height,
		max_horizontal_shift_px=max_shift,
		min_vertical_offset_percent=min_offset_y,
		translate_x_px=translate_x,
		translate_y_px=translate_y,
	)
