"""
Live preview: the composed stack scene scaled to fit a container.
"""

# Standard Library
import dataclasses
import math

# PIP3 modules
import PIL.Image
import PIL.ImageDraw
import PIL.ImageFont

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.books
import flyleaf_layout.config
import flyleaf_layout.pipeline
import flyleaf_layout.render
import flyleaf_layout.textfit
import flyleaf_layout.units


DerivedLayout = fl.pipeline.DerivedLayout
TextLayout = fl.textfit.TextLayout
Rect = fl.render.Rect
LinePlacement = fl.render.LinePlacement
mm_to_px = fl.units.mm_to_px

LARGE_TEXT_CONFIG = fl.config.LARGE_TEXT_CONFIG
SMALL_TEXT_CONFIG = fl.config.SMALL_TEXT_CONFIG
FALLBACK_CONTAINER_WIDTH = fl.config.FALLBACK_CONTAINER_WIDTH
FALLBACK_CONTAINER_HEIGHT = fl.config.FALLBACK_CONTAINER_HEIGHT
ARTWORK_OPACITY = fl.config.ARTWORK_OPACITY
SPINE_FILL_ALPHA = fl.config.SPINE_FILL_ALPHA

PLACEHOLDER_MESSAGE = "Upload artwork to see the live preview."
BACKDROP_COLOR = (11, 18, 36, 255)
PLACEHOLDER_COLOR = (255, 255, 255, 255)
GRID_COLOR = (148, 163, 184, 40)
GRID_STEP_PX = 80.0
TEXT_COLOR = fl.config.TEXT_COLOR
MUTED_TEXT_COLOR = (148, 163, 184, 255)


@dataclasses.dataclass(frozen=True)
class SpineItem:
	book_id: int
	index: int
	rect: Rect
	color: str
	label: str
	isbn: str
	caption: TextLayout
	caption_box: Rect
	caption_lines: tuple[LinePlacement, ...]


@dataclasses.dataclass(frozen=True)
class PreviewScene:
	preview_scale: float
	stack_width_px: float
	stack_height_px: float
	artwork_rect: Rect | None
	large_text: TextLayout
	large_text_box: Rect
	large_text_lines: tuple[LinePlacement, ...]
	spines: tuple[SpineItem, ...]

	@property
	def has_artwork(self) -> bool:
		return self.artwork_rect is not None

	@property
	def scaled_size(self) -> tuple[int, int]:
		width = max(int(math.ceil(round(self.stack_width_px * self.preview_scale, 6))), 1)
		height = max(int(math.ceil(round(self.stack_height_px * self.preview_scale, 6))), 1)
		return (width, height)


#============================================
def compute_preview_scale(container_width: float, container_height: float, stack_width: float, stack_height: float) -> float:
	"""
	Scale that fits the stack into the container without enlarging it.

	Args:
		container_width: Container width in pixels; 0 when not yet observed.
		container_height: Container height in pixels.
		stack_width: Stack width in pixels.
		stack_height: Stack height in pixels.

	Returns:
		Preview scale in (0, 1].
	"""
	if container_width <= 0.0 or container_height <= 0.0:
		container_width = FALLBACK_CONTAINER_WIDTH
		container_height = FALLBACK_CONTAINER_HEIGHT
	return min(container_width / stack_width, container_height / stack_height, 1.0)


#============================================
def spine_rect(layout: DerivedLayout, book_id: int) -> Rect:
	"""
	Spine rectangle in stack coordinates; books stand on a common baseline.

	Args:
		layout: Derived layout.
		book_id: Book id.

	Returns:
		Rect (y-down).
	"""
	placement = layout.stack.placement(book_id)
	return Rect(
		placement.center_px - placement.spine_width_px / 2.0,
		layout.stack.height_px - placement.height_px,
		placement.spine_width_px,
		placement.height_px,
	)


#============================================
def caption_box(spine: Rect, caption: TextLayout) -> Rect:
	"""
	Box of a spine caption, anchored above the spine bottom.

	Args:
		spine: Spine rectangle.
		caption: Fitted caption layout.

	Returns:
		Rect (y-down).
	"""
	padding = SMALL_TEXT_CONFIG.horizontal_padding_px / 2.0
	width = max(spine.width - 2.0 * padding, 1.0)
	height = caption.line_height * caption.line_count
	bottom = spine.bottom - mm_to_px(SMALL_TEXT_CONFIG.bottom_offset_mm)
	return Rect(spine.x + padding, bottom - height, width, height)


#============================================
def large_text_rect(layout: DerivedLayout) -> Rect:
	width, height = fl.pipeline.large_text_box(layout.stack, layout.margins.top_margin_mm)
	return Rect(0.0, layout.top_margin_px, width, height)


#============================================
def build_spine_items(layout: DerivedLayout) -> tuple[SpineItem, ...]:
	"""
	Build the spine items of a layout in stack coordinates.

	Args:
		layout: Derived layout.

	Returns:
		Tuple of SpineItem in stack order.
	"""
	items: list[SpineItem] = []
	for index, book in enumerate(layout.books):
		rect = spine_rect(layout, book.id)
		caption = layout.spine_texts[book.id]
		box = caption_box(rect, caption)
		lines = fl.render.place_text_lines(caption, box, SMALL_TEXT_CONFIG, "BOTTOM")
		items.append(
			SpineItem(
				book_id=book.id,
				index=index,
				rect=rect,
				color=book.color,
				label=fl.books.display_label(book, index),
				isbn=book.isbn.strip(),
				caption=caption,
				caption_box=box,
				caption_lines=tuple(lines),
			)
		)
	return tuple(items)


#============================================
def build_preview_scene(layout: DerivedLayout, container_width: float, container_height: float) -> PreviewScene:
	"""
	Compose the preview scene in stack coordinates.

	Args:
		layout: Derived layout.
		container_width: Observed container width.
		container_height: Observed container height.

	Returns:
		PreviewScene.
	"""
	stack = layout.stack
	artwork_rect = None
	if layout.transform is not None:
		x0, y0, x1, y1 = layout.transform.bounds(stack)
		artwork_rect = Rect(x0, y0, x1 - x0, y1 - y0)
	text_box = large_text_rect(layout)
	text_lines = fl.render.place_text_lines(layout.large_text, text_box, LARGE_TEXT_CONFIG, "CENTER")
	return PreviewScene(
		preview_scale=compute_preview_scale(container_width, container_height, stack.width_px, stack.height_px),
		stack_width_px=stack.width_px,
		stack_height_px=stack.height_px,
		artwork_rect=artwork_rect,
		large_text=layout.large_text,
		large_text_box=text_box,
		large_text_lines=tuple(text_lines),
		spines=build_spine_items(layout),
	)


#============================================
def load_font(size: float) -> PIL.ImageFont.ImageFont:
	return PIL.ImageFont.load_default(size=max(size, 1.0))


#============================================
def paste_artwork(canvas: PIL.Image.Image, artwork: PIL.Image.Image, rect: Rect) -> None:
	"""
	Paste the artwork into the canvas rectangle, cropped to the canvas.

	Args:
		canvas: RGBA preview canvas.
		artwork: Decoded artwork image.
		rect: Target rectangle in canvas pixels.
	"""
	canvas_width, canvas_height = canvas.size
	left = max(rect.x, 0.0)
	top = max(rect.y, 0.0)
	right = min(rect.right, float(canvas_width))
	bottom = min(rect.bottom, float(canvas_height))
	if right <= left or bottom <= top:
		return
	scale_x = artwork.width / rect.width
	scale_y = artwork.height / rect.height
	source_box = (
		(left - rect.x) * scale_x,
		(top - rect.y) * scale_y,
		(right - rect.x) * scale_x,
		(bottom - rect.y) * scale_y,
	)
	target_size = (max(int(round(right - left)), 1), max(int(round(bottom - top)), 1))
	piece = artwork.resize(target_size, PIL.Image.Resampling.LANCZOS, box=source_box).convert("RGBA")
	alpha = piece.getchannel("A").point(lambda value: int(value * ARTWORK_OPACITY))
	piece.putalpha(alpha)
	canvas.alpha_composite(piece, (int(round(left)), int(round(top))))


#============================================
def draw_lines(
	draw: PIL.ImageDraw.ImageDraw,
	lines: tuple[LinePlacement, ...],
	layout: TextLayout,
	scale: float,
) -> None:
	font = load_font(layout.font_size * scale)
	fill = fl.render.hex_to_rgb255(TEXT_COLOR) + (255,)
	for line in lines:
		center_x = (line.x + line.width / 2.0) * scale
		draw.text((center_x, line.center_y * scale), line.text, font=font, fill=fill, anchor="mm")


#============================================
def render_preview_image(scene: PreviewScene, artwork: PIL.Image.Image | None) -> PIL.Image.Image:
	"""
	Rasterize a preview scene.

	Args:
		scene: Preview scene.
		artwork: Decoded artwork, or None for the placeholder.

	Returns:
		RGBA image of the scaled preview.
	"""
	scale = scene.preview_scale
	size = scene.scaled_size
	if scene.has_artwork and artwork is not None:
		canvas = PIL.Image.new("RGBA", size, BACKDROP_COLOR)
		paste_artwork(canvas, artwork, scene.artwork_rect.scaled(scale))
	else:
		canvas = PIL.Image.new("RGBA", size, PLACEHOLDER_COLOR)
		grid = PIL.ImageDraw.Draw(canvas, "RGBA")
		step = GRID_STEP_PX * scale
		position = 0.0
		while step > 0.0 and position < max(size):
			grid.line([(position, 0), (position, size[1])], fill=GRID_COLOR)
			grid.line([(0, position), (size[0], position)], fill=GRID_COLOR)
			position += step

	overlay = PIL.Image.new("RGBA", size, (0, 0, 0, 0))
	draw = PIL.ImageDraw.Draw(overlay, "RGBA")
	for spine in scene.spines:
		rgb = fl.render.hex_to_rgb255(spine.color)
		rect = spine.rect.scaled(scale)
		draw.rectangle(
			[rect.x, rect.y, rect.right, rect.bottom],
			fill=rgb + (int(round(SPINE_FILL_ALPHA * 255)),),
			outline=rgb + (255,),
		)
		draw_lines(draw, spine.caption_lines, spine.caption, scale)
	draw_lines(draw, scene.large_text_lines, scene.large_text, scale)
	if not scene.has_artwork or artwork is None:
		font = load_font(14.0)
		draw.text((size[0] / 2.0, size[1] / 2.0), PLACEHOLDER_MESSAGE, font=font, fill=MUTED_TEXT_COLOR, anchor="mm")
	canvas.alpha_composite(overlay)
	return canvas
