"""
Proof compositor: one print page per book, assembled into a single PDF.

Each page reuses the preview's stack-space layout. The stack is shifted so
the page's own spine sits on the page center, and the pixel basis is scaled
to PDF points, so a proof matches the live preview.
"""

# Standard Library
import dataclasses
import io
import json
import math
import os
import pathlib
import tempfile
import threading

# PIP3 modules
import PIL.Image
import PIL.ImageDraw
import pypdf
import pypdf.errors
import reportlab.lib.utils
import reportlab.pdfgen.canvas

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config
import flyleaf_layout.errors
import flyleaf_layout.pipeline
import flyleaf_layout.preview
import flyleaf_layout.render
import flyleaf_layout.textfit
import flyleaf_layout.units


DerivedLayout = fl.pipeline.DerivedLayout
JobSnapshot = fl.pipeline.JobSnapshot
TextLayout = fl.textfit.TextLayout
Rect = fl.render.Rect
LinePlacement = fl.render.LinePlacement
ProofConfig = fl.config.ProofConfig
ExportResult = fl.config.ExportResult
ExportError = fl.errors.ExportError
ExportBusyError = fl.errors.ExportBusyError
mm_to_px = fl.units.mm_to_px
px_to_points = fl.units.px_to_points

LARGE_TEXT_CONFIG = fl.config.LARGE_TEXT_CONFIG
SMALL_TEXT_CONFIG = fl.config.SMALL_TEXT_CONFIG
SPINE_FILL_ALPHA = fl.config.SPINE_FILL_ALPHA
PAGE_LABEL_SIZE = fl.config.PAGE_LABEL_SIZE
TEXT_COLOR = fl.config.TEXT_COLOR
DEFAULT_FONT_REGULAR = fl.config.DEFAULT_FONT_REGULAR
PAGE_WIDTH_IN = fl.config.PAGE_WIDTH_IN
PAGE_HEIGHT_IN = fl.config.PAGE_HEIGHT_IN

NO_ARTWORK_MESSAGE = "Upload artwork before exporting proofs."
GUIDE_GRAY = (0.58, 0.64, 0.72)
LABEL_GRAY = (0.2, 0.2, 0.2)

PAGE_PLACEHOLDER_MESSAGE = "Upload artwork to populate this page preview."
PAGE_PREVIEW_BACKGROUND = (255, 255, 255, 255)
PAGE_PREVIEW_GUIDE = (148, 163, 184, 110)
PAGE_PREVIEW_INSET_PX = 16


@dataclasses.dataclass(frozen=True)
class PageBasis:
	width_px: float
	height_px: float
	width_pt: float
	height_pt: float
	scale: float


@dataclasses.dataclass(frozen=True)
class ProofPage:
	book_id: int
	index: int
	label: str
	isbn: str
	color: str
	basis: PageBasis
	center_shift_px: float
	stack_box: Rect
	artwork_rect: Rect | None
	spine: Rect
	caption: TextLayout
	caption_lines: tuple[LinePlacement, ...]
	large_text: TextLayout
	large_text_lines: tuple[LinePlacement, ...]


#============================================
def compute_page_basis(config: ProofConfig) -> PageBasis:
	"""
	Page size in the shared pixel basis and in PDF points.

	Args:
		config: Proof configuration.

	Returns:
		PageBasis whose scale maps pixels to points.
	"""
	width_px = mm_to_px(config.page_width_mm)
	height_px = mm_to_px(config.page_height_mm)
	width_pt = px_to_points(width_px)
	height_pt = px_to_points(height_px)
	return PageBasis(
		width_px=width_px,
		height_px=height_px,
		width_pt=width_pt,
		height_pt=height_pt,
		scale=width_pt / width_px,
	)


#============================================
def offset_lines(lines: tuple[LinePlacement, ...], dx: float, dy: float) -> tuple[LinePlacement, ...]:
	return tuple(
		LinePlacement(line.text, line.x + dx, line.center_y + dy, line.width)
		for line in lines
	)


#============================================
def compute_proof_pages(layout: DerivedLayout, config: ProofConfig) -> list[ProofPage]:
	"""
	Project the stack layout onto one page per book.

	Args:
		layout: Derived layout of the job.
		config: Proof configuration.

	Returns:
		ProofPage list in stack order.
	"""
	basis = compute_page_basis(config)
	stack = layout.stack
	spine_items = fl.preview.build_spine_items(layout)
	text_box = fl.preview.large_text_rect(layout)
	text_lines = tuple(
		fl.render.place_text_lines(layout.large_text, text_box, LARGE_TEXT_CONFIG, "CENTER")
	)
	artwork_stack_rect = None
	if layout.transform is not None:
		x0, y0, x1, y1 = layout.transform.bounds(stack)
		artwork_stack_rect = Rect(x0, y0, x1 - x0, y1 - y0)

	pages: list[ProofPage] = []
	for item in spine_items:
		placement = stack.placement(item.book_id)
		center_shift = stack.width_px / 2.0 - placement.center_px
		origin_x = basis.width_px / 2.0 - stack.width_px / 2.0 + center_shift
		origin_y = basis.height_px / 2.0 - stack.height_px / 2.0
		artwork_rect = None
		if artwork_stack_rect is not None:
			artwork_rect = artwork_stack_rect.offset(origin_x, origin_y)
		pages.append(
			ProofPage(
				book_id=item.book_id,
				index=item.index,
				label=item.label,
				isbn=item.isbn,
				color=item.color,
				basis=basis,
				center_shift_px=center_shift,
				stack_box=Rect(origin_x, origin_y, stack.width_px, stack.height_px),
				artwork_rect=artwork_rect,
				spine=item.rect.offset(origin_x, origin_y),
				caption=item.caption,
				caption_lines=offset_lines(item.caption_lines, origin_x, origin_y),
				large_text=layout.large_text,
				large_text_lines=offset_lines(text_lines, origin_x, origin_y),
			)
		)
	return pages


#============================================
def draw_page_guides(pdf: reportlab.pdfgen.canvas.Canvas, page: ProofPage, config: ProofConfig) -> None:
	"""
	Draw the inset frame, the center fold and the spine fold lines.

	Args:
		pdf: ReportLab canvas in the pixel basis.
		page: Proof page.
		config: Proof configuration.
	"""
	width = page.basis.width_px
	height = page.basis.height_px
	inset = config.guide_inset_px
	pdf.saveState()
	pdf.setLineWidth(1.0)
	pdf.setDash(6, 4)
	pdf.setStrokeColorRGB(*GUIDE_GRAY)
	pdf.rect(inset, inset, width - 2.0 * inset, height - 2.0 * inset, stroke=1, fill=0)
	pdf.setDash()
	pdf.line(width / 2.0, inset, width / 2.0, height - inset)
	pdf.setDash(2, 3)
	pdf.setStrokeColorRGB(*fl.render.parse_hex_color(page.color))
	for x in (page.spine.x, page.spine.right):
		pdf.line(x, 0.0, x, height)
	pdf.restoreState()


#============================================
def draw_page_label(pdf: reportlab.pdfgen.canvas.Canvas, page: ProofPage, config: ProofConfig) -> None:
	width = page.basis.width_px
	height = page.basis.height_px
	inset = config.guide_inset_px
	label = page.label
	if page.isbn:
		label = f"{label}  ISBN #{page.isbn}"
	pdf.saveState()
	pdf.setFillColorRGB(*LABEL_GRAY)
	pdf.setFont(DEFAULT_FONT_REGULAR, PAGE_LABEL_SIZE)
	baseline = height - inset - PAGE_LABEL_SIZE - 4.0
	pdf.drawString(inset + 6.0, baseline, label)
	pdf.drawRightString(width - inset - 6.0, baseline, f"{PAGE_WIDTH_IN:g}x{PAGE_HEIGHT_IN:g}\" spread")
	pdf.restoreState()


#============================================
def draw_proof_page(
	pdf: reportlab.pdfgen.canvas.Canvas,
	page: ProofPage,
	artwork_reader: reportlab.lib.utils.ImageReader | None,
	config: ProofConfig,
) -> None:
	"""
	Draw one proof page.

	Args:
		pdf: ReportLab canvas sized to the page in points.
		page: Proof page.
		artwork_reader: Shared artwork image, or None.
		config: Proof configuration.
	"""
	height = page.basis.height_px
	pdf.saveState()
	pdf.scale(page.basis.scale, page.basis.scale)
	pdf.setFillColorRGB(1.0, 1.0, 1.0)
	pdf.rect(0.0, 0.0, page.basis.width_px, height, stroke=0, fill=1)

	if artwork_reader is not None and page.artwork_rect is not None:
		rect = page.artwork_rect
		pdf.saveState()
		pdf.setFillAlpha(config.artwork_opacity)
		pdf.drawImage(
			artwork_reader,
			rect.x,
			height - rect.bottom,
			width=rect.width,
			height=rect.height,
			mask="auto",
			preserveAspectRatio=False,
			anchor="sw",
		)
		pdf.restoreState()

	red, green, blue = fl.render.parse_hex_color(page.color)
	pdf.saveState()
	pdf.setFillColorRGB(red, green, blue, alpha=SPINE_FILL_ALPHA)
	pdf.setStrokeColorRGB(red, green, blue)
	pdf.rect(page.spine.x, height - page.spine.bottom, page.spine.width, page.spine.height, stroke=1, fill=1)
	pdf.restoreState()

	if config.draw_guides:
		draw_page_guides(pdf, page, config)

	fl.render.draw_text_lines(pdf, list(page.caption_lines), page.caption, SMALL_TEXT_CONFIG, height, TEXT_COLOR)
	fl.render.draw_text_lines(
		pdf, list(page.large_text_lines), page.large_text, LARGE_TEXT_CONFIG, height, TEXT_COLOR,
	)
	draw_page_label(pdf, page, config)
	pdf.restoreState()


#============================================
def render_page_pdf(
	page: ProofPage,
	artwork_reader: reportlab.lib.utils.ImageReader | None,
	config: ProofConfig,
) -> pypdf.PageObject:
	"""
	Render a proof page into a standalone PDF page.

	Args:
		page: Proof page.
		artwork_reader: Shared artwork image, or None.
		config: Proof configuration.

	Returns:
		PDF page object.
	"""
	buffer = io.BytesIO()
	pdf = reportlab.pdfgen.canvas.Canvas(buffer, pagesize=(page.basis.width_pt, page.basis.height_pt))
	draw_proof_page(pdf, page, artwork_reader, config)
	pdf.showPage()
	pdf.save()
	buffer.seek(0)
	reader = pypdf.PdfReader(buffer)
	return reader.pages[0]


#============================================
def stage_file(output_path: pathlib.Path, suffix: str, payload: bytes) -> pathlib.Path:
	"""
	Write a payload to a temp file next to its destination.

	Args:
		output_path: Final path the temp file will replace.
		suffix: Temp file suffix.
		payload: Bytes to write.

	Returns:
		Path of the staged temp file.
	"""
	output_path.parent.mkdir(parents=True, exist_ok=True)
	handle, temp_name = tempfile.mkstemp(suffix=suffix, dir=str(output_path.parent))
	try:
		with os.fdopen(handle, "wb") as stream:
			stream.write(payload)
	except BaseException:
		pathlib.Path(temp_name).unlink(missing_ok=True)
		raise
	return pathlib.Path(temp_name)


#============================================
def commit_staged_files(staged: list[tuple[pathlib.Path, pathlib.Path]]) -> None:
	"""
	Move staged temp files into place, all or none.

	Args:
		staged: (temp_path, output_path) pairs; consumed as they are moved.
	"""
	committed: list[pathlib.Path] = []
	try:
		while staged:
			temp_path, output_path = staged[0]
			os.replace(temp_path, output_path)
			staged.pop(0)
			committed.append(output_path)
	except BaseException:
		for output_path in committed:
			output_path.unlink(missing_ok=True)
		raise


#============================================
def build_manifest(snapshot: JobSnapshot, result: ExportResult) -> dict:
	"""
	Describe an export as a JSON-ready mapping.

	Args:
		snapshot: Snapshot that was exported.
		result: Export result.

	Returns:
		Manifest mapping.
	"""
	artwork = None
	if snapshot.artwork is not None:
		artwork = {
			"name": snapshot.artwork.name,
			"mime_type": snapshot.artwork.mime_type,
			"pixel_width": snapshot.artwork.pixel_width,
			"pixel_height": snapshot.artwork.pixel_height,
		}
	return {
		"output": result.output_path,
		"pages": result.pages,
		"book_ids": result.book_ids,
		"advisories": result.advisories,
		"books": [dataclasses.asdict(book) for book in snapshot.books],
		"artwork": artwork,
		"large_text": snapshot.large_text,
		"viewport": dataclasses.asdict(snapshot.viewport),
		"margins": dataclasses.asdict(snapshot.margins),
	}


#============================================
def export_proofs(
	snapshot: JobSnapshot,
	output_path: pathlib.Path,
	config: ProofConfig = ProofConfig(),
	verbose: bool = False,
	manifest_path: pathlib.Path | None = None,
) -> ExportResult:
	"""
	Compose the proof document of a job snapshot.

	The PDF and the optional manifest are staged first and moved into
	place together; a failure leaves neither behind.

	Args:
		snapshot: Immutable job snapshot.
		output_path: Output PDF path.
		config: Proof configuration.
		verbose: Print a progress bar.
		manifest_path: Optional manifest JSON path.

	Returns:
		ExportResult.

	Raises:
		ExportError: When the artwork is missing or encoding fails.
	"""
	if snapshot.artwork is None:
		raise ExportError(NO_ARTWORK_MESSAGE)
	output_path = pathlib.Path(output_path)
	layout = fl.pipeline.derive_snapshot_layout(snapshot)
	pages = compute_proof_pages(layout, config)
	total = len(pages)
	result = ExportResult(
		output_path=str(output_path),
		pages=total,
		book_ids=[page.book_id for page in pages],
		advisories=layout.advisories(),
	)
	staged: list[tuple[pathlib.Path, pathlib.Path]] = []
	try:
		artwork_reader = reportlab.lib.utils.ImageReader(snapshot.artwork.image)
		writer = pypdf.PdfWriter()
		for index, page in enumerate(pages, start=1):
			writer.add_page(render_page_pdf(page, artwork_reader, config))
			if verbose:
				fl.render.print_progress("Pages", index, total)
		if verbose and total > 0:
			print()
		writer.add_metadata({"/Title": "Dust jacket proofs", "/Creator": "flyleaf-layout"})
		buffer = io.BytesIO()
		writer.write(buffer)
		if manifest_path is not None:
			manifest_path = pathlib.Path(manifest_path)
			text = json.dumps(build_manifest(snapshot, result), indent=2, sort_keys=True)
			staged.append((stage_file(manifest_path, ".json.tmp", text.encode("utf-8")), manifest_path))
		staged.append((stage_file(output_path, ".pdf.tmp", buffer.getvalue()), output_path))
		commit_staged_files(staged)
	except (OSError, ValueError, pypdf.errors.PyPdfError) as error:
		raise ExportError(f"Proof export failed, please retry: {error}") from error
	finally:
		for temp_path, _output in staged:
			temp_path.unlink(missing_ok=True)
	return result


class ProofExporter:
	"""
	Runs proof exports one at a time.
	"""

	def __init__(self, config: ProofConfig | None = None):
		self.config = config or ProofConfig()
		self._lock = threading.Lock()

	@property
	def busy(self) -> bool:
		return self._lock.locked()

	def export(
		self,
		snapshot: JobSnapshot,
		output_path: pathlib.Path,
		verbose: bool = False,
		manifest_path: pathlib.Path | None = None,
	) -> ExportResult:
		if not self._lock.acquire(blocking=False):
			raise ExportBusyError("An export is already in progress.")
		try:
			return export_proofs(snapshot, output_path, self.config, verbose, manifest_path)
		finally:
			self._lock.release()


#============================================
def compute_page_preview_scale(container_width: float, preview_width: float, basis: PageBasis) -> float:
	"""
	Scale of the on-screen page previews.

	Pages span the preview container; before the container is observed
	they take the width of the scaled live preview.

	Args:
		container_width: Observed container width; 0 when not yet observed.
		preview_width: Width of the scaled live preview.
		basis: Page basis.

	Returns:
		Pixels on screen per page pixel.
	"""
	width = container_width if container_width > 0.0 else preview_width
	if not math.isfinite(width) or width <= 0.0:
		width = 1.0
	return width / basis.width_px


#============================================
def render_page_preview(page: ProofPage, artwork: PIL.Image.Image | None, scale: float) -> PIL.Image.Image:
	"""
	Rasterize one proof page for on-screen review.

	Args:
		page: Proof page.
		artwork: Decoded artwork, or None for the placeholder.
		scale: Page preview scale.

	Returns:
		RGBA image of the scaled page.
	"""
	size = (
		max(int(math.ceil(round(page.basis.width_px * scale, 6))), 1),
		max(int(math.ceil(round(page.basis.height_px * scale, 6))), 1),
	)
	canvas = PIL.Image.new("RGBA", size, PAGE_PREVIEW_BACKGROUND)
	has_artwork = artwork is not None and page.artwork_rect is not None
	if has_artwork:
		fl.preview.paste_artwork(canvas, artwork, page.artwork_rect.scaled(scale))

	overlay = PIL.Image.new("RGBA", size, (0, 0, 0, 0))
	draw = PIL.ImageDraw.Draw(overlay, "RGBA")
	inset = PAGE_PREVIEW_INSET_PX
	draw.rectangle([inset, inset, size[0] - 1 - inset, size[1] - 1 - inset], outline=PAGE_PREVIEW_GUIDE)
	draw.line([(size[0] / 2.0, inset), (size[0] / 2.0, size[1] - 1 - inset)], fill=PAGE_PREVIEW_GUIDE)
	if has_artwork:
		rgb = fl.render.hex_to_rgb255(page.color)
		spine = page.spine.scaled(scale)
		draw.rectangle(
			[spine.x, spine.y, spine.right, spine.bottom],
			fill=rgb + (int(round(SPINE_FILL_ALPHA * 255)),),
			outline=rgb + (255,),
		)
		fl.preview.draw_lines(draw, page.caption_lines, page.caption, scale)
		fl.preview.draw_lines(draw, page.large_text_lines, page.large_text, scale)
	else:
		font = fl.preview.load_font(14.0)
		draw.text(
			(size[0] / 2.0, size[1] / 2.0), PAGE_PLACEHOLDER_MESSAGE,
			font=font, fill=fl.preview.MUTED_TEXT_COLOR, anchor="mm",
		)
	canvas.alpha_composite(overlay)
	return canvas
