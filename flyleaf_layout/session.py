"""
Design session: the live state of one jacket job.

The session owns the book list, the artwork slot, the large caption and the
stored viewport. Every read goes through memoized stages, so editing one
input only recomputes the stages that depend on it.
"""

# Standard Library
import asyncio
import dataclasses
import pathlib

# PIP3 modules
import PIL.Image

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.artwork
import flyleaf_layout.books
import flyleaf_layout.config
import flyleaf_layout.errors
import flyleaf_layout.geometry
import flyleaf_layout.pipeline
import flyleaf_layout.preview
import flyleaf_layout.proof
import flyleaf_layout.viewport


BookSpec = fl.books.BookSpec
BookJob = fl.books.BookJob
BookValidationError = fl.errors.BookValidationError
ArtworkAsset = fl.artwork.ArtworkAsset
ArtworkSlot = fl.artwork.ArtworkSlot
ViewportState = fl.viewport.ViewportState
Margins = fl.pipeline.Margins
MemoStage = fl.pipeline.MemoStage
ContainerObserver = fl.pipeline.ContainerObserver
DerivedLayout = fl.pipeline.DerivedLayout
JobSnapshot = fl.pipeline.JobSnapshot
PreviewScene = fl.preview.PreviewScene
ProofExporter = fl.proof.ProofExporter


class DesignSession:
	"""
	Live job state with memoized derivation.
	"""

	def __init__(
		self,
		books: list[BookSpec] | None = None,
		large_text: str = "",
		viewport: ViewportState | None = None,
		margins: Margins | None = None,
		exporter: ProofExporter | None = None,
	):
		self.job = BookJob(books)
		self.artwork = ArtworkSlot()
		self.large_text = large_text
		self.margins = margins or Margins()
		self.exporter = exporter or ProofExporter()
		self.container_size = (0.0, 0.0)
		self._viewport = viewport or ViewportState()
		self._subscription: fl.pipeline.Subscription | None = None
		self._geometry = MemoStage("geometry", fl.geometry.compute_stack_geometry)
		self._fit = MemoStage("fit", fl.pipeline.fit_artwork)
		self._limits = MemoStage("limits", fl.viewport.compute_viewport_limits)
		self._transform = MemoStage("transform", fl.viewport.compute_artwork_transform)
		self._large_text = MemoStage("large_text", fl.pipeline.autofit_large_text)
		self._spine_texts: dict[int, MemoStage] = {}
		self._scene = MemoStage("preview_scene", fl.preview.build_preview_scene)

	def __enter__(self) -> "DesignSession":
		return self

	def __exit__(self, exc_type, exc_value, traceback) -> None:
		self.close()

	@property
	def stages(self) -> dict[str, MemoStage]:
		return {
			stage.name: stage
			for stage in (self._geometry, self._fit, self._limits, self._transform, self._large_text, self._scene)
		}

	def spine_text_stage(self, book_id: int) -> MemoStage:
		stage = self._spine_texts.get(book_id)
		if stage is None:
			stage = MemoStage(f"spine_text_{book_id}", fl.pipeline.autofit_spine_text)
			self._spine_texts[book_id] = stage
		return stage

	#============================================
	def layout(self) -> DerivedLayout:
		"""
		Derive the current layout and re-clamp the stored viewport.

		Returns:
			DerivedLayout.
		"""
		books = self.job.books
		margins = self.margins
		stack = self._geometry(books, margins.gap_mm)
		asset = self.artwork.asset
		artwork_size = None
		if asset is not None:
			artwork_size = (asset.pixel_width, asset.pixel_height)
		fit = self._fit(stack, artwork_size, margins)
		limits = self._limits(fit)
		self._viewport = fl.viewport.clamp_viewport(self._viewport, stack, fit, limits, margins.top_margin_mm)
		transform = self._transform(self._viewport, stack, fit, margins.wrap_margin_mm, margins.top_margin_mm)
		large_text = self._large_text(self.large_text, stack, margins.top_margin_mm)

		spine_texts = {book.id: self.spine_text_stage(book.id)(book) for book in books}
		for stale_id in set(self._spine_texts) - set(spine_texts):
			del self._spine_texts[stale_id]

		return DerivedLayout(
			books=books,
			margins=margins,
			stack=stack,
			fit=fit,
			limits=limits,
			viewport=self._viewport,
			transform=transform,
			large_text=large_text,
			spine_texts=spine_texts,
		)

	@property
	def viewport(self) -> ViewportState:
		return self.layout().viewport

	def advisories(self) -> list[str]:
		messages: list[str] = []
		if self.artwork.notice:
			messages.append(self.artwork.notice)
		messages.extend(self.layout().advisories())
		return messages

	#============================================
	def add_book(self, **fields) -> BookSpec:
		book = self.job.add_book(**fields)
		self.layout()
		return book

	def update_book(self, book_id: int, field_name: str, value) -> BookSpec:
		book = self.job.update_book(book_id, field_name, value)
		self.layout()
		return book

	def remove_book(self, book_id: int) -> None:
		self.job.remove_book(book_id)
		self.layout()

	def set_large_text(self, text: str) -> None:
		self.large_text = text
		self.layout()

	def set_margins(self, margins: Margins) -> None:
		self.margins = margins
		self.layout()

	#============================================
	def set_zoom(self, zoom_percent: float) -> ViewportState:
		"""
		Store a new zoom; it is clamped into the current limits.

		Args:
			zoom_percent: Requested zoom.

		Returns:
			Clamped ViewportState.
		"""
		self._viewport = dataclasses.replace(self._viewport, zoom_percent=float(zoom_percent))
		return self.layout().viewport

	def set_offset_x(self, offset_percent: float) -> ViewportState:
		self._viewport = dataclasses.replace(self._viewport, offset_x_percent=float(offset_percent))
		return self.layout().viewport

	def set_offset_y(self, offset_percent: float) -> ViewportState:
		self._viewport = dataclasses.replace(self._viewport, offset_y_percent=float(offset_percent))
		return self.layout().viewport

	def reset_viewport(self) -> ViewportState:
		layout = self.layout()
		self._viewport = fl.viewport.reset_viewport(layout.viewport, layout.limits)
		return self.layout().viewport

	#============================================
	def mount(self, observer: ContainerObserver) -> None:
		"""
		Follow the size of a preview container.

		Args:
			observer: Container observer; replaces any previous one.
		"""
		self.unmount()
		self._subscription = observer.observe(self._on_resize)

	def unmount(self) -> None:
		if self._subscription is not None:
			self._subscription.disconnect()
			self._subscription = None

	def _on_resize(self, width: float, height: float) -> None:
		self.container_size = (width, height)

	def preview_scene(self) -> PreviewScene:
		width, height = self.container_size
		return self._scene(self.layout(), width, height)

	def render_preview(self) -> PIL.Image.Image:
		scene = self.preview_scene()
		asset = self.artwork.asset
		image = asset.image if asset is not None else None
		return fl.preview.render_preview_image(scene, image)

	def proof_pages(self) -> list[fl.proof.ProofPage]:
		return fl.proof.compute_proof_pages(self.layout(), self.exporter.config)

	def page_preview_scale(self) -> float:
		scene = self.preview_scene()
		basis = fl.proof.compute_page_basis(self.exporter.config)
		preview_width = scene.stack_width_px * scene.preview_scale
		return fl.proof.compute_page_preview_scale(self.container_size[0], preview_width, basis)

	#============================================
	def render_page_previews(self) -> list[PIL.Image.Image]:
		"""
		Rasterize every book's proof page at the page preview scale.

		Returns:
			One RGBA image per book, in stack order.
		"""
		scale = self.page_preview_scale()
		asset = self.artwork.asset
		image = asset.image if asset is not None else None
		return [fl.proof.render_page_preview(page, image, scale) for page in self.proof_pages()]

	#============================================
	def load_artwork(self, data: bytes, name: str, mime_type: str | None = None) -> ArtworkAsset:
		asset = fl.artwork.load_artwork(self.artwork, data, name, mime_type)
		self.layout()
		return asset

	def load_artwork_reference(self, reference: str) -> ArtworkAsset:
		"""
		Fetch and install artwork from a URL or a local path.

		Args:
			reference: http(s) URL or filesystem path.

		Returns:
			The installed asset.
		"""
		asset = fl.artwork.load_artwork_reference(self.artwork, reference)
		self.layout()
		return asset

	async def acquire_artwork(self, data: bytes, name: str, mime_type: str | None = None) -> ArtworkAsset | None:
		asset = await fl.artwork.acquire_artwork(self.artwork, data, name, mime_type)
		self.layout()
		return asset

	async def acquire_artwork_reference(self, reference: str) -> ArtworkAsset | None:
		asset = await fl.artwork.acquire_artwork_reference(self.artwork, reference)
		self.layout()
		return asset

	#============================================
	def snapshot(self) -> JobSnapshot:
		"""
		Copy the job inputs for an export.

		The snapshot holds its own reference to the artwork; release it
		once the export is done.

		Returns:
			JobSnapshot.
		"""
		viewport = self.layout().viewport
		asset = self.artwork.asset
		if asset is not None:
			asset.retain()
		return JobSnapshot(
			books=self.job.books,
			artwork=asset,
			viewport=viewport,
			large_text=self.large_text,
			margins=self.margins,
		)

	def _export_and_release(
		self,
		snapshot: JobSnapshot,
		output_path: pathlib.Path,
		manifest_path: pathlib.Path | None,
		verbose: bool,
	) -> fl.config.ExportResult:
		# the snapshot is released by whoever runs the export, never by a waiter
		try:
			if manifest_path is not None:
				manifest_path = pathlib.Path(manifest_path)
			return self.exporter.export(snapshot, pathlib.Path(output_path), verbose, manifest_path)
		finally:
			snapshot.release()

	def export(
		self,
		output_path: pathlib.Path,
		manifest_path: pathlib.Path | None = None,
		verbose: bool = False,
	) -> fl.config.ExportResult:
		"""
		Export one proof page per book.

		Args:
			output_path: Output PDF path.
			manifest_path: Optional manifest JSON path.
			verbose: Print a progress bar.

		Returns:
			ExportResult.
		"""
		snapshot = self.snapshot()
		return self._export_and_release(snapshot, output_path, manifest_path, verbose)

	async def export_async(
		self,
		output_path: pathlib.Path,
		manifest_path: pathlib.Path | None = None,
	) -> fl.config.ExportResult:
		"""
		Export in a worker thread.

		Cancelling the caller does not stop a running export; the worker
		finishes and releases its snapshot on its own.

		Args:
			output_path: Output PDF path.
			manifest_path: Optional manifest JSON path.

		Returns:
			ExportResult.
		"""
		snapshot = self.snapshot()
		worker = asyncio.ensure_future(
			asyncio.to_thread(self._export_and_release, snapshot, output_path, manifest_path, False)
		)
		return await asyncio.shield(worker)

	def close(self) -> None:
		self.unmount()
		self.artwork.teardown()


#============================================
def book_from_entry(book_id: int, entry: dict) -> BookSpec:
	"""
	Build a BookSpec from a job file entry.

	Args:
		book_id: Id to assign.
		entry: Mapping of BookSpec field names to values.

	Returns:
		Validated BookSpec.
	"""
	fields = {}
	for key, value in entry.items():
		if key == "id":
			continue
		if key in fl.books.DIMENSION_FIELDS:
			try:
				fields[key] = float(value)
			except (TypeError, ValueError):
				raise BookValidationError(f"{key.replace('_', ' ')} must be a number.") from None
		elif key in fl.books.TEXT_FIELDS:
			fields[key] = str(value)
		else:
			raise BookValidationError(f"Unknown book field: {key}")
	book = BookSpec(id=book_id, **fields)
	fl.books.validate_book(book)
	return book


#============================================
def session_from_job(data: dict, exporter: ProofExporter | None = None) -> DesignSession:
	"""
	Create a session from a parsed job file.

	Args:
		data: Job mapping with books, large_text and viewport.
		exporter: Optional exporter.

	Returns:
		DesignSession without artwork.
	"""
	entries = data.get("books") or []
	if len(entries) > fl.books.MAX_BOOKS:
		raise BookValidationError(f"A job can hold at most {fl.books.MAX_BOOKS} books.")
	books = [book_from_entry(index + 1, entry) for index, entry in enumerate(entries)]
	viewport_data = data.get("viewport") or {}
	viewport = ViewportState(
		zoom_percent=float(viewport_data.get("zoom_percent", fl.viewport.DEFAULT_ZOOM_PERCENT)),
		offset_x_percent=float(viewport_data.get("offset_x_percent", 0.0)),
		offset_y_percent=float(viewport_data.get("offset_y_percent", 0.0)),
	)
	return DesignSession(
		books=books or None,
		large_text=str(data.get("large_text", "")),
		viewport=viewport,
		exporter=exporter,
	)
