"""
Derivation pipeline shared by the live preview and the proof export.

Geometry, artwork fit, viewport clamping and text autofit are pure stages.
The live session wraps each stage in a MemoStage so it only recomputes when
its inputs change; the exporter runs the same stages once on a snapshot.
"""

# Standard Library
import dataclasses
import typing

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.artwork
import flyleaf_layout.books
import flyleaf_layout.config
import flyleaf_layout.geometry
import flyleaf_layout.textfit
import flyleaf_layout.units
import flyleaf_layout.viewport


BookSpec = fl.books.BookSpec
ArtworkAsset = fl.artwork.ArtworkAsset
StackGeometry = fl.geometry.StackGeometry
TextLayout = fl.textfit.TextLayout
ViewportState = fl.viewport.ViewportState
ArtworkFit = fl.viewport.ArtworkFit
ViewportLimits = fl.viewport.ViewportLimits
ArtworkTransform = fl.viewport.ArtworkTransform
mm_to_px = fl.units.mm_to_px

BOOK_GAP_MM = fl.config.BOOK_GAP_MM
WRAP_MARGIN_MM = fl.config.WRAP_MARGIN_MM
TOP_MARGIN_MM = fl.config.TOP_MARGIN_MM
LARGE_TEXT_CONFIG = fl.config.LARGE_TEXT_CONFIG
SMALL_TEXT_CONFIG = fl.config.SMALL_TEXT_CONFIG

_MISSING = object()


@dataclasses.dataclass(frozen=True)
class Margins:
	gap_mm: float = BOOK_GAP_MM
	wrap_margin_mm: float = WRAP_MARGIN_MM
	top_margin_mm: float = TOP_MARGIN_MM


@dataclasses.dataclass(frozen=True)
class DerivedLayout:
	books: tuple[BookSpec, ...]
	margins: Margins
	stack: StackGeometry
	fit: ArtworkFit | None
	limits: ViewportLimits
	viewport: ViewportState
	transform: ArtworkTransform | None
	large_text: TextLayout
	spine_texts: dict[int, TextLayout]

	@property
	def top_margin_px(self) -> float:
		return mm_to_px(self.margins.top_margin_mm)

	def advisories(self) -> list[str]:
		messages: list[str] = []
		if self.limits.advisory:
			messages.append(self.limits.advisory)
		if self.large_text.advisory:
			messages.append(self.large_text.advisory)
		for index, book in enumerate(self.books):
			layout = self.spine_texts.get(book.id)
			if layout is not None and layout.advisory:
				messages.append(f"Book {index + 1}: {layout.advisory}")
		return messages


@dataclasses.dataclass(frozen=True)
class JobSnapshot:
	"""
	Immutable copy of the job inputs taken when an export starts.

	The snapshot retains the artwork so a concurrent replacement cannot
	close the pixels mid-export; call release() when done.
	"""

	books: tuple[BookSpec, ...]
	artwork: ArtworkAsset | None
	viewport: ViewportState
	large_text: str
	margins: Margins = Margins()

	def release(self) -> None:
		if self.artwork is not None:
			self.artwork.release()


class MemoStage:
	"""
	Pure stage that caches its last result until an input changes.
	"""

	def __init__(self, name: str, func: typing.Callable):
		self.name = name
		self.func = func
		self.computations = 0
		self._args: typing.Any = _MISSING
		self._value: typing.Any = None

	def __call__(self, *args):
		if self._args is not _MISSING and len(args) == len(self._args):
			if all(new is old or new == old for new, old in zip(args, self._args)):
				return self._value
		self._value = self.func(*args)
		self._args = args
		self.computations += 1
		return self._value

	def invalidate(self) -> None:
		self._args = _MISSING
		self._value = None


class Subscription:
	"""
	Handle for a container observer callback; disconnect to stop updates.
	"""

	def __init__(self, observer: "ContainerObserver", callback: typing.Callable[[float, float], None]):
		self._observer = observer
		self._callback = callback
		self.active = True

	def disconnect(self) -> None:
		if self.active:
			self._observer._remove(self._callback)
			self.active = False

	def __enter__(self) -> "Subscription":
		return self

	def __exit__(self, exc_type, exc_value, traceback) -> None:
		self.disconnect()


class ContainerObserver:
	"""
	Pushes container size changes to subscribed callbacks.
	"""

	def __init__(self, width: float = 0.0, height: float = 0.0):
		self.width = width
		self.height = height
		self._callbacks: list[typing.Callable[[float, float], None]] = []

	def observe(self, callback: typing.Callable[[float, float], None]) -> Subscription:
		self._callbacks.append(callback)
		callback(self.width, self.height)
		return Subscription(self, callback)

	def resize(self, width: float, height: float) -> None:
		if (width, height) == (self.width, self.height):
			return
		self.width = width
		self.height = height
		for callback in list(self._callbacks):
			callback(width, height)

	def _remove(self, callback: typing.Callable[[float, float], None]) -> None:
		if callback in self._callbacks:
			self._callbacks.remove(callback)

	@property
	def subscriber_count(self) -> int:
		return len(self._callbacks)


#============================================
def large_text_box(stack: StackGeometry, top_margin_mm: float) -> tuple[float, float]:
	"""
	Box available to the cross-spine caption.

	Args:
		stack: Stack geometry.
		top_margin_mm: Headroom above the tallest book.

	Returns:
		Tuple of (width_px, height_px).
	"""
	width = max(stack.width_px, 1.0)
	height = max(stack.height_px - mm_to_px(top_margin_mm), 1.0)
	return (width, height)


#============================================
def spine_text_box(book: BookSpec) -> tuple[float, float]:
	"""
	Box available to a spine caption, before padding.

	Args:
		book: Book spec.

	Returns:
		Tuple of (width_px, height_px).
	"""
	width = mm_to_px(book.spine_width_mm)
	height = max(mm_to_px(book.height_mm - SMALL_TEXT_CONFIG.bottom_offset_mm), 1.0)
	return (width, height)


#============================================
def autofit_large_text(text: str, stack: StackGeometry, top_margin_mm: float) -> TextLayout:
	width, height = large_text_box(stack, top_margin_mm)
	return fl.textfit.autofit_field(text, width, height, LARGE_TEXT_CONFIG)


#============================================
def autofit_spine_text(book: BookSpec) -> TextLayout:
	width, height = spine_text_box(book)
	return fl.textfit.autofit_field(book.small_text, width, height, SMALL_TEXT_CONFIG)


#============================================
def fit_artwork(stack: StackGeometry, artwork_size: tuple[int, int] | None, margins: Margins) -> ArtworkFit | None:
	if artwork_size is None:
		return None
	return fl.viewport.compute_artwork_fit(
		stack, artwork_size[0], artwork_size[1], margins.wrap_margin_mm, margins.top_margin_mm,
	)


#============================================
def derive_layout(
	books: tuple[BookSpec, ...],
	artwork_size: tuple[int, int] | None,
	viewport: ViewportState,
	large_text: str,
	margins: Margins = Margins(),
) -> DerivedLayout:
	"""
	Run every stage once, without caching.

	Args:
		books: Ordered book specs.
		artwork_size: Native (width, height) of the artwork, or None.
		viewport: Stored viewport state; it is clamped here.
		large_text: Cross-spine caption.
		margins: Gap and margin constants.

	Returns:
		DerivedLayout.
	"""
	stack = fl.geometry.compute_stack_geometry(books, margins.gap_mm)
	fit = fit_artwork(stack, artwork_size, margins)
	limits = fl.viewport.compute_viewport_limits(fit)
	clamped = fl.viewport.clamp_viewport(viewport, stack, fit, limits, margins.top_margin_mm)
	transform = fl.viewport.compute_artwork_transform(
		clamped, stack, fit, margins.wrap_margin_mm, margins.top_margin_mm,
	)
	spine_texts = {book.id: autofit_spine_text(book) for book in books}
	return DerivedLayout(
		books=tuple(books),
		margins=margins,
		stack=stack,
		fit=fit,
		limits=limits,
		viewport=clamped,
		transform=transform,
		large_text=autofit_large_text(large_text, stack, margins.top_margin_mm),
		spine_texts=spine_texts,
	)


#============================================
def derive_snapshot_layout(snapshot: JobSnapshot) -> DerivedLayout:
	"""
	Derive the layout of an export snapshot.

	Args:
		snapshot: Job snapshot.

	Returns:
		DerivedLayout.
	"""
	artwork_size = None
	if snapshot.artwork is not None:
		artwork_size = (snapshot.artwork.pixel_width, snapshot.artwork.pixel_height)
	return derive_layout(
		snapshot.books,
		artwork_size,
		snapshot.viewport,
		snapshot.large_text,
		snapshot.margins,
	)
