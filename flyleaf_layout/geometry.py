"""
Stack geometry for books placed side by side.
"""

# Standard Library
import dataclasses

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.books
import flyleaf_layout.config
import flyleaf_layout.units


BookSpec = fl.books.BookSpec
BOOK_GAP_MM = fl.config.BOOK_GAP_MM
mm_to_px = fl.units.mm_to_px


@dataclasses.dataclass(frozen=True)
class BookPlacement:
	id: int
	index: int
	center_mm: float
	center_px: float
	spine_width_px: float
	height_px: float


@dataclasses.dataclass(frozen=True)
class StackGeometry:
	total_width_mm: float
	max_height_mm: float
	width_px: float
	height_px: float
	gap_mm: float
	per_book: tuple[BookPlacement, ...]

	def placement(self, book_id: int) -> BookPlacement:
		for placement in self.per_book:
			if placement.id == book_id:
				return placement
		raise KeyError(book_id)

	def spine_left_px(self, book_id: int) -> float:
		placement = self.placement(book_id)
		return placement.center_px - placement.spine_width_px / 2.0


#============================================
def compute_stack_geometry(
	books: tuple[BookSpec, ...] | list[BookSpec],
	gap_mm: float = BOOK_GAP_MM,
) -> StackGeometry:
	"""
	Lay out the spines left to right with a fixed gap.

	Args:
		books: Ordered book specs.
		gap_mm: Gap between neighbouring spines.

	Returns:
		StackGeometry. Pixel totals are floored at 1 px so downstream
		scale math never divides by zero.
	"""
	count = len(books)
	if count == 0:
		return StackGeometry(
			total_width_mm=0.0,
			max_height_mm=0.0,
			width_px=1.0,
			height_px=1.0,
			gap_mm=gap_mm,
			per_book=(),
		)

	total_width_mm = sum(book.spine_width_mm for book in books) + gap_mm * (count - 1)
	max_height_mm = max(book.height_mm for book in books)

	placements: list[BookPlacement] = []
	running_mm = 0.0
	for index, book in enumerate(books):
		center_mm = running_mm + book.spine_width_mm / 2.0
		placements.append(
			BookPlacement(
				id=book.id,
				index=index,
				center_mm=center_mm,
				center_px=mm_to_px(center_mm),
				spine_width_px=mm_to_px(book.spine_width_mm),
				height_px=mm_to_px(book.height_mm),
			)
		)
		running_mm += book.spine_width_mm
		if index != count - 1:
			running_mm += gap_mm

	return StackGeometry(
		total_width_mm=total_width_mm,
		max_height_mm=max_height_mm,
		width_px=max(mm_to_px(total_width_mm), 1.0),
		height_px=max(mm_to_px(max_height_mm), 1.0),
		gap_mm=gap_mm,
		per_book=tuple(placements),
	)
