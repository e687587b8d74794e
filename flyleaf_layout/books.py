"""
Book specs and the ordered book list of a jacket job.
"""

# Standard Library
import dataclasses
import itertools
import math

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config
import flyleaf_layout.errors


BookValidationError = fl.errors.BookValidationError

MAX_BOOKS = fl.config.MAX_BOOKS
MAX_BOOK_HEIGHT_MM = fl.config.MAX_BOOK_HEIGHT_MM
MAX_JACKET_WIDTH_MM = fl.config.MAX_JACKET_WIDTH_MM
DEFAULT_SPINE_WIDTH_MM = fl.config.DEFAULT_SPINE_WIDTH_MM
DEFAULT_COVER_WIDTH_MM = fl.config.DEFAULT_COVER_WIDTH_MM
DEFAULT_HEIGHT_MM = fl.config.DEFAULT_HEIGHT_MM
DEFAULT_BOOK_COLOR = fl.config.DEFAULT_BOOK_COLOR

DIMENSION_FIELDS = ("spine_width_mm", "cover_width_mm", "height_mm")
TEXT_FIELDS = ("color", "short_text", "small_text", "isbn")


@dataclasses.dataclass(frozen=True)
class BookSpec:
	id: int
	spine_width_mm: float = DEFAULT_SPINE_WIDTH_MM
	cover_width_mm: float = DEFAULT_COVER_WIDTH_MM
	height_mm: float = DEFAULT_HEIGHT_MM
	color: str = DEFAULT_BOOK_COLOR
	short_text: str = ""
	small_text: str = ""
	isbn: str = ""

	@property
	def jacket_width_mm(self) -> float:
		return self.spine_width_mm + 2.0 * self.cover_width_mm


#============================================
def display_label(book: BookSpec, index: int) -> str:
	"""
	Label shown under a spine in previews and proofs.

	Args:
		book: Book spec.
		index: Zero-based position in the stack.

	Returns:
		Trimmed short text, or "Book N" when empty.
	"""
	label = book.short_text.strip()
	if label:
		return label
	return f"Book {index + 1}"


#============================================
def validate_book(book: BookSpec) -> None:
	"""
	Check the physical limits of a book.

	Args:
		book: Book spec to check.

	Raises:
		BookValidationError: When a dimension is out of range.
	"""
	for field_name in DIMENSION_FIELDS:
		value = getattr(book, field_name)
		if not math.isfinite(value) or value <= 0.0:
			raise BookValidationError(f"{field_name.replace('_', ' ')} must be a positive number.")
	if book.height_mm > MAX_BOOK_HEIGHT_MM:
		raise BookValidationError(f"Book height cannot exceed {MAX_BOOK_HEIGHT_MM:g} mm.")
	if book.jacket_width_mm > MAX_JACKET_WIDTH_MM:
		raise BookValidationError(
			f"Spine plus both covers cannot exceed {MAX_JACKET_WIDTH_MM:g} mm."
		)


class BookJob:
	"""
	Ordered list of books sharing one jacket artwork.

	The job owns its id allocator, always holds at least one book and never
	more than max_books.
	"""

	def __init__(self, books: list[BookSpec] | None = None, max_books: int = MAX_BOOKS):
		self.max_books = max_books
		self._ids = itertools.count(1)
		self._books: list[BookSpec] = []
		self.revision = 0
		if books:
			if len(books) > max_books:
				raise BookValidationError(f"A job can hold at most {max_books} books.")
			seen: set[int] = set()
			for book in books:
				if book.id in seen:
					raise BookValidationError(f"Duplicate book id: {book.id}")
				seen.add(book.id)
				validate_book(book)
			self._books = list(books)
			# keep allocating above any id supplied by the caller
			start = max(book.id for book in self._books) + 1
			self._ids = itertools.count(start)
		else:
			self._books = [BookSpec(id=next(self._ids))]

	@property
	def books(self) -> tuple[BookSpec, ...]:
		return tuple(self._books)

	def __len__(self) -> int:
		return len(self._books)

	def get(self, book_id: int) -> BookSpec:
		for book in self._books:
			if book.id == book_id:
				return book
		raise KeyError(book_id)

	def _index_of(self, book_id: int) -> int:
		for index, book in enumerate(self._books):
			if book.id == book_id:
				return index
		raise KeyError(book_id)

	#============================================
	def add_book(self, **fields) -> BookSpec:
		"""
		Append a new book with default measurements.

		Args:
			**fields: Optional field overrides.

		Returns:
			The new BookSpec.

		Raises:
			BookValidationError: At the book cap or on invalid overrides.
		"""
		if len(self._books) >= self.max_books:
			raise BookValidationError(f"A job can hold at most {self.max_books} books.")
		book = BookSpec(id=next(self._ids), **fields)
		validate_book(book)
		self._books.append(book)
		self.revision += 1
		return book

	#============================================
	def update_book(self, book_id: int, field_name: str, value) -> BookSpec:
		"""
		Update one field of a book.

		The stored book is left untouched when the new value is rejected.

		Args:
			book_id: Book id.
			field_name: BookSpec field name.
			value: New value; dimensions accept numbers or numeric strings.

		Returns:
			The updated BookSpec.
		"""
		index = self._index_of(book_id)
		current = self._books[index]
		if field_name in DIMENSION_FIELDS:
			try:
				numeric = float(value)
			except (TypeError, ValueError):
				raise BookValidationError(f"{field_name.replace('_', ' ')} must be a number.") from None
			updated = dataclasses.replace(current, **{field_name: numeric})
			validate_book(updated)
		elif field_name in TEXT_FIELDS:
			updated = dataclasses.replace(current, **{field_name: str(value)})
		else:
			raise BookValidationError(f"Unknown book field: {field_name}")
		self._books[index] = updated
		self.revision += 1
		return updated

	#============================================
	def remove_book(self, book_id: int) -> None:
		"""
		Remove a book from the job.

		Args:
			book_id: Book id.

		Raises:
			BookValidationError: When it is the last remaining book.
		"""
		index = self._index_of(book_id)
		if len(self._books) <= 1:
			raise BookValidationError("A job needs at least one book.")
		del self._books[index]
		self.revision += 1
