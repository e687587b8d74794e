import pytest

import flyleaf_layout.books
import flyleaf_layout.errors


BookJob = flyleaf_layout.books.BookJob
BookValidationError = flyleaf_layout.errors.BookValidationError


#============================================
def test_new_job_holds_one_default_book() -> None:
	"""
	A fresh job starts with one book at the default measurements.
	"""
	job = BookJob()
	assert len(job) == 1
	book = job.books[0]
	assert book.spine_width_mm == 30.0
	assert book.cover_width_mm == 140.0
	assert book.height_mm == 210.0
	assert book.color == "#1d4ed8"


#============================================
def test_ids_stay_unique_after_removal() -> None:
	"""
	Ids are never reused inside a job.
	"""
	job = BookJob()
	second = job.add_book()
	job.remove_book(second.id)
	third = job.add_book()
	assert third.id != second.id
	assert len({book.id for book in job.books}) == len(job)


#============================================
def test_add_rejected_at_cap() -> None:
	"""
	Adding past the book cap raises.
	"""
	job = BookJob(max_books=3)
	job.add_book()
	job.add_book()
	with pytest.raises(BookValidationError):
		job.add_book()
	assert len(job) == 3


#============================================
def test_supplied_books_need_unique_ids() -> None:
	"""
	A job built from existing books refuses repeated ids.
	"""
	BookSpec = flyleaf_layout.books.BookSpec
	with pytest.raises(BookValidationError, match="Duplicate book id"):
		BookJob([BookSpec(id=1), BookSpec(id=1)])
	job = BookJob([BookSpec(id=4), BookSpec(id=9)])
	assert job.add_book().id == 10


#============================================
def test_supplied_books_respect_cap() -> None:
	"""
	A job built from existing books cannot start above the cap.
	"""
	BookSpec = flyleaf_layout.books.BookSpec
	books = [BookSpec(id=index + 1) for index in range(60)]
	with pytest.raises(BookValidationError, match="at most 50"):
		BookJob(books)
	with pytest.raises(BookValidationError):
		BookJob(books[:4], max_books=3)
	assert len(BookJob(books[:3], max_books=3)) == 3


#============================================
@pytest.mark.parametrize(
	"field_name, value",
	[
		("height_mm", 300.0),
		("spine_width_mm", 0.0),
		("cover_width_mm", 190.0),
		("spine_width_mm", "abc"),
		("height_mm", float("nan")),
	],
)
def test_invalid_update_leaves_book_unchanged(field_name: str, value) -> None:
	"""
	A rejected dimension edit keeps the previous value.
	"""
	job = BookJob()
	book_id = job.books[0].id
	before = job.get(book_id)
	revision = job.revision
	with pytest.raises(BookValidationError):
		job.update_book(book_id, field_name, value)
	assert job.get(book_id) == before
	assert job.revision == revision


#============================================
def test_update_replaces_entry_with_same_id() -> None:
	"""
	Updates accept numeric strings and keep the id.
	"""
	job = BookJob()
	book_id = job.books[0].id
	updated = job.update_book(book_id, "spine_width_mm", "42.5")
	assert updated.id == book_id
	assert job.get(book_id).spine_width_mm == 42.5
	job.update_book(book_id, "small_text", "Volume one")
	assert job.get(book_id).small_text == "Volume one"
	with pytest.raises(BookValidationError):
		job.update_book(book_id, "weight", 3)


#============================================
def test_remove_last_book_rejected() -> None:
	"""
	A job always keeps at least one book.
	"""
	job = BookJob()
	with pytest.raises(BookValidationError):
		job.remove_book(job.books[0].id)
	assert len(job) == 1


#============================================
def test_display_label_falls_back_to_position() -> None:
	"""
	Empty short text shows as Book N.
	"""
	job = BookJob()
	book = job.add_book(short_text="  Atlas ")
	assert flyleaf_layout.books.display_label(job.books[0], 0) == "Book 1"
	assert flyleaf_layout.books.display_label(book, 1) == "Atlas"
