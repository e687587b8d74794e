import asyncio
import json
import pathlib
import threading

import fitz
import PIL.Image
import pypdf
import pytest

import flyleaf_layout.config
import flyleaf_layout.errors
import flyleaf_layout.proof
import flyleaf_layout.session

from conftest import make_png_bytes


ProofConfig = flyleaf_layout.config.ProofConfig
DesignSession = flyleaf_layout.session.DesignSession

DPI = 36
TOLERANCE = 1e-6


#============================================
def build_session(artwork_png: bytes | None, spines: list[float]) -> DesignSession:
	"""
	Build a session with the given spine widths and optional artwork.
	"""
	session = DesignSession()
	first_id = session.job.books[0].id
	session.update_book(first_id, "spine_width_mm", spines[0])
	for spine in spines[1:]:
		session.add_book(spine_width_mm=spine)
	if artwork_png is not None:
		session.load_artwork(artwork_png, "art.png", "image/png")
	return session


#============================================
def _render_pdf_page(path: pathlib.Path, index: int) -> PIL.Image.Image:
	"""
	Render one PDF page to an image.

	Args:
		path: PDF path.
		index: Page index.

	Returns:
		PIL image.
	"""
	document = fitz.open(path)
	page = document[index]
	scale = DPI / 72.0
	pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
	image = PIL.Image.frombytes("RGB", [pixmap.width, pixmap.height], pixmap.samples)
	document.close()
	return image


#============================================
def test_page_basis_matches_tabloid() -> None:
	"""
	The page basis maps 17x11 in pixels onto 1224x792 points.
	"""
	basis = flyleaf_layout.proof.compute_page_basis(ProofConfig())
	assert basis.width_pt == pytest.approx(1224.0)
	assert basis.height_pt == pytest.approx(792.0)
	assert basis.width_px == pytest.approx(1632.0, abs=1e-4)
	assert basis.scale == pytest.approx(0.75, abs=1e-9)


#============================================
def test_each_page_centers_its_spine(artwork_png: bytes) -> None:
	"""
	Every proof page puts its own spine on the page center line.
	"""
	session = build_session(artwork_png, [30.0, 40.0, 22.0])
	pages = flyleaf_layout.proof.compute_proof_pages(session.layout(), ProofConfig())
	assert [page.book_id for page in pages] == [book.id for book in session.job.books]
	for page in pages:
		center = page.spine.x + page.spine.width / 2.0
		assert center == pytest.approx(page.basis.width_px / 2.0)


#============================================
def test_artwork_matches_preview_relative_to_spines(artwork_png: bytes) -> None:
	"""
	Artwork sits at the same place relative to each spine in preview and proof.
	"""
	session = build_session(artwork_png, [30.0, 40.0, 22.0])
	session.set_zoom(150)
	session.set_offset_x(-60)
	session.set_offset_y(40)
	layout = session.layout()
	scene = session.preview_scene()
	pages = flyleaf_layout.proof.compute_proof_pages(layout, ProofConfig())
	for item, page in zip(scene.spines, pages):
		preview_dx = scene.artwork_rect.x - item.rect.x
		preview_dy = scene.artwork_rect.y - item.rect.y
		proof_dx = page.artwork_rect.x - page.spine.x
		proof_dy = page.artwork_rect.y - page.spine.y
		assert proof_dx == pytest.approx(preview_dx, abs=TOLERANCE)
		assert proof_dy == pytest.approx(preview_dy, abs=TOLERANCE)
		assert page.artwork_rect.width == pytest.approx(scene.artwork_rect.width)


#============================================
def test_export_writes_one_page_per_book(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	The exported PDF has one tabloid page per book, and a manifest.
	"""
	session = build_session(artwork_png, [30.0, 40.0])
	output_pdf = tmp_path / "proofs.pdf"
	manifest = tmp_path / "proofs.json"
	result = session.export(output_pdf, manifest)
	assert result.pages == 2
	reader = pypdf.PdfReader(str(output_pdf))
	assert len(reader.pages) == 2
	box = reader.pages[0].mediabox
	assert float(box.width) == pytest.approx(1224.0, abs=0.01)
	assert float(box.height) == pytest.approx(792.0, abs=0.01)

	data = json.loads(manifest.read_text(encoding="utf-8"))
	assert data["pages"] == 2
	assert data["book_ids"] == result.book_ids
	assert data["artwork"]["pixel_width"] == 330

	session.remove_book(session.job.books[-1].id)
	result = session.export(output_pdf)
	assert result.pages == 1
	assert len(pypdf.PdfReader(str(output_pdf)).pages) == 1


#============================================
def test_exported_page_shows_artwork(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	The page center is painted with artwork; the page corner stays white.
	"""
	session = build_session(artwork_png, [30.0])
	output_pdf = tmp_path / "proof.pdf"
	session.export(output_pdf)
	image = _render_pdf_page(output_pdf, 0)
	width, height = image.size
	red, green, blue = image.getpixel((width // 2 + 6, height // 2 + height // 8))
	assert red > 120 and red > green + 40
	assert image.getpixel((2, height - 3)) == (255, 255, 255)


#============================================
def test_export_without_artwork_fails(tmp_path: pathlib.Path) -> None:
	"""
	Exports need artwork and leave no file behind.
	"""
	session = build_session(None, [30.0])
	output_pdf = tmp_path / "proof.pdf"
	with pytest.raises(flyleaf_layout.errors.ExportError, match="Upload artwork"):
		session.export(output_pdf)
	assert not output_pdf.exists()


#============================================
def test_second_export_is_rejected_while_busy(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	A concurrent export is refused instead of queued.
	"""
	session = build_session(artwork_png, [30.0])
	exporter = session.exporter
	snapshot = session.snapshot()
	exporter._lock.acquire()
	try:
		assert exporter.busy
		with pytest.raises(flyleaf_layout.errors.ExportBusyError):
			exporter.export(snapshot, tmp_path / "busy.pdf")
	finally:
		exporter._lock.release()
		snapshot.release()
	assert not (tmp_path / "busy.pdf").exists()
	assert not exporter.busy


#============================================
def test_snapshot_is_isolated_from_later_edits(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	Edits after a snapshot do not change what it exports.
	"""
	session = build_session(artwork_png, [30.0, 40.0])
	snapshot = session.snapshot()
	session.add_book()
	result = flyleaf_layout.proof.export_proofs(snapshot, tmp_path / "snap.pdf")
	snapshot.release()
	assert result.pages == 2
	assert len(session.job) == 3


#============================================
def test_async_export_releases_snapshot(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	The async export runs in a worker thread and releases its snapshot.
	"""
	session = build_session(artwork_png, [30.0, 40.0])
	asset = session.artwork.asset
	result = asyncio.run(session.export_async(tmp_path / "async.pdf"))
	assert result.pages == 2
	session.close()
	assert asset.closed


class GatedExporter(flyleaf_layout.proof.ProofExporter):
	"""
	Exporter that holds each export until the test opens the gate.
	"""

	def __init__(self):
		super().__init__()
		self.started = threading.Event()
		self.gate = threading.Event()
		self.errors: list[Exception] = []

	def export(self, snapshot, output_path, verbose=False, manifest_path=None):
		self.started.set()
		self.gate.wait(timeout=10)
		try:
			return super().export(snapshot, output_path, verbose, manifest_path)
		except flyleaf_layout.errors.ExportError as error:
			self.errors.append(error)
			raise


#============================================
def test_cancelled_async_export_keeps_artwork_open(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	Cancelling the waiter leaves the running export its artwork.
	"""
	exporter = GatedExporter()
	session = DesignSession(exporter=exporter)
	session.load_artwork(artwork_png, "first.png", "image/png")
	first = session.artwork.asset
	output_pdf = tmp_path / "cancelled.pdf"

	async def run():
		task = asyncio.create_task(session.export_async(output_pdf))
		await asyncio.to_thread(exporter.started.wait, 10)
		task.cancel()
		with pytest.raises(asyncio.CancelledError):
			await task
		session.load_artwork(make_png_bytes(330, 510, (30, 30, 200)), "second.png", "image/png")
		assert not first.closed
		exporter.gate.set()

	asyncio.run(run())
	assert exporter.errors == []
	assert len(pypdf.PdfReader(str(output_pdf)).pages) == 1
	assert first.closed
	session.close()


#============================================
def test_failed_manifest_leaves_no_files(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	A manifest that cannot be written fails the export and keeps the PDF out.
	"""
	session = build_session(artwork_png, [30.0])
	blocker = tmp_path / "blocker"
	blocker.write_text("not a directory", encoding="utf-8")
	output_pdf = tmp_path / "proof.pdf"
	with pytest.raises(flyleaf_layout.errors.ExportError, match="please retry"):
		session.export(output_pdf, blocker / "proof.json")
	assert not output_pdf.exists()
	assert sorted(path.name for path in tmp_path.iterdir()) == ["blocker"]
	assert not session.exporter.busy


#============================================
def test_manifest_lands_in_new_directory(tmp_path: pathlib.Path, artwork_png: bytes) -> None:
	"""
	Missing manifest directories are created and no temp files remain.
	"""
	session = build_session(artwork_png, [30.0])
	manifest = tmp_path / "reports" / "proof.json"
	result = session.export(tmp_path / "proof.pdf", manifest)
	assert json.loads(manifest.read_text(encoding="utf-8"))["pages"] == result.pages
	assert sorted(path.name for path in tmp_path.rglob("*")) == ["proof.json", "proof.pdf", "reports"]
