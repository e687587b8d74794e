"""
CLI entry points for jacket proof export.
"""

# Standard Library
import argparse
import json
import pathlib
import sys
import time

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config
import flyleaf_layout.errors
import flyleaf_layout.pipeline
import flyleaf_layout.proof
import flyleaf_layout.session
import flyleaf_layout.units


ProofConfig = fl.config.ProofConfig
ContainerObserver = fl.pipeline.ContainerObserver

PAGE_WIDTH_IN = fl.config.PAGE_WIDTH_IN
PAGE_HEIGHT_IN = fl.config.PAGE_HEIGHT_IN
FALLBACK_CONTAINER_WIDTH = fl.config.FALLBACK_CONTAINER_WIDTH
FALLBACK_CONTAINER_HEIGHT = fl.config.FALLBACK_CONTAINER_HEIGHT


#============================================
def build_proof_config(args: argparse.Namespace) -> ProofConfig:
	"""
	Build proof config from CLI args.

	Args:
		args: Parsed argparse namespace.

	Returns:
		ProofConfig.
	"""
	return ProofConfig(
		page_width_mm=fl.units.inches_to_mm(PAGE_WIDTH_IN),
		page_height_mm=fl.units.inches_to_mm(PAGE_HEIGHT_IN),
		draw_guides=args.draw_guides,
	)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command line arguments.

	Args:
		argv: Argument list; defaults to sys.argv.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(description="Export per-book dust jacket proofs from a job file.")
	parser.add_argument("job_path", help="Job JSON file with books, large_text and viewport.")

	input_group = parser.add_argument_group("Input")
	input_group.add_argument(
		"-a", "--artwork", dest="artwork", default=None,
		help="Artwork path or URL; overrides the job file artwork reference.",
	)

	output_group = parser.add_argument_group("Output")
	output_group.add_argument("-o", "--output", dest="output_path", required=True, help="Output PDF path.")
	output_group.add_argument("-m", "--manifest", dest="manifest_path", default=None, help="Output manifest JSON path.")
	output_group.add_argument("-p", "--preview", dest="preview_path", default=None, help="Also write a preview PNG.")

	behavior_group = parser.add_argument_group("Behavior")
	behavior_group.add_argument("-g", "--draw-guides", dest="draw_guides", action="store_true", help="Draw fold guides.")
	behavior_group.add_argument("-G", "--no-draw-guides", dest="draw_guides", action="store_false", help="Disable fold guides.")
	behavior_group.add_argument(
		"-W", "--container-width", dest="container_width", type=float,
		default=FALLBACK_CONTAINER_WIDTH, help="Preview container width in pixels.",
	)
	behavior_group.add_argument(
		"-H", "--container-height", dest="container_height", type=float,
		default=FALLBACK_CONTAINER_HEIGHT, help="Preview container height in pixels.",
	)

	parser.set_defaults(draw_guides=True)

	args = parser.parse_args(argv)
	return args


#============================================
def load_job(job_path: pathlib.Path) -> dict:
	"""
	Read a job JSON file.

	Args:
		job_path: Path to the job file.

	Returns:
		Parsed job mapping.
	"""
	with job_path.open("r", encoding="utf-8") as handle:
		data = json.load(handle)
	if not isinstance(data, dict):
		raise ValueError(f"Job file must hold a JSON object: {job_path}")
	return data


#============================================
def run_pipeline(args: argparse.Namespace) -> None:
	"""
	Load a job, its artwork, and export the proof PDF.

	Args:
		args: Parsed argparse namespace.
	"""
	print("Dust jacket proof export")
	print(f"Job file: {args.job_path}")
	print(f"Output PDF: {args.output_path}")
	if args.manifest_path:
		print(f"Manifest: {args.manifest_path}")
	if args.preview_path:
		print(f"Preview: {args.preview_path}")
	print(f"Draw guides: {args.draw_guides}")

	start_time = time.perf_counter()
	job_path = pathlib.Path(args.job_path)
	data = load_job(job_path)
	exporter = fl.proof.ProofExporter(build_proof_config(args))
	with fl.session.session_from_job(data, exporter) as session:
		print(f"Books: {len(session.job)}")

		reference = args.artwork or str(data.get("artwork") or "")
		if reference:
			# relative artwork paths in a job file are relative to the job file
			if not args.artwork and "://" not in reference:
				candidate = job_path.parent / reference
				if candidate.exists():
					reference = str(candidate)
			load_start = time.perf_counter()
			asset = session.load_artwork_reference(reference)
			load_end = time.perf_counter()
			print(f"Artwork: {asset.name} ({asset.pixel_width}x{asset.pixel_height})")
			print(f"Artwork load: {load_end - load_start:.2f}s")
		else:
			print("Artwork: none")

		viewport = session.viewport
		print(
			"Viewport: zoom={:g}% offset_x={:g}% offset_y={:g}%".format(
				viewport.zoom_percent,
				viewport.offset_x_percent,
				viewport.offset_y_percent,
			)
		)
		for message in session.advisories():
			print(f"Advisory: {message}")

		if args.preview_path:
			observer = ContainerObserver(args.container_width, args.container_height)
			session.mount(observer)
			image = session.render_preview()
			preview_path = pathlib.Path(args.preview_path)
			preview_path.parent.mkdir(parents=True, exist_ok=True)
			image.save(preview_path)
			session.unmount()
			print(f"Preview written: {preview_path} ({image.width}x{image.height})")

		manifest_path = args.manifest_path
		if manifest_path is None:
			manifest_path = f"{args.output_path}.json"
		print("Composing proof pages")
		export_start = time.perf_counter()
		result = session.export(pathlib.Path(args.output_path), pathlib.Path(manifest_path), verbose=True)
		export_end = time.perf_counter()

	print(f"Pages written: {result.pages}")
	total_time = time.perf_counter() - start_time
	print(
		"Timing: export={:.2f}s total={:.2f}s".format(
			export_end - export_start,
			total_time,
		)
	)
	print(f"Manifest written: {manifest_path}")


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Main entry point.

	Args:
		argv: Argument list; defaults to sys.argv.

	Returns:
		Process exit status.
	"""
	args = parse_args(argv)
	try:
		run_pipeline(args)
	except (fl.errors.ExportError, OSError, ValueError) as error:
		print(f"Error: {error}", file=sys.stderr)
		return 1
	return 0
