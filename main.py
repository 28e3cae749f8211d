"""
DICOM 3D Reconstruction

Main entry point for the command-line tool.

Examples:
    # Axial, sagittal and coronal MPR as PNG
    dicom-3d mpr series/ --output mpr/ --planes axial,sagittal,coronal

    # Maximum Intensity Projection
    dicom-3d mip series/ --output mip.png --direction coronal

    # Surface mesh at a bone threshold
    dicom-3d surface series/ --threshold 200 --output surface.stl

    # Volume export
    dicom-3d export series/ --output volume --formats nifti,metaimage
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from config import (
    WINDOW_PRESETS,
    DEFAULT_MPR,
    DEFAULT_PROJECTION,
    DEFAULT_SURFACE,
    DEFAULT_MESH_EXPORT,
    DEFAULT_DICOM,
)
from core.errors import ReconstructionError
from core.progress import (
    TaskProgressTracker,
    logging_progress,
    get_mpr_phases,
    get_projection_phases,
    get_surface_phases,
)
from exporters import (
    DICOMExporter,
    PNGExporter,
    STLExporter,
    OBJExporter,
    get_volume_exporter,
)
from loaders import DICOMSeriesLoader
from reconstruction import (
    MPRGenerator,
    Plane,
    PlaneType,
    ProjectionRenderer,
    ProjectionMode,
    SurfaceExtractor,
    VolumeData,
)


def setup_logging(verbose: bool = False):
    """Configure logging to stdout."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def parse_vector(text: str) -> Tuple[float, float, float]:
    """Parse 'x,y,z' into a 3-tuple of floats."""
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Expected x,y,z but got '{text}'")
    try:
        return tuple(float(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected three numbers but got '{text}'") from None


def split_list(text: str) -> List[str]:
    return [item.strip().lower() for item in text.split(",") if item.strip()]


def resolve_window(args, volume: Optional[VolumeData] = None) -> Tuple[Optional[float], Optional[float]]:
    """
    Window for display output.

    Explicit --window-center/--window-width win over --window-preset; with
    neither, the window stored in the series is used when a volume is given.
    """
    if args.window_center is not None and args.window_width is not None:
        return args.window_center, args.window_width
    if args.window_center is not None or args.window_width is not None:
        logging.warning("--window-center and --window-width must be given together; ignoring the lone value")
    if args.window_preset is not None:
        return WINDOW_PRESETS[args.window_preset]
    if volume is not None:
        return volume.window_center, volume.window_width
    return None, None


def load_volume(args) -> VolumeData:
    return DICOMSeriesLoader().load(args.inputs)


# =============================================================================
# Commands
# =============================================================================

def run_mpr(args) -> None:
    tracker = TaskProgressTracker(logging_progress())
    tracker.set_phases(get_mpr_phases())

    tracker.start_phase(0)
    volume = load_volume(args)
    tracker.end_phase()

    planes = split_list(args.planes)
    requests = []
    for name in planes:
        try:
            kind = PlaneType(name)
        except ValueError:
            valid = ", ".join(p.value for p in PlaneType)
            raise ReconstructionError(f"Invalid plane: {name}. Must be one of: {valid}") from None
        if kind is PlaneType.OBLIQUE:
            if args.normal is None or args.point is None:
                raise ReconstructionError("Oblique MPR requires --normal and --point")
            try:
                requests.append(Plane.oblique(args.normal, args.point))
            except ValueError as e:
                raise ReconstructionError(f"Invalid oblique plane: {e}") from None
        else:
            requests.append(Plane(kind))

    tracker.start_phase(1)
    generator = MPRGenerator(
        volume,
        interpolation=args.interpolation,
        max_workers=args.workers,
    )
    families = []
    for i, request in enumerate(requests):
        families.append(generator.generate(request))
        tracker.sub_progress()((i + 1) / len(requests))
    tracker.end_phase()

    tracker.start_phase(2)
    output_dir = Path(args.output)
    window_center, window_width = resolve_window(args)
    for name, slices in zip(planes, families):
        target = output_dir / name if len(planes) > 1 else output_dir
        if args.format == "dcm":
            exporter = DICOMExporter(DEFAULT_DICOM)
            exporter.export_series(
                slices, target, prefix=name,
                window_center=window_center if window_center is not None else volume.window_center,
                window_width=window_width if window_width is not None else volume.window_width,
            )
        else:
            PNGExporter(window_center, window_width).export_series(slices, target, prefix=name)
    tracker.end_phase()

    logging.info(f"MPR generation complete. Output: {output_dir}")


def run_projection(args) -> None:
    tracker = TaskProgressTracker(logging_progress())
    tracker.set_phases(get_projection_phases())

    tracker.start_phase(0)
    volume = load_volume(args)
    tracker.end_phase()

    tracker.start_phase(1)
    image = ProjectionRenderer(volume).render(
        args.direction,
        args.mode,
        slab_thickness=getattr(args, "thickness", None),
    )
    tracker.end_phase()

    tracker.start_phase(2)
    exporter = PNGExporter(*resolve_window(args))
    output_path = exporter.export(image, exporter.default_path(args.output))
    tracker.end_phase()

    logging.info(f"{args.mode.capitalize()} intensity projection saved to: {output_path}")


def run_surface(args) -> None:
    tracker = TaskProgressTracker(logging_progress())
    tracker.set_phases(get_surface_phases())

    tracker.start_phase(0)
    volume = load_volume(args)
    tracker.end_phase()

    tracker.start_phase(1)
    logging.info(f"Extracting surface at threshold: {args.threshold}")
    extractor = SurfaceExtractor(
        volume,
        progress_callback=tracker.sub_progress(),
        progress_interval=DEFAULT_SURFACE.progress_interval,
    )
    mesh = extractor.extract_surface(args.threshold)
    tracker.end_phase()

    tracker.start_phase(2)
    mesh_format = args.mesh_format
    if mesh_format is None:
        mesh_format = "obj" if Path(args.output).suffix.lower() == ".obj" else "stl"
    if mesh_format == "obj":
        exporter = OBJExporter(precision=DEFAULT_MESH_EXPORT.obj_precision)
    else:
        exporter = STLExporter(header=DEFAULT_MESH_EXPORT.stl_header)
    output_path = exporter.export(mesh, exporter.default_path(args.output))
    tracker.end_phase()

    logging.info(f"Surface mesh saved to: {output_path}")
    logging.info(f"Vertices: {mesh.vertex_count}, Triangles: {mesh.triangle_count}")


def run_export(args) -> None:
    volume = load_volume(args)

    for fmt in split_list(args.formats):
        logging.info(f"Exporting as {fmt}...")
        try:
            exporter = get_volume_exporter(fmt)
        except ValueError as e:
            logging.warning(f"{e}; skipping")
            continue
        output_path = exporter.export(volume, exporter.default_path(args.output))
        logging.info(f"{fmt} saved to: {output_path}")


# =============================================================================
# Argument parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("inputs", nargs="+", help="Input DICOM files or series directory")
    common.add_argument("-o", "--output", required=True, help="Output path")
    common.add_argument("--verbose", action="store_true", help="Verbose output")

    window = argparse.ArgumentParser(add_help=False)
    window.add_argument("--window-center", type=float, help="Window center for display")
    window.add_argument("--window-width", type=float, help="Window width for display")
    window.add_argument("--window-preset", choices=sorted(WINDOW_PRESETS), help="Named display window")

    parser = argparse.ArgumentParser(
        prog="dicom-3d",
        description="3D reconstruction and Multi-Planar Reformation (MPR) from DICOM series",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    mpr = subparsers.add_parser(
        "mpr", parents=[common, window], help="Generate Multi-Planar Reformation (MPR) images"
    )
    mpr.add_argument("--planes", default="axial,sagittal,coronal",
                     help="Planes to generate: axial, sagittal, coronal, oblique")
    mpr.add_argument("--format", choices=["png", "dcm"], default="png", help="Output format")
    mpr.add_argument("--interpolation", default=DEFAULT_MPR.interpolation,
                     help="Interpolation method: nearest, linear, cubic")
    mpr.add_argument("--normal", type=parse_vector, help="Oblique plane normal as x,y,z")
    mpr.add_argument("--point", type=parse_vector, help="Oblique plane point as x,y,z (mm)")
    mpr.add_argument("--workers", type=int, default=DEFAULT_MPR.max_workers,
                     help="Worker threads for slice generation")
    mpr.set_defaults(func=run_mpr)

    for name, mode, help_text in (
        ("mip", ProjectionMode.MAXIMUM, "Generate Maximum Intensity Projection (MIP)"),
        ("minip", ProjectionMode.MINIMUM, "Generate Minimum Intensity Projection (MinIP)"),
        ("average", ProjectionMode.AVERAGE, "Generate Average Intensity Projection"),
    ):
        projection = subparsers.add_parser(name, parents=[common, window], help=help_text)
        projection.add_argument("--direction", choices=["axial", "sagittal", "coronal"],
                                default=DEFAULT_PROJECTION.direction, help="Projection direction")
        if mode is not ProjectionMode.AVERAGE:
            projection.add_argument("--thickness", type=float,
                                    default=DEFAULT_PROJECTION.slab_thickness_mm,
                                    help="Slab thickness in mm (0 = full volume)")
        projection.set_defaults(func=run_projection, mode=mode.value)

    surface = subparsers.add_parser(
        "surface", parents=[common], help="Extract 3D surface mesh using Marching Cubes"
    )
    surface.add_argument("--threshold", type=float, default=DEFAULT_SURFACE.threshold,
                         help="Threshold value for surface extraction")
    surface.add_argument("--mesh-format", choices=["stl", "obj"],
                         help="Output format (default: from output extension, else stl)")
    surface.set_defaults(func=run_surface)

    export = subparsers.add_parser(
        "export", parents=[common], help="Export volume in various formats (NIfTI, MetaImage)"
    )
    export.add_argument("--formats", default="nifti", help="Export formats: nifti, metaimage")
    export.set_defaults(func=run_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        args.func(args)
    except (ReconstructionError, OSError) as e:
        logging.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
