"""GCP (Ground Control Point) CLI commands."""

from pathlib import Path

import typer

from georef_overlay.cli.main import gcp_app
from georef_overlay.decompose import decompose_affine
from georef_overlay.fit_report import evaluate_fit
from georef_overlay.footprint import project_footprint
from georef_overlay.gcp_io import load_gcps_from_yaml
from georef_overlay.gcp_validation import validate_gcps
from georef_overlay.georef_config import GeorefConfig, get_default_config
from georef_overlay.points import GCP
from georef_overlay.solver import solve_affine


def load_gcps_or_exit(gcps_file: Path) -> list[GCP]:
    """Load GCPs, printing an error and exiting with code 1 on failure."""
    try:
        gcps = load_gcps_from_yaml(gcps_file)
    except FileNotFoundError:
        typer.echo(f"Error: GCPs file not found: {gcps_file}", err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.echo(f"Error: Failed to load GCPs: {e}", err=True)
        raise typer.Exit(1)

    if not gcps:
        typer.echo("Error: No GCPs found in YAML file", err=True)
        raise typer.Exit(1)
    return gcps


def load_config_or_exit(config_file: Path | None) -> GeorefConfig:
    """Load the georef configuration, or the defaults when no file is given."""
    if config_file is None:
        return get_default_config()
    try:
        return GeorefConfig.from_yaml(str(config_file))
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@gcp_app.command("validate")
def validate_command(
    gcps_file: Path = typer.Option(..., help="Path to GCPs YAML file"),
    image_width: int | None = typer.Option(None, help="Image width for pixel bounds checking"),
    image_height: int | None = typer.Option(None, help="Image height for pixel bounds checking"),
    config: Path | None = typer.Option(None, help="Georef configuration YAML file"),
) -> None:
    """
    Validate a GCP set before applying it.

    Reports duplicate pixel/map samples, near-collinear first points and
    extreme X/Y scale ratios. Exits with code 1 when there are errors;
    warnings alone do not fail.

    Example:
        georef gcp validate --gcps-file gcps.yaml --image-width 1024 --image-height 768
    """
    gcps = load_gcps_or_exit(gcps_file)
    cfg = load_config_or_exit(config)

    try:
        result = validate_gcps(
            gcps,
            image_width=image_width,
            image_height=image_height,
            pixel_tolerance=cfg.pixel_duplicate_tolerance,
            map_tolerance=cfg.map_duplicate_tolerance,
            min_triangle_area=cfg.min_triangle_area,
            max_scale_ratio=cfg.max_scale_ratio,
            max_gcp_count=cfg.max_gcp_count,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    for message in result.errors:
        typer.echo(f"ERROR: {message}")
    for message in result.warnings:
        typer.echo(f"WARNING: {message}")

    if not result.valid:
        typer.echo(f"{len(gcps)} GCPs: INVALID ({len(result.errors)} errors)")
        raise typer.Exit(1)
    typer.echo(f"{len(gcps)} GCPs: OK ({len(result.warnings)} warnings)")


@gcp_app.command("solve")
def solve_command(
    gcps_file: Path = typer.Option(..., help="Path to GCPs YAML file"),
    image_width: int | None = typer.Option(None, help="Image width (enables footprint output)"),
    image_height: int | None = typer.Option(None, help="Image height (enables footprint output)"),
) -> None:
    """
    Solve the pixel -> map affine transform and report its fit.

    Prints the six coefficients, the GDAL GeoTransform, residuals (4+ GCPs)
    and, when the image size is given, the footprint corners and the lossy
    center/scale/rotation decomposition.

    Example:
        georef gcp solve --gcps-file gcps.yaml --image-width 1024 --image-height 768
    """
    gcps = load_gcps_or_exit(gcps_file)

    footprint = params = None
    try:
        affine = solve_affine(gcps)
        if image_width is not None and image_height is not None:
            footprint = project_footprint(affine, image_width, image_height)
            params = decompose_affine(affine, image_width, image_height)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Affine transform (mapX = a*u + b*v + tx, mapY = c*u + d*v + ty):")
    for name, value in affine.to_dict().items():
        typer.echo(f"  {name:>2} = {value:.10g}")
    typer.echo(f"  GeoTransform: {[round(v, 10) for v in affine.to_geotransform()]}")

    report = evaluate_fit(gcps, affine)
    typer.echo(f"Fit: {report.status.value} - {report.message}")
    if report.is_verified:
        typer.echo(f"  RMSE: {report.rmse:.4f}  max error: {report.max_error:.4f}")
        for residual in report.residuals:
            typer.echo(f"  {residual.id}: {residual.error:.4f}")

    if footprint is not None:
        typer.echo("Footprint:")
        for x, y in footprint.ring:
            typer.echo(f"  ({x:.4f}, {y:.4f})")

        typer.echo(
            f"Decomposition (approximate): center=({params.center[0]:.4f}, {params.center[1]:.4f}) "
            f"scale=({params.scale[0]:.6g}, {params.scale[1]:.6g}) "
            f"rotation={params.rotation:.6f} rad flipped={params.flipped}"
        )
        for message in params.warnings:
            typer.echo(f"WARNING: {message}")
