"""Warp and footprint-sync CLI commands."""

from pathlib import Path

import typer

from georef_overlay.cli.gcp import load_config_or_exit, load_gcps_or_exit
from georef_overlay.cli.main import app
from georef_overlay.errors import NonParallelogramEditError
from georef_overlay.footprint import MapExtent
from georef_overlay.footprint_sync import sync_from_polygon
from georef_overlay.raster import load_raster, save_raster
from georef_overlay.session import GeorefSession
from georef_overlay.warp import render


def _parse_extent(text: str) -> MapExtent:
    """Parse "min_x,min_y,max_x,max_y"."""
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 4:
        raise ValueError(f"Extent must be 'min_x,min_y,max_x,max_y', got '{text}'")
    return MapExtent(*(float(p) for p in parts))


def _parse_polygon(text: str) -> list[tuple[float, float]]:
    """Parse "x0,y0 x1,y1 x2,y2 x3,y3" (an optional closing point is allowed)."""
    corners = []
    for pair in text.split():
        x, y = pair.split(",")
        corners.append((float(x), float(y)))
    return corners


def _open_session(image: Path, gcps_file: Path, config: Path | None) -> GeorefSession:
    cfg = load_config_or_exit(config)
    gcps = load_gcps_or_exit(gcps_file)
    try:
        raster = load_raster(image)
        return GeorefSession.create(raster, gcps, config=cfg)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _write_view(session: GeorefSession, extent: str | None, width: int, height: int, output: Path) -> None:
    try:
        view = _parse_extent(extent) if extent else session.footprint.bounding_box
        rgba, _ = render(session, view, (width, height))
        save_raster(output, rgba)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Warped image saved to: {output} ({width}x{height}, extent {view.to_tuple()})")


@app.command("warp")
def warp_command(
    image: Path = typer.Option(..., help="Source image file"),
    gcps_file: Path = typer.Option(..., help="Path to GCPs YAML file"),
    output: Path = typer.Option(..., help="Output PNG file"),
    width: int = typer.Option(1024, help="Output width in pixels"),
    height: int = typer.Option(1024, help="Output height in pixels"),
    extent: str | None = typer.Option(
        None, help="Map extent 'min_x,min_y,max_x,max_y' (default: footprint bounds)"
    ),
    opacity: float | None = typer.Option(None, help="Opacity in [0, 1] (overrides config)"),
    config: Path | None = typer.Option(None, help="Georef configuration YAML file"),
) -> None:
    """
    Georeference an image from GCPs and warp it into a map-space view.

    Example:
        georef warp --image scan.png --gcps-file gcps.yaml --output view.png
        georef warp --image scan.png --gcps-file gcps.yaml --output view.png \\
            --extent 100,80,140,120 --width 512 --height 512 --opacity 0.6
    """
    session = _open_session(image, gcps_file, config)
    if opacity is not None:
        try:
            session.set_opacity(opacity)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    report = session.fit_report()
    typer.echo(f"Fit: {report.status.value} - {report.message}")
    _write_view(session, extent, width, height, output)


@app.command("sync")
def sync_command(
    image: Path = typer.Option(..., help="Source image file"),
    gcps_file: Path = typer.Option(..., help="Path to GCPs YAML file"),
    polygon: str = typer.Option(..., help="Edited footprint 'x0,y0 x1,y1 x2,y2 x3,y3'"),
    output: Path | None = typer.Option(None, help="Optional PNG of the re-warped image"),
    width: int = typer.Option(1024, help="Output width in pixels"),
    height: int = typer.Option(1024, help="Output height in pixels"),
    config: Path | None = typer.Option(None, help="Georef configuration YAML file"),
) -> None:
    """
    Re-derive the transform from an edited footprint polygon.

    Corners are given in the footprint's winding order: image top-left,
    top-right, bottom-right, bottom-left.

    Example:
        georef sync --image scan.png --gcps-file gcps.yaml \\
            --polygon "100,100 120,100 120,80 100,80"
    """
    session = _open_session(image, gcps_file, config)

    try:
        affine = sync_from_polygon(session, _parse_polygon(polygon))
    except NonParallelogramEditError as e:
        typer.echo(f"Error: {e}", err=True)
        typer.echo("Footprint unchanged:", err=True)
        for x, y in e.current_footprint.ring:
            typer.echo(f"  ({x:.4f}, {y:.4f})", err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Synced affine transform:")
    for name, value in affine.to_dict().items():
        typer.echo(f"  {name:>2} = {value:.10g}")

    if output is not None:
        _write_view(session, None, width, height, output)
