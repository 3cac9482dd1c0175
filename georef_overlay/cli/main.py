"""Main Typer CLI application for georeferencing tools."""

import logging

import typer

app = typer.Typer(
    help="Affine georeferencing tools: validate GCPs, solve transforms, warp images",
    no_args_is_help=True,
)

# Subcommand groups
gcp_app = typer.Typer(help="Ground Control Point commands")

app.add_typer(gcp_app, name="gcp")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(levelname)s - %(message)s',
    )


def _register_commands() -> None:
    """
    Import command modules to register commands with their respective apps.

    Commands use decorators like @gcp_app.command() which register
    themselves when the module is imported.
    """
    from georef_overlay.cli import gcp, warp

    # Avoid "imported but unused" warnings by explicitly using the module
    _ = gcp
    _ = warp


_register_commands()


if __name__ == "__main__":
    app()
