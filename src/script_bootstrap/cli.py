from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from script_bootstrap.core.config import load_config
from script_bootstrap.core.errors import ConfigError
from script_bootstrap.core.runtime import check_for_updates, run_boot

app = typer.Typer(add_completion=False)

CHECK_MODE = "check"


@app.command()
def main(
    mode: Optional[str] = typer.Argument(
        None, help="'check' reports whether an update is available without changing anything."
    ),
    config: Path = typer.Option(Path("bootstrap.yaml"), "--config", exists=True, dir_okay=False),
) -> None:
    if mode is not None and mode != CHECK_MODE:
        raise typer.BadParameter(f"unknown mode {mode!r}, only '{CHECK_MODE}' is supported", param_hint="MODE")

    try:
        cfg = load_config(config)
    except ConfigError as e:
        typer.echo(f"Invalid config: {e}", err=True)
        raise typer.Exit(code=2)

    if mode == CHECK_MODE:
        available = check_for_updates(cfg)
        typer.echo("update available" if available else "up to date")
        # shell truthiness: 0 = update available
        raise typer.Exit(code=0 if available else 1)

    run_boot(cfg)
