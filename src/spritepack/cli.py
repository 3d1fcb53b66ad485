import glob
import logging
import os

import typer
from rich.progress import Progress

from spritepack import pipeline
from spritepack.atlas.control import (
    LEGACY_TAGS,
    PRIVATE_TAGS,
    describe,
    read_control_table,
    read_palette_dump,
)
from spritepack.config import DEFAULT
from spritepack.errors import SpritePackError
from spritepack.kernel import tree
from spritepack.kernel.fileio import open_png
from spritepack.source import load_sprite_sets

app = typer.Typer()


@app.callback()
def main(
    verbose: bool = typer.Option(False, '--verbose', '-v', help='debug logging'),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(threadName)s %(name)s: %(message)s',
    )


@app.command()
def build(
    source: str = typer.Argument(..., help='sprite source directory'),
    output: str = typer.Option(DEFAULT.output_dir, '--output', '-o'),
    width: int = typer.Option(DEFAULT.canvas_width, help='maximum atlas width'),
    height: int = typer.Option(DEFAULT.canvas_height, help='maximum atlas height'),
    workers: int = typer.Option(DEFAULT.workers, '--workers', '-j'),
    legacy_tags: bool = typer.Option(
        False, help='store metadata in sPLT/zTXt chunks for older readers'
    ),
    fail_fast: bool = typer.Option(False, help='stop scheduling after an error'),
    keep_partial: bool = typer.Option(False, help='keep output of failed sets'),
) -> None:
    try:
        config = DEFAULT(
            source_path=source,
            output_dir=output,
            canvas_width=width,
            canvas_height=height,
            workers=workers,
            tags=LEGACY_TAGS if legacy_tags else PRIVATE_TAGS,
            fail_fast=fail_fast,
            keep_partial=keep_partial,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        sprite_sets = load_sprite_sets(config.source_path)
        os.makedirs(config.output_dir, exist_ok=True)
        with Progress() as progress:
            task = progress.add_task('sprite sets', total=len(sprite_sets))
            pipeline.run(
                sprite_sets,
                config,
                on_progress=lambda _: progress.advance(task),
            )
    except (SpritePackError, OSError) as exc:
        typer.echo(f'error: {exc}', err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def inspect(
    files: list[str] = typer.Argument(..., help='*.png files to read from'),
) -> None:
    files = sorted({path for pattern in files for path in glob.iglob(pattern)})
    for filename in files:
        typer.echo(filename)
        try:
            with open_png(filename) as png:
                chunks = list(png.chunks())
                typer.echo(tree.renders(chunks), nl=False)
                found = [chunk for _, chunk in chunks]

                palette = tree.find(PRIVATE_TAGS.palette, found) or tree.find(
                    LEGACY_TAGS.palette, found
                )
                if palette is not None:
                    colors = read_palette_dump(bytes(palette.data))
                    typer.echo(f'palette: {len(colors)} colors')

                control = tree.find(PRIVATE_TAGS.control, found) or tree.find(
                    LEGACY_TAGS.control, found
                )
                if control is not None:
                    infos = list(read_control_table(bytes(control.data)))
                    for line in describe(infos):
                        typer.echo(line)
        except (OSError, ValueError, SpritePackError) as exc:
            typer.echo(f'error: {exc}', err=True)
            raise typer.Exit(code=1) from exc


if __name__ == '__main__':
    app()
