"""
Main CLI entry point for Dreamcatcher
"""

import click

from .. import __version__
from .comic import comic_group
from .dream import dream_group


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    Dreamcatcher - Dream journal with comic page generation

    Record dreams, rewrite them into calmer stories, and turn them into
    illustrated comic pages.
    """
    pass


# Register command groups
cli.add_command(comic_group)
cli.add_command(dream_group)


if __name__ == '__main__':
    cli()
