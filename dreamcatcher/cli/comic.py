"""
Comic CLI Commands

Scene segmentation, prompt synthesis, panel layout, page composition, and
end-to-end panel generation.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import click
from PIL import Image, UnidentifiedImageError

from ..core.config import Config
from ..core.errors import DreamcatcherError, GenerationCancelled
from ..core.models import DreamImageStyle, GeneratedImage, PanelPlan
from ..services.backend_service import BackendError, BackendService
from ..services.comic import (
    ComicPageService,
    LayoutKind,
    Rect,
    build_scenes,
    compose_page,
    compute_frames,
    synthesize,
)
from ..services.comic.page_compositor import PANEL_GUTTER
from ..services.generation import GenerationSession, ImageGenerationPipeline
from ..services.local_renderer import DiffusersImageRenderer


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger(__name__)

STYLE_CHOICES = [style.value for style in DreamImageStyle]
LAYOUT_CHOICES = [kind.value for kind in LayoutKind]


@click.group(name="comic")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def comic_group(verbose: bool):
    """Build comic panels and pages from dream text"""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@comic_group.command(name="segment")
@click.argument("text")
@click.option("--count", "-c", default=Config.DEFAULT_PANEL_COUNT, type=int, help="Maximum number of scenes")
def segment_command(text: str, count: int):
    """
    Split narrative text into scenes.

    Example:
        dreamcatcher comic segment "I walked into a forest. The trees glowed." --count 2
    """
    try:
        scenes = build_scenes(text, count)
    except DreamcatcherError as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    for scene in scenes:
        click.echo(f"[{scene.index + 1}] {scene.text}")


@comic_group.command(name="prompt")
@click.argument("text")
def prompt_command(text: str):
    """
    Print the image prompt for a scene.

    Example:
        dreamcatcher comic prompt "A calm ocean at sunrise"
    """
    click.echo(synthesize(text))


@comic_group.command(name="layout")
@click.option("--kind", "-k", default=LayoutKind.DYNAMIC.value, type=click.Choice(LAYOUT_CHOICES), help="Layout family")
@click.option("--count", "-c", default=Config.DEFAULT_PANEL_COUNT, type=int, help="Number of panels")
@click.option("--width", default=Config.PAGE_WIDTH, type=float, help="Content area width")
@click.option("--height", default=Config.PAGE_HEIGHT, type=float, help="Content area height")
@click.option("--gutter", default=PANEL_GUTTER, type=float, help="Spacing between panels")
def layout_command(kind: str, count: int, width: float, height: float, gutter: float):
    """
    Print panel rectangles for a layout family.

    Example:
        dreamcatcher comic layout --kind vertical_strip --count 3 --width 600 --height 636
    """
    frames = compute_frames(kind, count, Rect(0, 0, width, height), gutter)
    if not frames:
        click.echo("No panels")
        return

    for i, frame in enumerate(frames, 1):
        click.echo(f"Panel {i}: x={frame.x:.1f} y={frame.y:.1f} w={frame.width:.1f} h={frame.height:.1f}")


@comic_group.command(name="compose")
@click.argument("images", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--layout", "-l", default=LayoutKind.DYNAMIC.value, type=click.Choice(LAYOUT_CHOICES), help="Layout family")
@click.option("--title", "-t", help="Title banner text")
@click.option("--output", "-o", default="comic_page.png", type=click.Path(dir_okay=False, path_type=Path), help="Output PNG path")
def compose_command(images: Tuple[Path, ...], layout: str, title: Optional[str], output: Path):
    """
    Compose panel images into a comic page.

    Example:
        dreamcatcher comic compose panel_0.png panel_1.png --title "Night Flight" -o page.png
    """
    loaded = []
    for path in images:
        try:
            with Image.open(path) as image:
                loaded.append(image.convert("RGB"))
        except (UnidentifiedImageError, OSError) as e:
            click.echo(f"⚠️  Skipping {path}: {e}", err=True)

    if not loaded:
        click.echo("❌ No readable images", err=True)
        raise click.Abort()

    page = compose_page(loaded, layout_kind=layout, title=title, page_size=Config.page_size())
    output.parent.mkdir(parents=True, exist_ok=True)
    page.save(output, format="PNG")
    click.echo(f"✅ Composed {len(loaded)} panels into {output}")


@comic_group.command(name="generate")
@click.argument("text")
@click.option("--style", "-s", default=DreamImageStyle.COMIC_BOOK.value, type=click.Choice(STYLE_CHOICES), help="Illustration style")
@click.option("--count", "-c", default=Config.DEFAULT_PANEL_COUNT, type=int, help="Number of panels")
@click.option("--output-dir", "-o", default="comic_panels", type=click.Path(file_okay=False, path_type=Path), help="Directory for panel PNGs")
@click.option("--page/--no-page", default=False, help="Also compose the panels into a page")
@click.option("--title", "-t", help="Title banner for the composed page")
def generate_command(text: str, style: str, count: int, output_dir: Path, page: bool, title: Optional[str]):
    """
    Generate comic panels from narrative text.

    Uses the backend when DREAMCATCHER_BACKEND_TOKEN is set, otherwise the
    local diffusers renderer (install with the "local" extra).

    Example:
        dreamcatcher comic generate "I swam in a glowing ocean. A castle rose from the waves." --page
    """
    click.echo("=" * 60)
    click.echo("🎨 Generating Comic Panels")
    click.echo("=" * 60)

    try:
        images, plans = asyncio.run(_generate(text, DreamImageStyle.from_string(style), count))
    except GenerationCancelled:
        click.echo("\n⏹️  Generation cancelled")
        return
    except (DreamcatcherError, BackendError) as e:
        click.echo(f"\n❌ Generation failed: {e}", err=True)
        logger.exception(e)
        raise click.Abort()

    paths = write_panels(images, output_dir)
    click.echo(f"\n✅ Saved {len(paths)} panels to {output_dir}")

    if page:
        pages = ComicPageService(page_size=Config.page_size()).build_pages(images, plans=plans, title=title)
        for comic_page in pages:
            page_path = output_dir / f"page_{comic_page.page_number}.png"
            page_path.write_bytes(comic_page.image_data)
            click.echo(f"📄 {page_path}")


def build_pipeline(session: Optional[GenerationSession] = None) -> ImageGenerationPipeline:
    """Pipeline wired to the configured backend, or the local renderer when signed out."""
    if Config.BACKEND_TOKEN:
        return ImageGenerationPipeline(session, backend=BackendService())
    return ImageGenerationPipeline(session, local_renderer=DiffusersImageRenderer())


async def _generate(
    text: str, style: DreamImageStyle, count: int
) -> Tuple[List[GeneratedImage], Optional[List[PanelPlan]]]:
    session = GenerationSession()
    last_status = {"text": ""}

    def echo_status(current: GenerationSession) -> None:
        if current.status_text and current.status_text != last_status["text"]:
            last_status["text"] = current.status_text
            click.echo(f"   {current.status_text} ({current.progress:.0%})")

    session.add_observer(echo_status)
    pipeline = build_pipeline(session)
    try:
        images = await pipeline.generate(text, style, count)
        return images, pipeline.panel_plans()
    finally:
        if pipeline.backend is not None:
            await pipeline.backend.aclose()


def write_panels(images: List[GeneratedImage], output_dir: Path) -> List[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for image in sorted(images, key=lambda item: item.sequence_index):
        path = output_dir / f"panel_{image.sequence_index}.png"
        path.write_bytes(image.image_data)
        paths.append(path)
    return paths
