"""
Dream Journal CLI Commands

Commands for recording, rewriting, illustrating, and scheduling reminders
for dreams.
"""

import asyncio
import logging
from typing import Optional

import click

from ..core.config import Config
from ..core.errors import DreamcatcherError, DreamNotFound, GenerationCancelled
from ..core.models import Dream, DreamImageStyle
from ..services.backend_service import BackendError
from ..services.comic import ComicPageService
from ..services.dream_store import DreamStore
from ..services.generation import GenerationSession
from ..services.notification_service import DEFAULT_REMINDER_HOURS, REMINDER_PRESETS, NotificationService
from ..services.rewrite_service import DEFAULT_TONE, DreamRewriteService, RewriteError
from .comic import STYLE_CHOICES, build_pipeline


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger(__name__)


def _open_store() -> DreamStore:
    return DreamStore(Config.dreams_file(), notifications=NotificationService(Config.reminders_file()))


def _require(store: DreamStore, dream_id: str) -> Dream:
    try:
        return store.require(dream_id)
    except DreamNotFound as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()


def _preview(text: Optional[str], width: int = 70) -> str:
    if not text:
        return ""
    flat = " ".join(text.split())
    return flat if len(flat) <= width else flat[:width - 3] + "..."


@click.group(name="dream")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def dream_group(verbose: bool):
    """Manage the dream journal"""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@dream_group.command(name="add")
@click.argument("text")
@click.option("--remind-in", type=click.Choice(list(REMINDER_PRESETS)), help="Schedule a reminder (e.g. '1 day')")
def add_dream(text: str, remind_in: Optional[str]):
    """
    Record a new dream.

    Examples:
        dreamcatcher dream add "I was lost in a dark forest"
        dreamcatcher dream add "I was flying" --remind-in "6 hours"
    """
    store = _open_store()
    try:
        dream = store.add(Dream(original_text=text.strip()))
    except DreamcatcherError as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    click.echo(f"✅ Dream saved: {dream.id}")
    if remind_in:
        reminder = store.notifications.schedule_dream_reminder(dream, after_hours=REMINDER_PRESETS[remind_in])
        click.echo(f"🔔 Reminder scheduled for {reminder.scheduled_at:%Y-%m-%d %H:%M} UTC")


@dream_group.command(name="list")
@click.option("--limit", type=int, help="Maximum number of dreams to show")
def list_dreams(limit: Optional[int]):
    """List dreams, newest first"""
    store = _open_store()
    dreams = store.dreams[:limit] if limit else store.dreams

    if not dreams:
        click.echo("No dreams recorded yet")
        return

    for dream in dreams:
        flags = []
        if dream.rewritten_text:
            flags.append(f"rewritten:{dream.tone or '-'}")
        if dream.has_images:
            flags.append(f"{len(dream.generated_images)} panels")
        if dream.has_pages:
            flags.append(f"{len(dream.comic_pages)} pages")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        click.echo(f"{dream.id}  {dream.created_at:%Y-%m-%d}  {_preview(dream.original_text)}{suffix}")


@dream_group.command(name="delete")
@click.argument("dream_id")
@click.confirmation_option(prompt="Delete this dream and its reminders?")
def delete_dream(dream_id: str):
    """Delete a dream and cancel its reminders"""
    store = _open_store()
    if not store.delete(dream_id):
        click.echo(f"❌ Dream not found: {dream_id}", err=True)
        raise click.Abort()
    click.echo(f"🗑️  Deleted dream {dream_id}")


@dream_group.command(name="rewrite")
@click.argument("dream_id")
@click.option("--tone", default=DEFAULT_TONE, help="Tone for the rewrite (default: calm)")
def rewrite_dream(dream_id: str, tone: str):
    """
    Rewrite a dream into a peaceful version.

    Example:
        dreamcatcher dream rewrite <uuid> --tone hopeful
    """
    store = _open_store()
    dream = _require(store, dream_id)

    if not Config.OPENROUTER_API_KEY:
        click.echo("❌ OPENROUTER_API_KEY is not set", err=True)
        raise click.Abort()

    async def _rewrite() -> str:
        service = DreamRewriteService()
        try:
            return await service.rewrite(dream.original_text, tone)
        finally:
            await service.aclose()

    try:
        rewritten = asyncio.run(_rewrite())
    except (RewriteError, DreamcatcherError) as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    store.save_rewrite(dream.id, rewritten, tone)
    click.echo("✨ Rewritten dream:")
    click.echo()
    click.echo(rewritten)


@dream_group.command(name="remind")
@click.argument("dream_id")
@click.option("--in", "remind_in", type=click.Choice(list(REMINDER_PRESETS)), help="Reminder preset")
@click.option("--hours", type=int, help="Custom delay in hours")
@click.option("--cancel", is_flag=True, help="Cancel the reminder instead")
def remind_dream(dream_id: str, remind_in: Optional[str], hours: Optional[int], cancel: bool):
    """
    Schedule or cancel a reminder for a dream.

    Examples:
        dreamcatcher dream remind <uuid> --in "2 days"
        dreamcatcher dream remind <uuid> --cancel
    """
    store = _open_store()
    dream = _require(store, dream_id)

    if cancel:
        removed = store.notifications.cancel_dream_reminder(dream.id)
        click.echo(f"🔕 Cancelled {removed} reminder(s)")
        return

    after_hours = hours or (REMINDER_PRESETS[remind_in] if remind_in else DEFAULT_REMINDER_HOURS)
    try:
        reminder = store.notifications.schedule_dream_reminder(dream, after_hours=after_hours)
    except DreamcatcherError as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    click.echo(f"🔔 {reminder.title}: {reminder.body}")
    click.echo(f"   Scheduled for {reminder.scheduled_at:%Y-%m-%d %H:%M} UTC ({reminder.category.value})")


@dream_group.command(name="illustrate")
@click.argument("dream_id")
@click.option("--style", "-s", default=DreamImageStyle.COMIC_BOOK.value, type=click.Choice(STYLE_CHOICES), help="Illustration style")
@click.option("--count", "-c", default=Config.DEFAULT_PANEL_COUNT, type=int, help="Number of panels")
@click.option("--title", "-t", help="Title banner for the first page")
def illustrate_dream(dream_id: str, style: str, count: int, title: Optional[str]):
    """
    Generate comic panels and pages for a dream's rewritten text.

    Falls back to the original text when the dream has not been rewritten.
    """
    store = _open_store()
    dream = _require(store, dream_id)
    image_style = DreamImageStyle.from_string(style)
    narrative = dream.rewritten_text or dream.original_text

    async def _illustrate():
        pipeline = build_pipeline(GenerationSession())
        try:
            images = await pipeline.generate(narrative, image_style, count)
            return images, pipeline.panel_plans()
        finally:
            if pipeline.backend is not None:
                await pipeline.backend.aclose()

    try:
        images, plans = asyncio.run(_illustrate())
    except GenerationCancelled:
        click.echo("⏹️  Generation cancelled")
        return
    except (DreamcatcherError, BackendError) as e:
        click.echo(f"❌ Generation failed: {e}", err=True)
        raise click.Abort()

    store.attach_images(dream.id, images, style=image_style.value)
    pages = ComicPageService(page_size=Config.page_size()).build_pages(images, plans=plans, title=title)
    store.attach_pages(dream.id, pages)
    click.echo(f"✅ Saved {len(images)} panels and {len(pages)} page(s) to dream {dream.id}")
