import click
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from .config import Config
from .errors import StoryReviserError
from .generation.gemini import GeminiCollaborator
from .lineage import JsonGenerationStore, RevisionLineage
from .models.generation import GenerationParams
from .processing.diff import DiffEngine, diff_stats
from .processing.paragraphs import ParagraphIndexer
from .processing.patch import parse_proposal
from .orchestrator import RevisionOrchestrator
from .prompts import describe_history
from .session import ContextSelectionSession
from .utils.display import history_table, print_diff, print_paragraphs
from .utils.logger import setup_logger

console = Console()


@click.group()
@click.option('--config', '-c', type=click.Path(), default='config.yaml',
              help='Path to configuration file')
@click.option('--store', '-s', type=click.Path(), help='Override generation store file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx: click.Context, config: str, store: str, verbose: bool):
    """Story Reviser - draft, revise and review story passages."""
    ctx.ensure_object(dict)

    config_path = Path(config)
    ctx.obj['config'] = Config.from_yaml(config_path) if config_path.exists() else Config()
    if store:
        ctx.obj['config'].store.path = Path(store)

    log_level = "DEBUG" if verbose else ctx.obj['config'].log_level
    logger = setup_logger(log_level, ctx.obj['config'].audit_log)
    ctx.obj['logger'] = logger

    if config_path.exists():
        logger.debug(f"Config loaded from: {config_path}")


def _lineage(ctx: click.Context) -> RevisionLineage:
    if 'lineage' not in ctx.obj:
        ctx.obj['lineage'] = RevisionLineage(JsonGenerationStore(ctx.obj['config'].store.path))
    return ctx.obj['lineage']


def _orchestrator(ctx: click.Context) -> RevisionOrchestrator:
    config = ctx.obj['config']
    collaborator = GeminiCollaborator(config.gemini, max_story_chars=config.revision.max_story_chars)
    return RevisionOrchestrator(collaborator, _lineage(ctx), config.revision)


def _fail(ctx: click.Context, action: str, error: Exception):
    ctx.obj['logger'].error(f"{action} failed: {error}")
    raise click.ClickException(str(error))


@cli.command()
@click.option('--synopsis', required=True, help='What the passage is about')
@click.option('--text-file', '-t', type=click.Path(exists=True), required=True,
              help='File holding the passage text')
@click.option('--style', help='Style note')
@click.option('--length', type=int, help='Requested length in words')
@click.option('--story-id', help='Id of the story this passage belongs to')
@click.option('--chapter', type=int, help='Chapter number')
@click.option('--part', type=int, help='Part number within the chapter')
@click.option('--accept', is_flag=True, help='Accept the new generation right away')
@click.pass_context
def new(ctx: click.Context, synopsis: str, text_file: str, style: str, length: int,
        story_id: str, chapter: int, part: int, accept: bool):
    """Record an existing passage as a new root generation."""
    lineage = _lineage(ctx)
    try:
        params = GenerationParams(
            generated_text=Path(text_file).read_text(encoding='utf-8'),
            synopsis=synopsis,
            style_note=style,
            requested_length=length,
            story_id=story_id,
            chapter_number=chapter,
            part_number=part,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    try:
        generation = lineage.create_root(params)
        if accept:
            generation = lineage.accept(generation.id)
    except StoryReviserError as e:
        _fail(ctx, "Create", e)
    click.echo(generation.id)


@cli.command()
@click.option('--synopsis', required=True, help='What the passage is about')
@click.option('--style', help='Style note')
@click.option('--length', type=int, default=500, help='Requested length in words')
@click.option('--accept', is_flag=True, help='Accept the new generation right away')
@click.pass_context
def draft(ctx: click.Context, synopsis: str, style: str, length: int, accept: bool):
    """Generate a new passage with the model."""
    orchestrator = _orchestrator(ctx)
    try:
        generation = orchestrator.draft(
            GenerationParams(synopsis=synopsis, style_note=style, requested_length=length)
        )
        if accept:
            generation = orchestrator.lineage.accept(generation.id)
    except StoryReviserError as e:
        _fail(ctx, "Draft", e)
    print_paragraphs(console, ParagraphIndexer().index(generation.generated_text))
    click.echo(generation.id)


@cli.command()
@click.argument('generation_id')
@click.pass_context
def show(ctx: click.Context, generation_id: str):
    """Print a generation with its paragraph indices."""
    try:
        generation = _lineage(ctx).resolve(generation_id)
    except StoryReviserError as e:
        _fail(ctx, "Show", e)
    console.print(f"[bold]{generation.id}[/bold] ({generation.status.value})")
    print_paragraphs(console, ParagraphIndexer().index(generation.generated_text))


@cli.command()
@click.option('--limit', '-n', type=int, help='Number of generations to list')
@click.pass_context
def history(ctx: click.Context, limit: int):
    """List recent generations, newest first."""
    limit = limit or ctx.obj['config'].revision.history_limit
    console.print(history_table(_lineage(ctx).recent(limit), title="Recent generations"))


@cli.command()
@click.argument('generation_id')
@click.option('--tree', is_flag=True, help='Print an indented outline instead of a table')
@click.pass_context
def lineage(ctx: click.Context, generation_id: str, tree: bool):
    """Show the path from the root down to a generation."""
    revisions = _lineage(ctx)
    try:
        path = revisions.history(revisions.resolve(generation_id).id)
    except StoryReviserError as e:
        _fail(ctx, "Lineage", e)
    if tree:
        click.echo(describe_history(path))
    else:
        console.print(history_table(path, title="Lineage"))


@cli.command()
@click.argument('before_id')
@click.argument('after_id')
@click.pass_context
def diff(ctx: click.Context, before_id: str, after_id: str):
    """Diff the text of two generations."""
    revisions = _lineage(ctx)
    try:
        before = revisions.resolve(before_id)
        after = revisions.resolve(after_id)
    except StoryReviserError as e:
        _fail(ctx, "Diff", e)
    segments = DiffEngine(ctx.obj['config'].revision.diff_granularity).diff(
        before.generated_text, after.generated_text)
    print_diff(console, segments, diff_stats(segments))


@cli.command()
@click.argument('generation_id')
@click.option('--request', '-r', 'user_request', default='', help='What to change')
@click.option('--paragraph', '-p', 'paragraphs', type=int, multiple=True,
              help='Paragraph index to pin as context')
@click.option('--highlight', 'highlights', multiple=True, help='Text to pin as context')
@click.option('--commit', 'do_commit', is_flag=True, help='Store the proposal as a new generation')
@click.option('--accept', is_flag=True, help='Commit and accept the new generation')
@click.pass_context
def revise(ctx: click.Context, generation_id: str, user_request: str, paragraphs: tuple,
           highlights: tuple, do_commit: bool, accept: bool):
    """Ask the model for an edit proposal and review it."""
    orchestrator = _orchestrator(ctx)
    indexer = ParagraphIndexer()
    try:
        base = orchestrator.lineage.resolve(generation_id)
        session = ContextSelectionSession(generation_id=base.id)
        for index in paragraphs:
            paragraph = indexer.paragraph_at(base.generated_text, index)
            if paragraph is None:
                raise click.BadParameter(f"Generation has no paragraph {index}", param_hint='--paragraph')
            session.add(paragraph)
        for text in highlights:
            session.add_highlight(text)

        proposal = orchestrator.request_from_session(session, base.generated_text, user_request)
        if proposal.explanation:
            console.print(f"[italic]{escape(proposal.explanation)}[/italic]\n")
        if proposal.mode == "clarification":
            return

        review = orchestrator.review(proposal, base.generated_text)
        print_diff(console, review.segments, review.stats)

        if do_commit or accept:
            child = orchestrator.commit(base.id, proposal, feedback=user_request or None, accept=accept)
            click.echo(child.id)
    except StoryReviserError as e:
        _fail(ctx, "Revision", e)


@cli.command()
@click.argument('generation_id')
@click.argument('proposal_file', type=click.Path(exists=True))
@click.option('--feedback', '-f', help='Why this revision was made')
@click.option('--dry-run', is_flag=True, help='Only show the diff')
@click.option('--accept', is_flag=True, help='Accept the new generation')
@click.pass_context
def apply(ctx: click.Context, generation_id: str, proposal_file: str, feedback: str,
          dry_run: bool, accept: bool):
    """Review a proposal JSON file against a generation and commit it."""
    orchestrator = _orchestrator(ctx)
    revisions = orchestrator.lineage
    try:
        base = revisions.resolve(generation_id)
        proposal = parse_proposal(Path(proposal_file).read_text(encoding='utf-8'))
        review = orchestrator.review(proposal, base.generated_text)
        print_diff(console, review.segments, review.stats)
        if dry_run or proposal.mode == "clarification":
            return
        child = orchestrator.commit(base.id, proposal, feedback=feedback, accept=accept)
    except StoryReviserError as e:
        _fail(ctx, "Apply", e)
    click.echo(child.id)


@cli.command()
@click.argument('generation_id')
@click.option('--feedback', '-f', required=True, help='What to change in the rewrite')
@click.pass_context
def refine(ctx: click.Context, generation_id: str, feedback: str):
    """Generate a full rewrite of a generation from feedback."""
    orchestrator = _orchestrator(ctx)
    try:
        parent = orchestrator.lineage.resolve(generation_id)
        child = orchestrator.refine(parent.id, feedback)
    except StoryReviserError as e:
        _fail(ctx, "Refine", e)
    segments = orchestrator.diff_engine.diff(parent.generated_text, child.generated_text)
    print_diff(console, segments, diff_stats(segments))
    click.echo(child.id)


@cli.command()
@click.argument('generation_id')
@click.pass_context
def accept(ctx: click.Context, generation_id: str):
    """Make a generation the live text of its tree."""
    revisions = _lineage(ctx)
    try:
        generation = revisions.accept(revisions.resolve(generation_id).id)
    except StoryReviserError as e:
        _fail(ctx, "Accept", e)
    click.echo(f"Accepted {generation.id}")


@cli.command()
@click.argument('generation_id')
@click.pass_context
def reject(ctx: click.Context, generation_id: str):
    """Mark a generation as rejected (it stays in the history)."""
    revisions = _lineage(ctx)
    try:
        generation = revisions.reject(revisions.resolve(generation_id).id)
    except StoryReviserError as e:
        _fail(ctx, "Reject", e)
    click.echo(f"Rejected {generation.id}")


def main():
    cli()


if __name__ == '__main__':
    main()
