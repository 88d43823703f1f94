"""CLI interface for confpub.

Command-line tool for converting markdown to Confluence pages and
publishing them with rendered diagrams.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from confpub.auth import create_confluence_client
from confpub.config import CONFIG_FILENAME, Config, DiagramsConfig
from confpub.confluence import ConfluenceClient
from confpub.convert import MarkdownConverter
from confpub.errors import ConfpubError, ValidationError
from confpub.kroki import KrokiRenderer
from confpub.publish import PublishOrchestrator, PublishResult
from confpub.state import StateStore

config_option = click.option(
    '--config',
    '-c',
    'config_path',
    type=click.Path(path_type=Path),
    default=None,
    help=f'Path to configuration file (default: {CONFIG_FILENAME})',
)
verbose_option = click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable debug logging',
)


@click.group()
def cli() -> None:
    """Publish markdown documents to Confluence."""


@cli.command()
@click.argument('markdown_file', type=click.Path(exists=True, path_type=Path))
@click.option(
    '--extract-title/--no-extract-title',
    default=False,
    help='Drop the first H1 heading and report it as the title',
)
@click.option('--toc', is_flag=True, help='Prepend a table of contents macro')
@config_option
@verbose_option
def convert(
    markdown_file: Path,
    extract_title: bool,
    toc: bool,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Convert a markdown file and print the storage format."""
    _setup_logging(verbose)
    try:
        if config_path is not None or Path(CONFIG_FILENAME).exists():
            diagrams_config = _load_config(config_path).diagrams
        else:
            diagrams_config = DiagramsConfig()
        converter = _build_converter(diagrams_config, extract_title, toc)
        result = converter.convert_file(markdown_file)
    except (ConfpubError, FileNotFoundError) as e:
        _fail(e)

    if result.title:
        click.echo(f'Title: {result.title}', err=True)
    if result.diagrams:
        click.echo(f'Diagrams: {len(result.diagrams)} (left as placeholders)', err=True)
    click.echo(result.html)


@cli.command()
@click.argument('markdown_file', type=click.Path(exists=True, path_type=Path))
@click.argument('page_id', required=False)
@click.option('--message', '-m', help='Version message for the update')
@click.option('--title', help='Page title (default: first H1, then the current title)')
@click.option(
    '--extract-title/--no-extract-title',
    default=True,
    help='Extract title from first H1 heading (default: enabled)',
)
@click.option('--toc', is_flag=True, help='Prepend a table of contents macro')
@config_option
@verbose_option
def update(
    markdown_file: Path,
    page_id: str | None,
    message: str | None,
    title: str | None,
    extract_title: bool,
    toc: bool,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Update a Confluence page from a markdown file.

    PAGE_ID defaults to the last page published from this configuration.
    """
    _setup_logging(verbose)
    asyncio.run(
        _update(markdown_file, page_id, message, title, extract_title, toc, config_path)
    )


@cli.command()
@click.argument('markdown_file', type=click.Path(exists=True, path_type=Path))
@click.argument('title')
@click.option(
    '--space',
    '-s',
    help='Space key (default: publish.space_key, then the last space used)',
)
@click.option('--parent', help='Parent page ID (default: publish.parent_id)')
@click.option('--toc', is_flag=True, help='Prepend a table of contents macro')
@config_option
@verbose_option
def create(
    markdown_file: Path,
    title: str,
    space: str | None,
    parent: str | None,
    toc: bool,
    config_path: Path | None,
    verbose: bool,
) -> None:
    """Create a Confluence page from a markdown file."""
    _setup_logging(verbose)
    asyncio.run(_create(markdown_file, title, space, parent, toc, config_path))


@cli.command()
@click.argument('page_id')
@config_option
@verbose_option
def get_page(page_id: str, config_path: Path | None, verbose: bool) -> None:
    """Get page information by ID."""
    _setup_logging(verbose)
    asyncio.run(_get_page(page_id, config_path))


@cli.command()
@click.argument('query')
@click.option('--space', '-s', help='Restrict the search to a space')
@click.option('--limit', '-n', type=int, default=10, show_default=True, help='Maximum results')
@config_option
@verbose_option
def search(
    query: str, space: str | None, limit: int, config_path: Path | None, verbose: bool
) -> None:
    """Search pages by title."""
    _setup_logging(verbose)
    asyncio.run(_search(query, space, limit, config_path))


@cli.command()
@config_option
@verbose_option
def test_auth(config_path: Path | None, verbose: bool) -> None:
    """Test Confluence authentication."""
    _setup_logging(verbose)
    asyncio.run(_test_auth(config_path))


async def _update(
    markdown_file: Path,
    page_id: str | None,
    message: str | None,
    title: str | None,
    extract_title: bool,
    toc: bool,
    config_path: Path | None,
) -> None:
    try:
        config = _load_config(config_path)
        state = StateStore(config.publish.state_file)
        page_id = page_id or state.last_page_id
        if not page_id:
            raise ValidationError('PAGE_ID is required (no page remembered yet)')

        converter = _build_converter(config.diagrams, extract_title, toc)
        markdown_text = markdown_file.read_text(encoding='utf-8')

        click.echo(f'Updating page {page_id} from {markdown_file}...')
        async with (
            create_confluence_client(config.confluence) as http_client,
            _create_renderer(config.diagrams) as renderer,
        ):
            confluence = ConfluenceClient(http_client, config.confluence.base_url)
            orchestrator = PublishOrchestrator(
                confluence, converter, renderer if config.diagrams.enabled else None
            )
            result = await orchestrator.update(page_id, markdown_text, title, message)

        state.remember(result.page_id)
        _print_result('Page updated successfully!', result)
    except (ConfpubError, FileNotFoundError) as e:
        _fail(e)


async def _create(
    markdown_file: Path,
    title: str,
    space: str | None,
    parent: str | None,
    toc: bool,
    config_path: Path | None,
) -> None:
    try:
        config = _load_config(config_path)
        state = StateStore(config.publish.state_file)
        space_key = space or config.publish.space_key or state.last_space_key
        if not space_key:
            raise ValidationError(
                'Space key is required (--space, publish.space_key or a previous create)'
            )
        parent_id = parent or config.publish.parent_id

        converter = _build_converter(config.diagrams, extract_title=False, prepend_toc=toc)
        markdown_text = markdown_file.read_text(encoding='utf-8')

        click.echo(f'Creating page "{title}" in space {space_key}...')
        async with (
            create_confluence_client(config.confluence) as http_client,
            _create_renderer(config.diagrams) as renderer,
        ):
            confluence = ConfluenceClient(http_client, config.confluence.base_url)
            orchestrator = PublishOrchestrator(
                confluence, converter, renderer if config.diagrams.enabled else None
            )
            result = await orchestrator.create(space_key, title, markdown_text, parent_id)

        state.remember(result.page_id, space_key)
        _print_result('Page created successfully!', result)
    except (ConfpubError, FileNotFoundError) as e:
        _fail(e)


async def _get_page(page_id: str, config_path: Path | None) -> None:
    try:
        config = _load_config(config_path)
        async with create_confluence_client(config.confluence) as http_client:
            confluence = ConfluenceClient(http_client, config.confluence.base_url)

            click.echo(f'Fetching page {page_id}...')
            page = await confluence.get_page(page_id, expand=['version'])
            url = await confluence.get_page_url(page_id)

        click.echo(click.style('\nPage Information:', fg='green', bold=True))
        click.echo(f'ID: {page["id"]}')
        click.echo(f'Title: {page["title"]}')
        click.echo(f'Version: {page["version"]["number"]}')
        click.echo(f'URL: {url}')
    except (ConfpubError, FileNotFoundError) as e:
        _fail(e)


async def _search(query: str, space: str | None, limit: int, config_path: Path | None) -> None:
    try:
        config = _load_config(config_path)
        async with create_confluence_client(config.confluence) as http_client:
            confluence = ConfluenceClient(http_client, config.confluence.base_url)
            pages = await confluence.search_pages(query, space, limit)
    except (ConfpubError, FileNotFoundError) as e:
        _fail(e)

    if not pages:
        click.echo('No pages found')
        return
    for page in pages:
        click.echo(f'{page["id"]}\t{page["title"]}')


async def _test_auth(config_path: Path | None) -> None:
    try:
        config = _load_config(config_path)
        base_url = config.confluence.base_url
        async with create_confluence_client(config.confluence) as http_client:
            confluence = ConfluenceClient(http_client, base_url)
            click.echo(f'Testing connection to {base_url}...')
            await confluence.test_connection()
    except (ConfpubError, FileNotFoundError) as e:
        _fail(e, prefix='Authentication failed')

    click.echo(click.style('Authentication successful!', fg='green'))


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )


def _load_config(config_path: Path | None) -> Config:
    return Config.from_toml(config_path or Path(CONFIG_FILENAME))


def _build_converter(
    diagrams_config: DiagramsConfig, extract_title: bool, prepend_toc: bool
) -> MarkdownConverter:
    return MarkdownConverter(
        diagram_language=diagrams_config.language if diagrams_config.enabled else None,
        prepend_toc=prepend_toc,
        extract_title=extract_title,
    )


def _create_renderer(diagrams_config: DiagramsConfig) -> KrokiRenderer:
    return KrokiRenderer(
        server_url=diagrams_config.kroki_url,
        diagram_type=diagrams_config.language,
        output_format=diagrams_config.format,
    )


def _print_result(headline: str, result: PublishResult) -> None:
    click.echo(click.style(f'\n{headline}', fg='green', bold=True))
    click.echo(f'ID: {result.page_id}')
    click.echo(f'Title: {result.title}')
    click.echo(f'Version: {result.version}')
    click.echo(f'URL: {result.url}')

    if result.diagrams:
        rendered = len(result.diagrams) - len(result.fallbacks)
        click.echo(f'Diagrams: {rendered}/{len(result.diagrams)} rendered')
    for outcome in result.fallbacks:
        click.echo(
            click.style(
                f'Warning: diagram {outcome.ordinal} shown as code ({outcome.reason})',
                fg='yellow',
            ),
            err=True,
        )


def _fail(error: Exception, prefix: str = 'Error') -> NoReturn:
    click.echo(click.style(f'{prefix}: {error}', fg='red'), err=True)
    sys.exit(1)


if __name__ == '__main__':
    cli()
