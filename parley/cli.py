"""Command-line entry point."""

import asyncio
import logging
import tempfile
from datetime import datetime

import click
from sqlalchemy.exc import SQLAlchemyError

from parley.core.config import settings
from parley.core.database import init_db
from parley.models.chat import Chat, Message
from parley.services.llm.base import GenerateConfig, GeneratorError, ReasoningEffort
from parley.services.store import ChatStore, StoreError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    # The TUI owns the terminal, so logs go to a file.
    settings.log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=settings.log_path,
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def open_store() -> ChatStore:
    try:
        init_db()
    except (SQLAlchemyError, OSError) as e:
        raise click.ClickException(f"Could not open database {settings.db_path}: {e}") from e
    return ChatStore()


def format_timestamp(micros: int) -> str:
    return datetime.fromtimestamp(micros / 1_000_000).strftime("%Y-%m-%d %H:%M")


def print_chats(chats: list[Chat], next_page_token: str) -> None:
    for chat in chats:
        tags = f"  [{', '.join(chat.tags)}]" if chat.tags else ""
        click.echo(f"{chat.id}  {format_timestamp(chat.update_timestamp)}  {chat.title or '(untitled)'}{tags}")
    if next_page_token:
        click.echo(f"-- more: --page-token {next_page_token}")


@click.group()
@click.version_option(package_name="parley")
def cli():
    """Chat with LLMs from the terminal."""
    configure_logging()


@cli.command()
@click.option("--model", "-m", default="", help="Model name or alias.")
@click.option("--max-tokens", type=int, default=None, help="Maximum output tokens.")
@click.option("--temperature", type=float, default=None, help="Sampling temperature.")
@click.option("--id", "chat_id", default="", help="Open an existing chat.")
@click.option("--continue", "-c", "continue_", is_flag=True, help="Open the most recent chat.")
@click.option("--think", "-t", default="", help="Reasoning effort: low|l, medium|m, high|h.")
@click.option("--tools", is_flag=True, help="Let the model run shell commands (with confirmation).")
@click.option("--file", "-f", "files", multiple=True, help="File or directory to inject; dir/... recurses.")
@click.option("--ext", "extensions", multiple=True, help="Only inject files with this extension.")
@click.option("--role", "-r", "role_name", default=None, help="Role name or alias.")
def chat(model, max_tokens, temperature, chat_id, continue_, think, tools, files, extensions, role_name):
    """Start an interactive chat session."""
    from parley.chat.app import ChatApp
    from parley.chat.session import ChatSession
    from parley.services.files import collect_files, file_messages, repository_tags
    from parley.services.history import InputHistory
    from parley.services.llm import get_generator
    from parley.services.roles import RoleError, build_system_prompt, resolve_role
    from parley.services.tools.registry import create_default_registry

    if chat_id and continue_:
        raise click.UsageError("--id and --continue are mutually exclusive")
    try:
        effort = ReasoningEffort.parse(think)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--think") from e

    try:
        role = resolve_role(settings.default_role if role_name is None else role_name, settings.roles)
    except RoleError as e:
        raise click.ClickException(str(e)) from e

    model_name = settings.resolve_model(model or (role.model if role and role.model else settings.default_model))
    config = GenerateConfig(
        model=model_name,
        max_tokens=max_tokens or settings.max_tokens,
        temperature=settings.temperature if temperature is None else temperature,
        reasoning_effort=effort,
    )

    try:
        paths = collect_files(list(files) + (role.files if role else []), list(extensions))
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e

    store = open_store()
    existing = None
    try:
        if chat_id:
            existing = store.get_chat(chat_id)
        elif continue_:
            existing = store.latest_chat()
    except StoreError as e:
        raise click.ClickException(str(e)) from e

    try:
        generator = get_generator()
    except ValueError as e:
        raise click.ClickException(f"Could not create generator: {e}") from e

    additional = [Message(role="system", content=build_system_prompt(role))] + file_messages(paths)
    registry = create_default_registry() if tools else None
    logger.info(f"Starting chat: model={model_name} chat={existing.id if existing else 'new'} files={len(paths)}")

    def build_session(post):
        return ChatSession(
            generator, store, config,
            post=post,
            chat=existing,
            additional_messages=additional,
            registry=registry,
            files=paths,
            tags=repository_tags(),
            summary_model=settings.summary_model,
        )

    app = ChatApp(build_session, InputHistory(settings.history_path), role_name=role.name if role else "")
    app.run()


@cli.group()
def chats():
    """Browse stored chats."""


@chats.command("list")
@click.option("--page-size", type=int, default=20)
@click.option("--page-token", default="")
@click.option("--tag", "tags", multiple=True, help="Only chats carrying every given tag.")
@click.option("--favorite", is_flag=True, help="Only favorite chats.")
def list_chats(page_size, page_token, tags, favorite):
    store = open_store()
    try:
        result, next_token = store.list_chats(
            page_size=page_size, page_token=page_token, tags=list(tags), favorite=True if favorite else None,
        )
    except StoreError as e:
        raise click.ClickException(str(e)) from e
    print_chats(result, next_token)


@chats.command("search")
@click.argument("query")
@click.option("--page-size", type=int, default=20)
@click.option("--page-token", default="")
def search_chats(query, page_size, page_token):
    store = open_store()
    try:
        result, next_token = store.search_chats(query, page_size=page_size, page_token=page_token)
    except StoreError as e:
        raise click.ClickException(str(e)) from e
    print_chats(result, next_token)


@chats.command("show")
@click.argument("chat_id")
def show_chat(chat_id):
    store = open_store()
    try:
        found = store.get_chat(chat_id)
    except StoreError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"# {found.title or '(untitled)'}  [{found.id}]")
    for path in found.files:
        click.echo(f"file: {path}")
    for message in found.messages:
        label = message.role if not message.error else f"{message.role} ({message.error})"
        click.echo(f"\n## {label}")
        if message.reasoning:
            click.echo(f"(reasoning) {message.reasoning}")
        if message.content:
            click.echo(message.content)
        for tool_call in message.tool_calls:
            click.echo(f"-> {tool_call.name} {tool_call.arguments}")


@chats.command("delete")
@click.argument("chat_id")
def delete_chat(chat_id):
    store = open_store()
    try:
        store.delete_chat(chat_id)
    except StoreError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Deleted {chat_id}")


@cli.command()
@click.option("--model", "-m", default="", help="Model used for titles (defaults to the summary model).")
def titles(model):
    """Generate titles for chats that have none."""
    from parley.services.llm import get_generator
    from parley.services.summary import generate_missing_titles

    model_name = settings.resolve_model(model or settings.summary_model)
    if not model_name:
        raise click.ClickException("No summary model configured (PARLEY_SUMMARY_MODEL)")
    store = open_store()
    try:
        generator = get_generator()
    except ValueError as e:
        raise click.ClickException(f"Could not create generator: {e}") from e
    count = asyncio.run(generate_missing_titles(generator, store, model_name))
    click.echo(f"Titled {count} chat(s)")



@cli.command()
@click.option("--model", "-m", default="", help="Model name or alias (defaults to the diff model).")
@click.option("--message", default="", help="Extra guidance for the commit message.")
def diff(model, message):
    """Write a commit message for the staged changes."""
    from parley.services.commit import CommitError, commit, generate_commit_message, staged_diff
    from parley.services.llm import get_generator

    model_name = settings.resolve_model(model or settings.diff_model or settings.default_model)
    try:
        staged = staged_diff()
    except CommitError as e:
        raise click.ClickException(str(e)) from e
    try:
        generator = get_generator()
    except ValueError as e:
        raise click.ClickException(f"Could not create generator: {e}") from e

    click.secho(model_name, bold=True)
    config = GenerateConfig(model=model_name, max_tokens=settings.max_tokens, temperature=settings.temperature)
    try:
        commit_message = asyncio.run(
            generate_commit_message(generator, staged, config, settings.diff_ignore_files, hint=message)
        )
    except GeneratorError as e:
        raise click.ClickException(str(e)) from e
    click.echo(commit_message)

    if not click.confirm("Apply commit"):
        return
    with tempfile.NamedTemporaryFile("w", prefix="parley-commit-", suffix=".txt") as f:
        f.write(commit_message)
        f.flush()
        try:
            commit(f.name)
        except CommitError as e:
            raise click.ClickException(str(e)) from e
    click.echo("Committed")
