"""CLI commands for markform."""

import base64
import secrets
import sys
from pathlib import Path

import click

from markform.config import clear_settings_cache, get_settings, set_config_path
from markform.core import Form
from markform.errors import FormError


@click.group()
@click.version_option(package_name="markform")
@click.option(
    "-f",
    "--config-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file to use instead of ./markform.yaml",
)
def cli(config_file):
    """markform - HTML forms as validated, re-renderable objects."""
    if config_file is not None:
        set_config_path(config_file)
        clear_settings_cache()


SECRET_ENV_VAR = "MARKFORM_SECRET_KEY"

_KEY_FORMATS = {
    "urlsafe": secrets.token_urlsafe,
    "hex": secrets.token_hex,
    "base64": lambda n: base64.b64encode(secrets.token_bytes(n)).decode("ascii"),
}


def _write_env_value(env_path: Path, name: str, value: str) -> None:
    """Set ``name=value`` in a .env file, replacing an existing assignment."""
    lines = env_path.read_text().splitlines() if env_path.exists() else []
    assignment = f"{name}={value}"
    prefix = f"{name}="

    if any(line.startswith(prefix) for line in lines):
        lines = [assignment if line.startswith(prefix) else line for line in lines]
    else:
        lines.append(assignment)

    env_path.write_text("\n".join(lines) + "\n")


@cli.command()
@click.option(
    "--write",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Store the key as {SECRET_ENV_VAR} in this .env file",
)
@click.option(
    "--format",
    "fmt",
    default="urlsafe",
    type=click.Choice(list(_KEY_FORMATS)),
    help="Encoding of the generated key",
)
@click.option("--length", default=32, type=click.IntRange(min=16), help="Random bytes in the key")
def secret(write, fmt, length):
    """Generate a secret for signing CSRF tokens."""
    key = _KEY_FORMATS[fmt](length)

    if write is None:
        click.echo(key)
        return

    _write_env_value(write, SECRET_ENV_VAR, key)
    click.echo(f"{SECRET_ENV_VAR} written to {write}")


secret_option = click.option(
    "--secret",
    default=None,
    help="CSRF secret to use instead of the configured one",
)


def _load_form(source: str, secret_key: str | None) -> Form:
    try:
        settings = get_settings()
        if secret_key is not None:
            settings = settings.model_copy(update={"secret_key": secret_key})
        return Form(source, settings=settings)
    except FormError as e:
        raise click.ClickException(str(e))


def _parse_pairs(pairs: tuple[str, ...]) -> dict:
    """Turn name=value pairs into a data mapping; name[]=value builds a list."""
    data: dict = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep:
            raise click.BadParameter(f"Expected name=value, got {pair!r}")
        if name.endswith("[]"):
            data.setdefault(name[:-2], []).append(value)
        else:
            data[name] = value
    return data


@cli.command()
@click.argument("source")
@click.option("--set", "assignments", multiple=True, help="Field value as name=value")
@secret_option
def render(source, assignments, secret):
    """Render a form template, optionally after setting values."""
    form = _load_form(source, secret)
    try:
        form.set_values(_parse_pairs(assignments))
        click.echo(form.render())
    except FormError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("source")
@secret_option
def fields(source, secret):
    """List the fields of a form template with their constraints."""
    form = _load_form(source, secret)
    for field in form:
        shape = "list" if field.collection else "single"
        click.echo(f"{field.name} ({field.kind.value}, {shape})")
        for constraint in field.constraints:
            click.echo(f"  {constraint!r}")


@cli.command()
@click.argument("source")
@click.option("--data", "pairs", multiple=True, help="Submitted value as name=value")
@secret_option
def check(source, pairs, secret):
    """Validate submitted values against a form template."""
    form = _load_form(source, secret)
    errors = form.check(_parse_pairs(pairs))

    if not errors:
        click.echo("OK")
        return

    for name, messages in errors.items():
        for message in messages:
            click.echo(f"{name}: {message}")
    sys.exit(1)
