"""Shared CLI output formatters."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from tandem.host.client import Catalog  # noqa: TC001

console = Console()
# The peer's stdout carries the protocol; anything human-readable goes here.
err_console = Console(stderr=True)


def print_catalog(catalog: Catalog, *, as_json: bool = False) -> None:
    """Pretty-print everything a peer advertises."""
    if as_json:
        console.print_json(catalog.model_dump_json(by_alias=True, exclude_none=True))
        return

    tools = Table(title="Tools")
    tools.add_column("Name", style="cyan")
    tools.add_column("Title")
    tools.add_column("Arguments")
    tools.add_column("Description")
    for tool in catalog.tools:
        properties = tool.input_schema.get("properties", {})
        tools.add_row(
            tool.name,
            tool.annotations.title or tool.title or "-",
            ", ".join(properties) or "-",
            _truncate(tool.description),
        )

    resources = Table(title="Resources")
    resources.add_column("Name", style="cyan")
    resources.add_column("URI")
    resources.add_column("MIME type")
    resources.add_column("Description")
    for resource in catalog.resources:
        resources.add_row(
            resource.name, resource.uri, resource.mime_type or "-", _truncate(resource.description)
        )

    templates = Table(title="Resource Templates")
    templates.add_column("Name", style="cyan")
    templates.add_column("URI template")
    templates.add_column("MIME type")
    templates.add_column("Description")
    for template in catalog.resource_templates:
        templates.add_row(
            template.name,
            template.uri_template,
            template.mime_type or "-",
            _truncate(template.description),
        )

    prompts = Table(title="Prompts")
    prompts.add_column("Name", style="cyan")
    prompts.add_column("Arguments")
    prompts.add_column("Description")
    for prompt in catalog.prompts:
        arguments = ", ".join(
            f"{arg.name}{'' if arg.required else '?'}" for arg in prompt.arguments
        )
        prompts.add_row(prompt.name, arguments or "-", _truncate(prompt.description))

    for table in (tools, resources, templates, prompts):
        console.print(table)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
