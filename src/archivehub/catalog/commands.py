"""Catalog CLI Commands for archivehub.

Top-level commands:
- tree
- ls
- install
- config
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from ..config import Settings
from ..context import CatalogContext
from ..installer import DownloadInstaller
from ..urls import base_url
from .client import CatalogError, HTTPCatalogClient
from .nodes import CatalogNode, DirNode, NodeKind, Provenance, sorted_nodes
from .tree import CatalogTree

console = Console()

_PROVENANCE_STYLE = {
    Provenance.LOCAL: "[green]local[/green]",
    Provenance.REMOTE: "[cyan]remote[/cyan]",
    Provenance.BOTH: "[magenta]both[/magenta]",
}


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.load()
    if getattr(args, "primary", None):
        settings.primary_url = base_url(args.primary)
    if getattr(args, "remote", None) is not None:
        settings.remote_url = base_url(args.remote)
    return settings


async def _open_tree(settings: Settings) -> CatalogTree:
    """Build the context and tree for one CLI invocation."""
    context = CatalogContext.from_settings(settings)

    if not context.local_roots and isinstance(context.primary, HTTPCatalogClient):
        # fall back to the roots the primary server itself uses
        try:
            context.local_roots = [Path(p) for p in await context.primary.local_roots()]
        except CatalogError as e:
            console.print(f"[yellow]Warning:[/yellow] could not read local roots: {e}")

    tree = CatalogTree(context)
    install_root = settings.resolved_install_root() or (context.local_roots[0] if context.local_roots else None)
    if install_root is not None:
        context.installer = DownloadInstaller(context, install_root, on_complete=tree.catalog_updated)
    return tree


def _label(node: CatalogNode) -> str:
    if node.kind is NodeKind.GROUP:
        label = f"[bold]{node.name}[/bold] {_PROVENANCE_STYLE[node.provenance]}"
    elif node.kind is NodeKind.ARCHIVE:
        label = f"{node.name} {_PROVENANCE_STYLE[node.provenance]}"
    elif node.kind is NodeKind.DIRECTORY:
        label = f"[blue]{node.name}/[/blue]"
    else:
        label = node.name
    if getattr(node, "downloadable", False):
        label += " [yellow](downloadable)[/yellow]"
    return label


def _add_branch(branch: Tree, nodes: List[CatalogNode], depth: Optional[int]) -> None:
    for node in sorted_nodes(nodes):
        child = branch.add(_label(node))
        if node.kind is NodeKind.GROUP and (depth is None or depth > 1):
            _add_branch(child, list(node.children), None if depth is None else depth - 1)


def _print_warnings(tree: CatalogTree) -> None:
    for warning in tree.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


# --- Browsing Commands ---

async def _tree(args: argparse.Namespace) -> int:
    tree = await _open_tree(_load_settings(args))
    try:
        if args.group:
            group = await tree.find(args.group)
            if group is None or group.kind is not NodeKind.GROUP:
                console.print(f"[red]No group '{args.group}' in the catalog.[/red]")
                _print_warnings(tree)
                return 1
            title, nodes = group.id, await tree.get_children(group)
        else:
            title, nodes = "Catalog", await tree.get_roots()

        if not nodes:
            console.print("[yellow]No archives found.[/yellow]")
        else:
            root = Tree(f"[bold]{title}[/bold]")
            _add_branch(root, nodes, args.depth)
            console.print(root)

            snapshot = await tree.snapshot()
            archives = snapshot.archives()
            missing = [a for a in archives if a.downloadable]
            console.print(
                f"\n[bold]Total:[/bold] {len(snapshot.groups())} group(s), "
                f"{len(archives)} archive(s), {len(missing)} downloadable"
            )
        _print_warnings(tree)
        return 0
    finally:
        tree.context.close()


async def _ls(args: argparse.Namespace) -> int:
    tree = await _open_tree(_load_settings(args))
    try:
        archive = await tree.find(args.archive)
        if archive is None or archive.kind is not NodeKind.ARCHIVE:
            console.print(f"[red]No archive '{args.archive}' in the catalog.[/red]")
            return 1

        node: CatalogNode = DirNode(archive.id, args.path.strip("/")) if args.path else archive
        entries = await tree.get_children(node)
        if not entries:
            console.print("[yellow]No entries found.[/yellow]")
            _print_warnings(tree)
            return 0

        table = Table(title=f"{archive.id}/{args.path or ''}".rstrip("/"))
        table.add_column("Name", style="bold")
        table.add_column("Type")
        table.add_column("Format")
        table.add_column("Path", style="dim")
        for entry in sorted_nodes(entries):
            table.add_row(
                entry.name,
                entry.kind.value,
                getattr(entry, "format", ""),
                str(entry.resource_path or ""),
            )
        console.print(table)
        _print_warnings(tree)
        return 0
    finally:
        tree.context.close()


# --- Install Commands ---

async def _install(args: argparse.Namespace) -> int:
    tree = await _open_tree(_load_settings(args))
    try:
        node = await tree.find(args.id)
        if node is None:
            console.print(f"[red]No group or archive '{args.id}' in the catalog.[/red]")
            _print_warnings(tree)
            return 1

        if args.dry_run:
            request = await tree.plan_install(node)
        else:
            request = await tree.install(node)

        if request is None:
            console.print(f"[green]Nothing to install:[/green] {node.id} is already local.")
            return 0

        verb = "Would install" if args.dry_run else "Installing"
        console.print(f"{verb} {len(request.archives)} archive(s) from {request.remote_url}:")
        for archive_id in request.archives:
            console.print(f"  {archive_id}")

        installer = tree.context.installer
        if not args.dry_run and isinstance(installer, DownloadInstaller):
            with console.status("Downloading..."):
                await installer.wait()
            console.print("[green]Install complete.[/green]")
        return 0
    finally:
        tree.context.close()


# --- Config Commands ---

def cmd_config(args: argparse.Namespace) -> int:
    """Show or update settings."""
    settings = Settings.load()
    changed = False

    if args.set_primary:
        settings.primary_url = args.set_primary
        changed = True
    if args.set_remote is not None:
        settings.remote_url = args.set_remote
        changed = True
    if args.root:
        settings.local_roots = [str(Path(r).expanduser()) for r in args.root]
        changed = True
    if args.install_root is not None:
        settings.install_root = args.install_root
        changed = True
    if args.timeout is not None:
        settings.timeout_s = args.timeout
        changed = True

    if changed:
        path = settings.save()
        console.print(f"[green]Wrote config:[/green] {path}")

    # global --primary/--remote apply to this invocation only
    settings = _load_settings(args)

    table = Table(title="archivehub settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("primary_url", settings.primary_url)
    table.add_row("remote_url", settings.remote_url or "[dim]none[/dim]")
    table.add_row("local_roots", "\n".join(settings.local_roots) or "[dim]ask primary[/dim]")
    table.add_row("install_root", settings.install_root or "[dim]first local root[/dim]")
    table.add_row("timeout_s", str(settings.timeout_s))
    console.print(table)
    return 0


def _run(coro) -> int:
    try:
        return asyncio.run(coro)
    except CatalogError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


def cmd_tree(args: argparse.Namespace) -> int:
    """Show the unified catalog tree."""
    return _run(_tree(args))


def cmd_ls(args: argparse.Namespace) -> int:
    """List the directories and files of an archive."""
    return _run(_ls(args))


def cmd_install(args: argparse.Namespace) -> int:
    """Install a group or archive with its dependencies."""
    return _run(_install(args))


# --- Parser Setup ---

def add_catalog_commands(parser: argparse.ArgumentParser, subparsers: argparse._SubParsersAction) -> None:
    """Add catalog commands to the main parser."""

    # tree
    p_tree = subparsers.add_parser("tree", help="Show the unified catalog tree")
    p_tree.add_argument("--group", "-g", help="Only show this group")
    p_tree.add_argument("--depth", "-d", type=int, help="Number of levels to show")
    p_tree.set_defaults(func=cmd_tree)

    # ls
    p_ls = subparsers.add_parser("ls", help="List files of an archive")
    p_ls.add_argument("archive", help="Archive ID")
    p_ls.add_argument("path", nargs="?", help="Directory inside the archive")
    p_ls.set_defaults(func=cmd_ls)

    # install
    p_install = subparsers.add_parser("install", help="Install a group or archive from the remote")
    p_install.add_argument("id", help="Group or archive ID")
    p_install.add_argument("--dry-run", "-n", action="store_true", help="Only show what would be installed")
    p_install.set_defaults(func=cmd_install)

    # config
    p_config = subparsers.add_parser("config", help="Show or update settings")
    p_config.add_argument("--primary", dest="set_primary", help="Save the primary (local) catalog URL")
    p_config.add_argument("--remote", dest="set_remote", help="Save the remote catalog URL ('' to disable)")
    p_config.add_argument("--root", action="append", help="Local root (repeatable, replaces the list)")
    p_config.add_argument("--install-root", help="Directory new archives are installed into")
    p_config.add_argument("--timeout", type=float, help="Request timeout in seconds")
    p_config.set_defaults(func=cmd_config)


def run_catalog_command(args: argparse.Namespace) -> int:
    """Run a catalog command if func is set."""
    if hasattr(args, "func") and args.func:
        return args.func(args)
    return -1  # Not a catalog command
