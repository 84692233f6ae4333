"""
Console output for the demonstration.

Everything the operator reads goes through here, so the runner never deals
with styling and tests can capture output with a recording Console.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.rule import Rule

BANNER = """\
╔═══════════════════════════════════════════════════════════════╗
║                                                               ║
║   🚀 TRAEFIK NGINX PROVIDER DEMONSTRATION 🚀                  ║
║                                                               ║
║   This demo shows the transition from the NGINX Ingress       ║
║   Controller to Traefik with its NGINX provider               ║
║                                                               ║
╚═══════════════════════════════════════════════════════════════╝"""

SUMMARY = """\
╔═══════════════════════════════════════════════════════════════╗
║                    🎯 SUMMARY                                 ║
║                                                               ║
║  ✅ Verified cluster connection and setup                     ║
║  ✅ NGINX Ingress Controller deployed and tested              ║
║  ✅ NGINX Controller removed - backend became inaccessible    ║
║  ✅ Traefik with NGINX provider deployed                      ║
║  ✅ Backend accessible again through Traefik                  ║
║                                                               ║
║  🔑 KEY INSIGHT: The NGINX Ingress resources remained         ║
║     unchanged! Traefik discovered and processed them          ║
║     using its NGINX provider.                                 ║
╚═══════════════════════════════════════════════════════════════╝"""


class Output:
    """Styled messages and interactive pauses."""

    def __init__(self, console: Optional[Console] = None, interactive: bool = True):
        self.console = console or Console(highlight=False)
        self.interactive = interactive

    def step(self, title: str) -> None:
        self.console.print()
        self.console.print(Rule(style="cyan"))
        self.console.print(f"[bold white]{escape(title)}[/]")
        self.console.print(Rule(style="cyan"))
        self.console.print()

    def info(self, message: str) -> None:
        self.console.print(f"[blue]ℹ️  {escape(message)}[/]")

    def success(self, message: str) -> None:
        self.console.print(f"[green]✅ {escape(message)}[/]")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠️  {escape(message)}[/]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]❌ {escape(message)}[/]")

    def command(self, text: str) -> None:
        """Echo a command line the way the operator would type it."""
        self.console.print(f"[magenta]{escape(text)}[/]")

    def block(self, text: str, style: str = "magenta") -> None:
        self.console.print(escape(text), style=style)

    def banner(self) -> None:
        self.console.print(BANNER, style="magenta")

    def summary(self) -> None:
        self.console.print(SUMMARY, style="green")

    def response(self, status_code: Optional[int], body: str) -> None:
        """Print the details of an HTTP response."""
        self.console.print()
        self.console.print("[cyan]📋 Response Details:[/]")
        self.console.print(f"[bold white]Status Code: {status_code}[/]")
        self.console.print("[bold white]Response Body:[/]")
        self.console.print("-" * 40, style="yellow")
        if body.strip():
            self.console.print(escape(body), style="green")
        else:
            self.console.print("(Empty or error response)", style="red")
        self.console.print("-" * 40, style="yellow")
        self.console.print()

    def pause(self, prompt: str = "Press Enter to continue...", clear: bool = True) -> None:
        """Wait for Enter in interactive mode. No-op otherwise."""
        if not self.interactive:
            return
        self.console.print()
        try:
            self.console.input(f"[yellow]{escape(prompt)}[/]")
        except EOFError:
            # stdin closed, nothing to wait for
            self.interactive = False
            return
        if clear:
            self.console.clear()


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr through rich; DEBUG shows every command run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
