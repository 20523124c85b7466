"""
Display Manager for Stageline.
Centralizes all console output so the executor stays free of UI code.
"""
import threading
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from stageline.core.types import ExecutionResult, RunResult, StepResult

# Custom theme for semantic coloring
stageline_theme = Theme({
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "stage": "bold blue",
    "command": "bold white",
    "output": "dim white",
})


class DisplayManager:
    """
    Manages all console output.
    Thread-safe singleton pattern to ensure consistent access.
    """

    _instance: Optional["DisplayManager"] = None
    _lock = threading.Lock()

    console: Console
    quiet: bool
    show_output: bool

    def __new__(cls) -> "DisplayManager":
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking pattern
                if cls._instance is None:
                    cls._instance = super(DisplayManager, cls).__new__(cls)
                    cls._instance.console = Console(theme=stageline_theme)
                    cls._instance.quiet = False
                    cls._instance.show_output = True
        return cls._instance

    def show_run_start(self, pipeline: str, build_id: str, stage_count: int) -> None:
        """Show the run banner."""
        if self.quiet:
            return
        self.console.print(
            f"[stage]🚀 Pipeline {escape(pipeline)}[/stage] [dim]build #{build_id} · {stage_count} stage(s)[/dim]"
        )

    def show_stage(self, index: int, total: int, name: str) -> None:
        """Show a stage header."""
        if self.quiet:
            return
        self.console.rule(f"[stage]Stage {index}/{total}: {escape(name)}[/stage]")

    def show_post(self, condition: str) -> None:
        """Show a post block header."""
        if self.quiet:
            return
        self.console.rule(f"[stage]Post ({condition})[/stage]")

    def show_step(self, result: StepResult) -> None:
        """Show a finished step with its captured output."""
        if self.quiet:
            return
        if result.success:
            icon, style = "✅", "success"
        elif result.best_effort:
            icon, style = "⚠️ ", "warning"
        else:
            icon, style = "❌", "error"

        self.console.print(f"{icon} [{style}]{escape(result.name)}[/{style}]", highlight=False)
        if self.show_output and result.output:
            self.console.print(result.output, style="output", markup=False, highlight=False)
        if result.error and not result.success:
            self.console.print(f"[dim]{escape(result.error)}[/dim]", highlight=False)

    def show_stage_result(self, result: ExecutionResult) -> None:
        """Show the stage verdict."""
        if self.quiet or result.success:
            return
        self.console.print(
            f"[error]❌ Stage '{escape(result.stage_name)}' failed: {escape(result.error or '')}[/error]"
        )

    def show_summary(self, result: RunResult) -> None:
        """Show the summary table and the run verdict."""
        if self.quiet:
            return
        table = Table(title=escape(f"{result.pipeline} #{result.build_id}"))
        table.add_column("Stage", style="cyan")
        table.add_column("Status")
        table.add_column("Duration", justify="right")

        for stage in result.stages:
            status = "[success]success[/success]" if stage.success else "[error]failure[/error]"
            table.add_row(escape(stage.stage_name), status, f"{stage.duration_ms / 1000:.1f}s")

        if result.post:
            post_ok = all(step.success or step.best_effort for step in result.post)
            status = "[success]success[/success]" if post_ok else "[error]failure[/error]"
            post_ms = sum(step.duration_ms for step in result.post)
            table.add_row("post", status, f"{post_ms / 1000:.1f}s")

        self.console.print(table)

        if result.success:
            self.show_success(f"Pipeline {result.pipeline} succeeded")
        else:
            self.show_error(
                f"Pipeline {result.pipeline} failed at stage '{result.failed_stage}'",
                result.error,
            )

    def show_error(self, message: str, details: Optional[str] = None) -> None:
        """Show an error message."""
        self.console.print(f"[error]❌ {escape(message)}[/error]")
        if details:
            self.console.print(f"[dim]{escape(details)}[/dim]")

    def show_success(self, message: str) -> None:
        """Show a success message."""
        self.console.print(f"[success]✅ {message}[/success]")

    def show_warning(self, message: str) -> None:
        """Show a warning message."""
        self.console.print(f"[warning]⚠️  {message}[/warning]")

    def show_info(self, message: str) -> None:
        """Show an info message."""
        self.console.print(f"[info]ℹ️  {message}[/info]")

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (for testing)."""
        cls._instance = None


def get_display_manager() -> DisplayManager:
    """Get the global DisplayManager instance."""
    return DisplayManager()


def reset_display_manager() -> None:
    """Reset the global DisplayManager (for testing)."""
    DisplayManager.reset_instance()
