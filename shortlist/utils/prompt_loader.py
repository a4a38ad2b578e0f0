"""
Jinja2-based prompt template loading and rendering.

Templates live in the package's prompts/ directory, e.g.
``screening/batch_analysis.j2`` (user prompt) and ``screening/system.j2``
(system prompt) used by the batch classifier.

Usage:
    from shortlist.utils.prompt_loader import render_prompt

    prompt = render_prompt(
        "screening/batch_analysis.j2",
        candidates=candidate_lines,
        rules=rules_summary,
    )
"""

from pathlib import Path
from typing import Any, Optional

import structlog
from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    Undefined,
    UndefinedError,
)

logger = structlog.get_logger(__name__)


class PromptLoader:
    """
    Manages loading and rendering of Jinja2 prompt templates.

    Templates are loaded from shortlist/prompts/ unless another directory is given.
    """

    def __init__(
        self,
        template_dir: Optional[Path] = None,
        strict_undefined: bool = True,
    ) -> None:
        """
        Initialize PromptLoader with Jinja2 environment.

        Args:
            template_dir: Base directory for templates (defaults to shortlist/prompts/)
            strict_undefined: If True, raise error for undefined variables (default: True)
        """
        if template_dir is None:
            # Package root is one level up from this file (shortlist/utils/)
            template_dir = Path(__file__).parent.parent / "prompts"

        self.template_dir = template_dir
        self.strict_undefined = strict_undefined

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,  # Prompts are text, not HTML
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined if strict_undefined else Undefined,
        )

        self.env.filters["or_na"] = self._or_na_filter

        logger.debug(
            "PromptLoader initialized",
            template_dir=str(self.template_dir),
            strict_undefined=strict_undefined,
        )

    def render(
        self,
        template_name: str,
        correlation_id: Optional[str] = None,
        **variables: Any,
    ) -> str:
        """
        Render a template with provided variables.

        Args:
            template_name: Path relative to prompts/ (e.g., "screening/batch_analysis.j2")
            correlation_id: Optional correlation ID for logging
            **variables: Template variables as keyword arguments

        Returns:
            Rendered prompt string

        Raises:
            TemplateNotFound: If template file doesn't exist
            TemplateSyntaxError: If template has syntax errors
            UndefinedError: If strict_undefined=True and variable is missing
        """
        log = logger.bind(
            template_name=template_name,
            correlation_id=correlation_id,
        )

        try:
            template = self.env.get_template(template_name)
            rendered = template.render(**variables)
            log.debug(
                "Template rendered",
                rendered_length=len(rendered),
                variables_provided=list(variables.keys()),
            )
            return rendered

        except TemplateNotFound as e:
            log.error(
                "Template not found",
                template_dir=str(self.template_dir),
                error=str(e),
            )
            raise

        except TemplateSyntaxError as e:
            log.error("Template syntax error", error=str(e), lineno=e.lineno)
            raise

        except UndefinedError as e:
            log.error(
                "Undefined variable in template",
                error=str(e),
                variables_provided=list(variables.keys()),
            )
            raise

    @staticmethod
    def _or_na_filter(value: Any) -> Any:
        """Render missing candidate fields as N/A."""
        if value is None or value == "":
            return "N/A"
        return value


_default_loader: Optional[PromptLoader] = None


def get_default_loader() -> PromptLoader:
    """
    Get or create the default PromptLoader instance.

    Returns:
        Global PromptLoader instance
    """
    global _default_loader
    if _default_loader is None:
        _default_loader = PromptLoader()
    return _default_loader


def render_prompt(
    template_name: str,
    correlation_id: Optional[str] = None,
    **variables: Any,
) -> str:
    """
    Convenience function to render a prompt template with the default loader.

    Example:
        >>> prompt = render_prompt(
        ...     "screening/system.j2",
        ... )
    """
    loader = get_default_loader()
    return loader.render(template_name, correlation_id=correlation_id, **variables)
