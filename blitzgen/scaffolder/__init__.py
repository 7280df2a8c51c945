"""blitzgen scaffolder -- turns the remote template into a customised project.

Quick usage::

    from blitzgen.models import ProjectOptions
    from blitzgen.scaffolder import ProjectGenerator

    options = ProjectOptions(project_name="my-app", target_dir=Path("my-app"))
    result = await ProjectGenerator(options).generate()
"""

from blitzgen.scaffolder.fetcher import TemplateFetcher
from blitzgen.scaffolder.generator import (
    DEFAULT_STAGES,
    GenerationContext,
    GenerationResult,
    ProjectGenerator,
    Stage,
)
from blitzgen.scaffolder.templates import TemplateRenderer

__all__ = [
    "DEFAULT_STAGES",
    "GenerationContext",
    "GenerationResult",
    "ProjectGenerator",
    "Stage",
    "TemplateFetcher",
    "TemplateRenderer",
]
