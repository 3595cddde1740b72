"""Project scaffolding and style bootstrap."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import DoughError
from .style import DEFAULT_STYLE, STYLE_FILE

logger = logging.getLogger(__name__)

TEMPLATES = {
    "default": {
        "1.md": "# Hello, world!\n",
    },
    "code": {
        "1.md": "# Hello, world!\n\nPress → for the next slide.\n",
        "2.md": (
            "## Running code\n\n"
            "```python\n"
            "print(\"Hello from dough\")\n"
            "```\n\n"
            "Press 1 to run the block above. $[c]$\n"
        ),
    },
}


def ensure_style(project_dir) -> bool:
    """Write the default ``style.yml`` unless the project already has one."""
    style_path = Path(project_dir) / STYLE_FILE
    if style_path.exists():
        logger.debug("%s exists. Skipped.", style_path)
        return False
    logger.warning("%s not found, writing the default style", style_path)
    style_path.write_text(DEFAULT_STYLE, encoding="utf-8")
    return True


def create_project(path, template: str = "default") -> Path:
    """Create a project directory holding the template's slides and a style file."""
    project_dir = Path(path)
    if template not in TEMPLATES:
        raise DoughError(f"unknown template '{template}', choose from {', '.join(sorted(TEMPLATES))}")
    if project_dir.exists():
        raise DoughError(f"project directory '{project_dir}' already exists")
    try:
        project_dir.mkdir(parents=True)
    except OSError as e:
        raise DoughError(f"failed to create project directory: {e}") from e
    for name, content in TEMPLATES[template].items():
        (project_dir / name).write_text(content, encoding="utf-8")
    ensure_style(project_dir)
    logger.info("created project '%s' from template '%s'", project_dir, template)
    return project_dir
