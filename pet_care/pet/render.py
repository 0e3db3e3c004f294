from pathlib import Path
from typing import Iterable, Optional

from jinja2 import Environment, FileSystemLoader

from .models import PetStatusView


class PetRenderer:
    """Plain-text cards for hosts without a GUI. Reads status views only."""

    def __init__(self, template_dir: Optional[Path] = None):
        # __file__ is .../pet_care/pet/render.py -> templates sit next to it
        self.template_dir = Path(template_dir) if template_dir else Path(__file__).resolve().parent / "templates"
        self._env = Environment(loader=FileSystemLoader(str(self.template_dir)),
                                trim_blocks=True, lstrip_blocks=True)

    def render_template(self, template_name: str, **context) -> str:
        tpl = self._env.get_template(template_name)
        return tpl.render(**context)

    def render_status(self, view: PetStatusView) -> str:
        return self.render_template("pet_status.txt.j2", pet=view)

    def render_my_pets(self, views: Iterable[PetStatusView], selected_id: Optional[str] = None) -> str:
        return self.render_template("my_pets.txt.j2", pets=list(views), selected_id=selected_id)
