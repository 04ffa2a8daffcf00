"""Static sites: a bare index page, or a Bootstrap 5 + jQuery starter."""

from __future__ import annotations

import html
from pathlib import Path

from devstack.core.models.project import StackKind
from devstack.core.services.scaffolders.base import Scaffolder

_STATIC_INDEX = """\
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>{name}</title>
</head>
<body>
  <h1>{name}</h1>
</body>
</html>
"""

_BOOTSTRAP_INDEX = """\
<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width,initial-scale=1">
  <title>{name}</title>
  <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.2/dist/css/bootstrap.min.css" rel="stylesheet">
</head>
<body class="p-4">
  <div class="container">
    <h1 class="mb-4">{name}</h1>
    <p id="msg">Bootstrap 5 + jQuery starter</p>
    <button class="btn btn-primary" id="btn">Click me</button>
  </div>
  <script src="https://code.jquery.com/jquery-3.7.1.min.js"></script>
  <script src="https://cdn.jsdelivr.net/npm/bootstrap@5.3.2/dist/js/bootstrap.bundle.min.js"></script>
  <script>
    $('#btn').click(() => $('#msg').text('Clicked at ' + new Date()));
  </script>
</body>
</html>
"""


class StaticScaffolder(Scaffolder):
    kind = StackKind.STATIC
    template = _STATIC_INDEX

    def generate(self, name: str, target_dir: Path, options: dict[str, str]) -> Path:
        self._mkdir(target_dir)
        self._write(target_dir / "index.html", self.template.format(name=html.escape(name)))
        return target_dir


class BootstrapScaffolder(StaticScaffolder):
    kind = StackKind.STATIC_BOOTSTRAP
    template = _BOOTSTRAP_INDEX
