"""ASGI entrypoint for the week storage API."""

from elevation_loom.api.app import create_app
from elevation_loom.containers import build_container

app = create_app(build_container())
