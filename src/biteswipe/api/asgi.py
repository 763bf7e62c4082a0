"""ASGI entrypoint for the BiteSwipe API."""

from biteswipe.api.app import create_app
from biteswipe.containers import build_container

app = create_app(build_container())
