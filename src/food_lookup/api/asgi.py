"""ASGI entrypoint for the food lookup API."""

from food_lookup.api.app import create_app
from food_lookup.containers import build_container

app = create_app(build_container())
