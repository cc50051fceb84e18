"""ASGI entrypoint for the nutrition scanner API."""

from nutrition_scanner.api.app import create_app
from nutrition_scanner.containers import build_container

app = create_app(build_container())
