"""Flask health check route registration."""

from flask import Flask, current_app


def register_health_route(app: Flask) -> None:
    @app.get("/health")
    def health():
        engine = current_app.extensions.get("classplan")
        return {"ok": True, "engine": engine is not None}, 200

__all__ = ["register_health_route"]
