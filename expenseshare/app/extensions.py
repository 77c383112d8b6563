"""
extensions.py — Flask extension singletons.

Creates SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without circular imports. The app factory attaches them
with init_app(app); nothing is bound at import time, so every test can build
its own isolated app.

    from expenseshare.app.extensions import db, ma

Schema inheritance rule:
  Validation schemas in app/schemas/ inherit from marshmallow.Schema directly,
  NOT from ma.Schema. ma.Schema needs an active application context and the
  unit tests under tests/unit/ run without one.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ma = Marshmallow()
