"""
WorkTrack data layer.

``db`` is the shared Flask-SQLAlchemy handle. Model modules import it from
here; the app factory imports the model modules so metadata is complete
before ``db.create_all()`` or Alembic autogenerate runs.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
