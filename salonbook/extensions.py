"""Extensions shared by the app factory, the models and the scheduling core."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

# Bound to the app in ``create_app``; ``store`` and ``scheduling.guard``
# run all their queries through ``db.session``.
db = SQLAlchemy()
