# Overview: Flask extension instances shared by the storefront app.

import os

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Revisions live beside the package, not in the process working directory.
MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")

db = SQLAlchemy()
migrate = Migrate(directory=MIGRATIONS_DIR)
