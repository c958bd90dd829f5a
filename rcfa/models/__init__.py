"""
RCFA Core
Model package — shared SQLAlchemy handle.

Every model module imports ``db`` from here so that the Flask app factory
can bind a single extension instance:

    from rcfa.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
