"""
Pay-TV Back-Office Portal
Model package: exports the shared Flask-SQLAlchemy handle.

Usage:
    from portal.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
