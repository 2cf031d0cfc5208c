#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Database models for guardians, portfolios and highlights
"""

import secrets
import string
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import check_password_hash, generate_password_hash

db = SQLAlchemy()

PORTFOLIO_TEMPLATES = ('ren', 'maeve', 'jack', 'adler')
HIGHLIGHT_TYPES = ('achievement', 'creative_work', 'milestone', 'activity', 'reflection_note')

SHORT_ID_CHARS = string.ascii_letters + string.digits
SHORT_ID_LENGTH = 6


def generate_short_id():
    """6-character alphanumeric code used in share links (/p/<short_id>)"""
    return ''.join(secrets.choice(SHORT_ID_CHARS) for _ in range(SHORT_ID_LENGTH))


def is_valid_short_id(short_id):
    return (
        isinstance(short_id, str)
        and len(short_id) == SHORT_ID_LENGTH
        and all(c in SHORT_ID_CHARS for c in short_id)
    )


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100))
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    portfolios = db.relationship('Portfolio', backref='owner', lazy=True,
                                 cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.email}>'


class Portfolio(db.Model):
    __tablename__ = 'portfolios'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    child_name = db.Column(db.String(100), nullable=False)
    portfolio_title = db.Column(db.String(100), nullable=False)
    photo_url = db.Column(db.String(500))
    template = db.Column(db.String(20), default='ren')
    is_private = db.Column(db.Boolean, default=False)
    password_hash = db.Column(db.String(255))
    short_id = db.Column(db.String(6), unique=True, index=True, default=generate_short_id)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    highlights = db.relationship('Highlight', backref='portfolio', lazy=True,
                                 cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password) if password else None

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<Portfolio {self.short_id} {self.child_name}>'


class Highlight(db.Model):
    __tablename__ = 'highlights'

    id = db.Column(db.Integer, primary_key=True)
    portfolio_id = db.Column(db.Integer, db.ForeignKey('portfolios.id'), nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    date_achieved = db.Column(db.String(10), nullable=False, index=True)  # YYYY-MM-DD
    type = db.Column(db.String(30), default='achievement')
    category = db.Column(db.String(50))
    is_milestone = db.Column(db.Boolean, default=False)

    # List of media item dicts: id, url, type, file_name, file_size, mime_type
    media = db.Column(db.JSON, nullable=True)
    # Bare URLs from before media items existed
    media_urls = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'date': self.date_achieved,
            'type': self.type,
            'category': self.category,
            'is_milestone': bool(self.is_milestone),
            'media': self.media or [],
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<Highlight {self.id} {self.date_achieved}>'
