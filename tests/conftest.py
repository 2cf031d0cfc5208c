"""Shared fixtures: app on in-memory SQLite, logged-in guardian, sample portfolio."""

import io

import pytest
from PIL import Image

from app import create_app
from models import Highlight, Portfolio, User, db


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'BACKFILL_FETCH_REMOTE': False,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(app):
    with app.app_context():
        user = User(email='parent@example.com', name='Parent')
        user.set_password('correct-horse')
        db.session.add(user)
        db.session.commit()
        return user.id


@pytest.fixture
def logged_in(client, user):
    response = client.post('/login', data={'email': 'parent@example.com', 'password': 'correct-horse'})
    assert response.status_code == 302
    return client


@pytest.fixture
def portfolio(app, user):
    with app.app_context():
        portfolio = Portfolio(user_id=user, child_name='Ava', portfolio_title="Ava's Year")
        db.session.add(portfolio)
        db.session.commit()
        return portfolio.id


def add_highlight(app, portfolio_id, title, date_achieved, **kwargs):
    with app.app_context():
        highlight = Highlight(portfolio_id=portfolio_id, title=title, date_achieved=date_achieved,
                              type=kwargs.pop('type', 'achievement'), **kwargs)
        db.session.add(highlight)
        db.session.commit()
        return highlight.id


def png_bytes(size=(40, 30), mode='RGBA'):
    buffer = io.BytesIO()
    Image.new(mode, size, (255, 0, 0, 128) if mode == 'RGBA' else (255, 0, 0)).save(buffer, 'PNG')
    buffer.seek(0)
    return buffer
