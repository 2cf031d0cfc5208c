import json

import pytest

from media_store import MediaStore
from models import Highlight, Portfolio, User, db
from portfolio_import import PortfolioDataImporter


def write_export(directory, data, name='portfolio.json'):
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding='utf-8')


@pytest.fixture
def export_dir(tmp_path):
    directory = tmp_path / 'export'
    directory.mkdir()
    (directory / 'media').mkdir()
    (directory / 'media' / 'painting.jpg').write_bytes(b'fake jpeg')
    return directory


@pytest.fixture
def store(tmp_path):
    return MediaStore(str(tmp_path / 'media'), url_prefix='/uploads/media')


def run_import(app, user_id, directory, store):
    with app.app_context():
        owner = db.session.get(User, user_id)
        return PortfolioDataImporter(str(directory), owner, store).import_all()


def test_import_creates_portfolio_and_highlights(app, user, export_dir, store):
    write_export(export_dir, {
        'portfolio': {'child_name': 'Ava', 'portfolio_title': 'Art', 'template': 'maeve'},
        'highlights': [
            {'title': 'Painting', 'date_achieved': '2024-01-10T00:00:00Z', 'type': 'creative_work',
             'media_urls': ['media/painting.jpg', 'media/missing.jpg']},
            {'title': 'First swim', 'date': '2023-08-02', 'is_milestone': True,
             'media': [{'url': 'https://cdn.example.com/swim', 'mime_type': 'video/mp4', 'file_size': 99}]},
        ],
    })
    stats = run_import(app, user, export_dir, store)

    assert stats['portfolios_created'] == 1
    assert stats['highlights_imported'] == 2
    assert stats['media_skipped'] == 1
    assert stats['errors'] == []

    with app.app_context():
        portfolio = Portfolio.query.one()
        assert portfolio.template == 'maeve'
        by_title = {h.title: h for h in portfolio.highlights}
        painting = by_title['Painting']
        assert painting.date_achieved == '2024-01-10'
        assert painting.type == 'creative_work'
        assert len(painting.media) == 1
        item = painting.media[0]
        assert item['url'].startswith('/uploads/media/2024-01/2024-01-10/')
        assert item['url'].endswith('.jpg')
        assert item['type'] == 'image'
        assert item['file_name'] == 'painting.jpg'
        assert item['file_size'] == len(b'fake jpeg')
        with open(store.local_path(item['url']), 'rb') as f:
            assert f.read() == b'fake jpeg'

        swim = by_title['First swim']
        assert swim.type == 'milestone'
        assert swim.is_milestone is True
        assert swim.media[0]['type'] == 'video'
        assert swim.media[0]['mime_type'] == 'video/mp4'


def test_invalid_dates_and_duplicates_are_skipped(app, user, export_dir, store):
    data = {
        'portfolio': {'child_name': 'Ava', 'portfolio_title': 'Art'},
        'highlights': [
            {'title': 'Good', 'date': '2024-01-10'},
            {'title': 'Bad date', 'date': '2024-02-30'},
            {'title': 'No date'},
            {'title': '  good ', 'date': '2024-01-10'},
            {'date': '2024-01-11'},
        ],
    }
    write_export(export_dir, data)
    stats = run_import(app, user, export_dir, store)

    assert stats['highlights_imported'] == 1
    assert stats['highlights_skipped'] == 4
    assert any('invalid date' in error for error in stats['errors'])

    # Running the same export again finds everything already there
    stats = run_import(app, user, export_dir, store)
    assert stats['portfolios_created'] == 0
    assert stats['highlights_imported'] == 0
    with app.app_context():
        assert Highlight.query.count() == 1
        assert Portfolio.query.count() == 1


def test_highlight_files_without_portfolio_are_reported(app, user, export_dir, store):
    write_export(export_dir, [{'title': 'Orphan', 'date': '2024-01-10'}], name='highlights/extra.json')
    stats = run_import(app, user, export_dir, store)
    assert stats['highlights_imported'] == 0
    assert stats['highlights_skipped'] == 1
    assert stats['errors']


def test_invalid_json_and_empty_export(app, user, export_dir, store):
    (export_dir / 'portfolio.json').write_text('{not json', encoding='utf-8')
    stats = run_import(app, user, export_dir, store)
    assert stats['errors'][0].startswith('Invalid JSON in portfolio.json')

    (export_dir / 'portfolio.json').unlink()
    stats = run_import(app, user, export_dir, store)
    assert stats['errors'][0].startswith('No portfolio data found')


def test_duplicates_do_not_copy_media_again(app, user, export_dir, store):
    write_export(export_dir, {
        'portfolio': {'child_name': 'Ava', 'portfolio_title': 'Art'},
        'highlights': [{'title': 'Painting', 'date': '2024-01-10', 'media_urls': ['media/painting.jpg']}],
    })
    run_import(app, user, export_dir, store)
    stats = run_import(app, user, export_dir, store)

    assert stats['highlights_imported'] == 0
    assert stats['highlights_skipped'] == 1
    assert store.get_storage_stats()['file_count'] == 1


def test_media_outside_the_export_is_skipped(app, user, export_dir, store, tmp_path):
    (tmp_path / 'secret.jpg').write_bytes(b'not yours')
    write_export(export_dir, {
        'portfolio': {'child_name': 'Ava', 'portfolio_title': 'Art'},
        'highlights': [{'title': 'Sneaky', 'date': '2024-01-10',
                        'media_urls': ['../secret.jpg', str(tmp_path / 'secret.jpg'),
                                       '/uploads/media/2024-01/2024-01-10/someone_else.jpg']}],
    })
    stats = run_import(app, user, export_dir, store)

    assert stats['highlights_imported'] == 1
    assert stats['media_skipped'] == 3
    with app.app_context():
        assert Highlight.query.one().media == []
    assert store.get_storage_stats()['file_count'] == 0
