#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Portfolio data importer with date and file existence validation
"""

import json
import os

from dates import validate_date_string
from media_types import media_item_from_url
from models import HIGHLIGHT_TYPES, Highlight, Portfolio, db


class PortfolioDataImporter:
    """
    Handles importing a portfolio export into a guardian's account.

    Expected structure:
    - portfolio.json  ({"portfolio": {...}, "highlights": [...]})
    - highlights/*.json (optional, a list of highlights or the same shape)
    - media files referenced by relative path (optional), copied into `store`
    """

    def __init__(self, data_directory, owner, store):
        self.data_directory = data_directory
        self.owner = owner
        self.store = store
        self.portfolio = None
        self.stats = {
            'portfolios_created': 0,
            'highlights_imported': 0,
            'highlights_skipped': 0,
            'media_skipped': 0,
            'errors': []
        }

    def import_all(self):
        """Import all available data from the export"""
        try:
            files = self._find_json_files()
            if not files:
                self.stats['errors'].append(
                    f"No portfolio data found. Available files: {os.listdir(self.data_directory)}"
                )
                return self.stats

            for filepath in files:
                print(f"Processing: {os.path.relpath(filepath, self.data_directory)}")
                self._process_file(filepath)
            return self.stats
        except Exception as e:
            self.stats['errors'].append(f"Import failed: {str(e)}")
            return self.stats

    def _find_json_files(self):
        files = []
        main_file = os.path.join(self.data_directory, 'portfolio.json')
        if os.path.isfile(main_file):
            files.append(main_file)

        highlights_dir = os.path.join(self.data_directory, 'highlights')
        if os.path.isdir(highlights_dir):
            for filename in sorted(os.listdir(highlights_dir)):
                if filename.endswith('.json'):
                    files.append(os.path.join(highlights_dir, filename))
        return files

    def _file_exists(self, uri):
        """Check if a referenced media file actually exists in the export."""
        full_path = os.path.normpath(os.path.join(self.data_directory, uri))
        inside = full_path.startswith(os.path.normpath(self.data_directory) + os.sep)
        exists = inside and os.path.isfile(full_path)

        if not exists:
            print(f"    Media file not found: {uri}")
            self.stats['media_skipped'] += 1

        return exists

    def _process_file(self, filepath):
        """Process a single export JSON file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.stats['errors'].append(f"Invalid JSON in {os.path.basename(filepath)}: {str(e)}")
            return
        except OSError as e:
            self.stats['errors'].append(f"Error reading {os.path.basename(filepath)}: {str(e)}")
            return

        highlights = []
        if isinstance(data, list):
            highlights = data
        elif isinstance(data, dict):
            if isinstance(data.get('portfolio'), dict):
                self.portfolio = self._get_or_create_portfolio(data['portfolio'])
            highlights = data.get('highlights') or data.get('achievements') or []

        print(f"Found {len(highlights)} highlights in {os.path.basename(filepath)}")

        if highlights and self.portfolio is None:
            self.stats['errors'].append(
                f"{os.path.basename(filepath)} has highlights but no portfolio to attach them to"
            )
            self.stats['highlights_skipped'] += len(highlights)
            return

        for highlight_data in highlights:
            self._import_single_highlight(highlight_data)

    def _get_or_create_portfolio(self, portfolio_data):
        child_name = (portfolio_data.get('child_name') or '').strip()
        title = (portfolio_data.get('portfolio_title') or portfolio_data.get('title') or '').strip()
        if not child_name or not title:
            self.stats['errors'].append("Portfolio entry needs a child_name and portfolio_title")
            return None

        existing = Portfolio.query.filter_by(
            user_id=self.owner.id, child_name=child_name, portfolio_title=title
        ).first()
        if existing:
            print(f"Using existing portfolio: {title}")
            return existing

        portfolio = Portfolio(
            user_id=self.owner.id,
            child_name=child_name,
            portfolio_title=title,
            photo_url=portfolio_data.get('photo_url'),
            template=portfolio_data.get('template') or 'ren',
            is_private=bool(portfolio_data.get('is_private', False)),
        )
        db.session.add(portfolio)
        db.session.commit()
        self.stats['portfolios_created'] += 1
        print(f"Created portfolio: {title}")
        return portfolio

    def normalize_title(self, title):
        """Remove whitespace and case differences for comparison"""
        if not title:
            return ""
        return ' '.join(title.strip().split()).lower()

    def _extract_date(self, highlight_data):
        value = highlight_data.get('date_achieved') or highlight_data.get('date') or ''
        return value.split('T')[0] if isinstance(value, str) else ''

    def _import_single_highlight(self, highlight_data):
        """Import a single highlight, skipping invalid dates and duplicates"""
        try:
            if not isinstance(highlight_data, dict):
                self.stats['highlights_skipped'] += 1
                return

            title = (highlight_data.get('title') or '').strip()
            date_achieved = self._extract_date(highlight_data)

            if not title:
                self.stats['highlights_skipped'] += 1
                self.stats['errors'].append("Skipped highlight without a title")
                return

            result = validate_date_string(date_achieved)
            if not result['valid']:
                self.stats['highlights_skipped'] += 1
                self.stats['errors'].append(
                    f"Skipped '{title}': {result['reason']} ({date_achieved or 'no date'})"
                )
                return

            entries = self._extract_media(highlight_data)

            existing = Highlight.query.filter_by(
                portfolio_id=self.portfolio.id, date_achieved=date_achieved
            ).all()
            normalized_title = self.normalize_title(title)
            for other in existing:
                if (self.normalize_title(other.title) == normalized_title
                        and len(other.media or []) == len(entries)):
                    print(f"  Duplicate detected: {title} on {date_achieved}")
                    self.stats['highlights_skipped'] += 1
                    return

            media = self._store_media(entries, date_achieved)

            highlight_type = highlight_data.get('type')
            if highlight_type not in HIGHLIGHT_TYPES:
                highlight_type = 'milestone' if highlight_data.get('is_milestone') else 'achievement'

            highlight = Highlight(
                portfolio_id=self.portfolio.id,
                title=title[:100],
                description=(highlight_data.get('description') or None),
                date_achieved=date_achieved,
                type=highlight_type,
                category=highlight_data.get('category'),
                is_milestone=bool(highlight_data.get('is_milestone', highlight_type == 'milestone')),
                media=media,
            )
            db.session.add(highlight)
            db.session.commit()
            self.stats['highlights_imported'] += 1
            print(f"  Imported: {title} ({date_achieved}, {len(media)} media)")

        except Exception as e:
            print(f"  ERROR importing highlight: {e}")
            self.stats['errors'].append(f"Error importing highlight: {str(e)}")
            db.session.rollback()

    def _extract_media(self, highlight_data):
        """Media entries from either `media` items or bare `media_urls`"""
        entries = []
        for entry in highlight_data.get('media') or []:
            if isinstance(entry, dict) and entry.get('url'):
                entries.append((entry['url'], entry.get('mime_type') or entry.get('mimeType'),
                                entry.get('file_size') or entry.get('fileSize') or 0))
            elif isinstance(entry, str):
                entries.append((entry, None, 0))
        for url in highlight_data.get('media_urls') or []:
            if isinstance(url, str):
                entries.append((url, None, 0))

        # anything that isn't a remote URL must be a file inside the export
        return [(url, mime_type, file_size) for url, mime_type, file_size in entries
                if url.startswith(('http://', 'https://')) or self._file_exists(url)]

    def _store_media(self, entries, date_achieved):
        """Copy export files into the media store and build media items"""
        media = []
        for url, mime_type, file_size in entries:
            if url.startswith(('http://', 'https://')):
                item = media_item_from_url(url, index=len(media), known_type=mime_type,
                                           file_size=file_size)
                item['id'] = f'import-{len(media)}'
            else:
                item = self.store.import_file(os.path.join(self.data_directory, url),
                                              date_achieved, mime_type)
                if item is None:
                    self.stats['media_skipped'] += 1
                    continue
            media.append(item)
        return media
