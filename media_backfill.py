#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Backfill media types on legacy highlights

Older highlights only stored bare URLs in `media_urls`, and some media items
were saved without the MIME type of the upload. This job turns the URLs into
media items and fills in the MIME type from the hosting server where it can.
Items that could only be classified by guessing from the URL are flagged
with `needs_review`.
"""

import logging

from sqlalchemy.orm.attributes import flag_modified

from media_types import classify_media, media_item_from_url
from models import Highlight, db

logger = logging.getLogger(__name__)


class MediaTypeBackfill:

    def __init__(self, store, fetch_remote=True):
        self.store = store
        self.fetch_remote = fetch_remote
        self.stats = {
            'highlights_scanned': 0,
            'highlights_updated': 0,
            'urls_migrated': 0,
            'types_from_server': 0,
            'types_from_heuristics': 0,
            'errors': []
        }

    def run(self, highlights=None):
        """Backfill the given highlights (all highlights when None)"""
        if highlights is None:
            highlights = Highlight.query.order_by(Highlight.id).all()

        for highlight in highlights:
            self.stats['highlights_scanned'] += 1
            try:
                if self._backfill_highlight(highlight):
                    self.stats['highlights_updated'] += 1
            except Exception as e:
                logger.exception("Backfill failed for highlight %s", highlight.id)
                self.stats['errors'].append(f"Highlight {highlight.id}: {e}")

        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            self.stats['errors'].append(f"Database commit failed: {e}")

        logger.info(
            "Media backfill: %s highlights scanned, %s updated, %s typed by server, %s by heuristics",
            self.stats['highlights_scanned'], self.stats['highlights_updated'],
            self.stats['types_from_server'], self.stats['types_from_heuristics'],
        )
        return self.stats

    def _backfill_highlight(self, highlight):
        changed = False
        media = [dict(item) for item in (highlight.media or [])]

        legacy_urls = [url for url in (highlight.media_urls or []) if url]
        if legacy_urls:
            known = {item.get('url') for item in media}
            for url in legacy_urls:
                if url in known:
                    continue
                media.append(media_item_from_url(url, index=len(media)))
                known.add(url)
                self.stats['urls_migrated'] += 1
            highlight.media_urls = None
            changed = True

        for item in media:
            if item.get('mime_type'):
                continue
            if self._backfill_item(item):
                changed = True

        if changed:
            highlight.media = media
            flag_modified(highlight, 'media')
        return changed

    def _backfill_item(self, item):
        url = item.get('url', '')
        mime_type = self.store.fetch_content_type(url) if self.fetch_remote else None

        result = classify_media(url, mime_type)
        updated = dict(item)
        updated['type'] = result['kind']
        if not updated.get('file_name') or updated['file_name'].startswith('Media '):
            if result['display_name'] != 'Media file':
                updated['file_name'] = result['display_name']

        if mime_type:
            updated['mime_type'] = mime_type
            updated.pop('needs_review', None)
            self.stats['types_from_server'] += 1
        else:
            updated['needs_review'] = True
            self.stats['types_from_heuristics'] += 1
            logger.warning("Media %s typed as %s from its URL (%s), flagged for review",
                           url, result['kind'], result['source'])

        if updated == item:
            return False
        item.clear()
        item.update(updated)
        return True
