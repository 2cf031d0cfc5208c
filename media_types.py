#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Media type classification for highlight attachments

Uploads record their MIME type at upload time and that value always wins.
Legacy records only carry a URL, so for those the kind is guessed from the
file extension and then from keywords in the URL. Anything that still can't
be placed is 'unknown' and gets a generic file icon.
"""

import logging
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)

IMAGE = 'image'
VIDEO = 'video'
AUDIO = 'audio'
PDF = 'pdf'
UNKNOWN = 'unknown'

MEDIA_KINDS = (IMAGE, VIDEO, AUDIO, PDF, UNKNOWN)

EXTENSION_KINDS = [
    (VIDEO, {'mp4', 'mov', 'avi', 'mkv', 'webm', 'm4v'}),
    (AUDIO, {'mp3', 'wav', 'm4a', 'aac', 'ogg', 'flac'}),
    (PDF, {'pdf'}),
    (IMAGE, {'jpg', 'jpeg', 'png', 'gif', 'webp', 'svg'}),
]

# Checked in this order against the lower-cased URL
KEYWORD_KINDS = [
    ('video', VIDEO),
    ('audio', AUDIO),
    ('image', IMAGE),
    ('photo', IMAGE),
    ('pdf', PDF),
]

DEFAULT_DISPLAY_NAME = 'Media file'

ALLOWED_UPLOAD_TYPES = {
    'image/jpeg',
    'image/png',
    'image/gif',
    'application/pdf',
    'video/mp4',
    'video/quicktime',
    'audio/mpeg',
    'audio/wav',
}


def kind_from_mime(mime_type):
    """Map a MIME type to a media kind by its top-level category"""
    mime_type = (mime_type or '').split(';')[0].strip().lower()
    if mime_type == 'application/pdf':
        return PDF
    major = mime_type.split('/')[0]
    if major in (IMAGE, VIDEO, AUDIO):
        return major
    return UNKNOWN


def _candidate_filename(url):
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url
    return unquote(path.rsplit('/', 1)[-1])


def classify_media(url, known_type=None):
    """
    Work out what kind of media a URL points at.

    Returns a dict with 'kind', 'display_name' and 'source' (one of 'mime',
    'extension', 'keyword', 'default') so callers can tell guesses from
    recorded types.
    """
    url = url if isinstance(url, str) else ''
    filename = _candidate_filename(url) if url else ''
    display_name = filename if '.' in filename else DEFAULT_DISPLAY_NAME

    if known_type:
        return {'kind': kind_from_mime(known_type), 'display_name': display_name, 'source': 'mime'}

    if '.' in filename:
        extension = filename.rsplit('.', 1)[1].lower()
        for kind, extensions in EXTENSION_KINDS:
            if extension in extensions:
                logger.debug("Classified %s as %s from extension", url, kind)
                return {'kind': kind, 'display_name': display_name, 'source': 'extension'}

    lowered = url.lower()
    for token, kind in KEYWORD_KINDS:
        if token in lowered:
            logger.debug("Classified %s as %s from keyword %r", url, kind, token)
            return {'kind': kind, 'display_name': display_name, 'source': 'keyword'}

    logger.debug("Could not classify %s, using %s", url, UNKNOWN)
    return {'kind': UNKNOWN, 'display_name': display_name, 'source': 'default'}


def media_item_from_url(url, index=0, known_type=None, file_size=0):
    """Build a media item dict for a record that only stored a URL"""
    result = classify_media(url, known_type)
    display_name = result['display_name']
    if display_name == DEFAULT_DISPLAY_NAME:
        display_name = f'Media {index + 1}'
    return {
        'id': f'legacy-{index}',
        'url': url,
        'type': result['kind'],
        'file_name': display_name,
        'file_size': file_size,
        'mime_type': known_type,
    }


def media_kind(item):
    """Kind for a stored media item, trusting its recorded MIME type first"""
    if item.get('mime_type'):
        return kind_from_mime(item['mime_type'])
    stored = item.get('type')
    if stored in MEDIA_KINDS and stored != UNKNOWN:
        return stored
    return classify_media(item.get('url', ''))['kind']


def is_allowed_upload_type(mime_type):
    return (mime_type or '').split(';')[0].strip().lower() in ALLOWED_UPLOAD_TYPES
