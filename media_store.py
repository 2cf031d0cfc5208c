#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Local storage for highlight media uploads
Saves uploads into date folders and records their MIME type
"""

import hashlib
import logging
import os
import shutil
from datetime import datetime

import requests
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from media_types import classify_media, is_allowed_upload_type, kind_from_mime

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_MB = 50

QUALITY_SETTINGS = {
    # max px on longest side, JPEG quality
    'low': (800, 60),
    'medium': (1200, 80),
    'high': (1920, 95),
}

RESIZABLE_TYPES = {'image/jpeg', 'image/png'}


class MediaStore:
    """
    Stores uploaded media under a base directory and hands back media item
    dicts that can be saved on a highlight.
    """

    def __init__(self, base_upload_dir='uploads/media', url_prefix='/uploads/media'):
        self.base_upload_dir = base_upload_dir
        self.url_prefix = url_prefix.rstrip('/')
        os.makedirs(base_upload_dir, exist_ok=True)

    def _generate_filename(self, original_name, extension):
        """Generate unique filename from the uploaded name"""
        name_hash = hashlib.md5(f'{original_name}{datetime.now().timestamp()}'.encode()).hexdigest()[:12]
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return f"{timestamp}_{name_hash}{extension}"

    def _create_date_folder(self, date_achieved):
        """Create folder structure based on highlight date"""
        date_str = (date_achieved or datetime.now().strftime('%Y-%m-%d'))[:10]
        year_month = date_str[:7]

        folder_path = os.path.join(self.base_upload_dir, year_month, date_str)
        os.makedirs(folder_path, exist_ok=True)
        return folder_path, f'{self.url_prefix}/{year_month}/{date_str}'

    @staticmethod
    def _file_size(file):
        stream = file.stream
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
        return size

    def validate_file(self, file):
        """
        Check an uploaded file before it is stored

        Returns:
            {'valid': True} or {'valid': False, 'error': message}
        """
        if not file or not file.filename:
            return {'valid': False, 'error': 'No file selected'}

        if self._file_size(file) > MAX_FILE_SIZE_MB * 1024 * 1024:
            return {'valid': False, 'error': f'File size must be {MAX_FILE_SIZE_MB}MB or less'}

        if not is_allowed_upload_type(file.mimetype):
            return {
                'valid': False,
                'error': 'Please upload JPEG, PNG, GIF, PDF, MP4, MOV, MP3, or WAV files only',
            }

        return {'valid': True}

    def save_upload(self, file, date_achieved, quality='high'):
        """
        Save an uploaded file

        Args:
            file: werkzeug FileStorage from the highlight form
            date_achieved: Highlight date (YYYY-MM-DD) for folder organization
            quality: 'low', 'medium', or 'high' for JPEG/PNG images

        Returns:
            media item dict or None if the file could not be stored
        """
        mime_type = (file.mimetype or '').lower()
        original_name = secure_filename(file.filename or '') or 'upload'
        extension = os.path.splitext(original_name)[1].lower()

        try:
            folder_path, url_base = self._create_date_folder(date_achieved)

            if mime_type in RESIZABLE_TYPES:
                filename = self._generate_filename(original_name, '.jpg')
                filepath = os.path.join(folder_path, filename)
                self._save_image(file, filepath, quality)
                mime_type = 'image/jpeg'
            else:
                filename = self._generate_filename(original_name, extension)
                filepath = os.path.join(folder_path, filename)
                file.save(filepath)

            file_size = os.path.getsize(filepath)
        except (OSError, UnidentifiedImageError) as e:
            logger.error("Failed to store upload %s: %s", original_name, e)
            return None

        logger.info("Saved %s (%sKB)", filepath, file_size // 1024)

        return {
            'id': filename.rsplit('.', 1)[0],
            'url': f'{url_base}/{filename}',
            'type': kind_from_mime(mime_type),
            'file_name': original_name,
            'file_size': file_size,
            'mime_type': mime_type,
        }

    def import_file(self, source_path, date_achieved, mime_type=None):
        """
        Copy a file from an unpacked export into the store

        Args:
            source_path: path of the file inside the export
            date_achieved: Highlight date (YYYY-MM-DD) for folder organization
            mime_type: MIME type recorded in the export, if any

        Returns:
            media item dict or None if the file could not be copied
        """
        original_name = secure_filename(os.path.basename(source_path)) or 'import'
        extension = os.path.splitext(original_name)[1].lower()

        try:
            folder_path, url_base = self._create_date_folder(date_achieved)
            filename = self._generate_filename(original_name, extension)
            filepath = os.path.join(folder_path, filename)
            shutil.copyfile(source_path, filepath)
            file_size = os.path.getsize(filepath)
        except OSError as e:
            logger.error("Failed to import %s: %s", source_path, e)
            return None

        url = f'{url_base}/{filename}'
        return {
            'id': filename.rsplit('.', 1)[0],
            'url': url,
            'type': classify_media(original_name, mime_type)['kind'],
            'file_name': original_name,
            'file_size': file_size,
            'mime_type': mime_type,
        }

    def _save_image(self, file, filepath, quality):
        max_size, jpeg_quality = QUALITY_SETTINGS.get(quality, QUALITY_SETTINGS['high'])

        img = Image.open(file.stream)
        original_width, original_height = img.size

        if max(img.size) > max_size:
            ratio = max_size / max(img.size)
            new_size = tuple(int(dim * ratio) for dim in img.size)
            img = img.resize(new_size, Image.Resampling.LANCZOS)
            logger.debug("Resized from %sx%s to %sx%s",
                         original_width, original_height, img.size[0], img.size[1])

        # Convert RGBA to RGB if necessary
        if img.mode == 'RGBA':
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[3])
            img = background
        elif img.mode not in ('RGB', 'L'):
            img = img.convert('RGB')

        img.save(filepath, 'JPEG', quality=jpeg_quality, optimize=True)

    def local_path(self, url):
        """Filesystem path for a URL this store handed out, else None"""
        if not url or not url.startswith(self.url_prefix + '/'):
            return None
        relative = url[len(self.url_prefix) + 1:]
        if '..' in relative.split('/'):
            return None
        return os.path.join(self.base_upload_dir, *relative.split('/'))

    def delete_file(self, url):
        """Remove a stored file. Placeholders and remote URLs are left alone."""
        if not url or 'placeholders' in url:
            return False

        filepath = self.local_path(url)
        if not filepath or not os.path.isfile(filepath):
            return False

        try:
            os.remove(filepath)
        except OSError as e:
            logger.warning("Failed to delete %s: %s", filepath, e)
            return False
        return True

    def fetch_content_type(self, url, timeout=10):
        """
        Ask the server hosting `url` for its Content-Type

        Returns:
            bare MIME type (e.g. 'image/png') or None
        """
        if not url or not url.startswith(('http://', 'https://')):
            return None

        try:
            response = requests.head(url, allow_redirects=True, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.info("Could not fetch content type for %s: %s", url, e)
            return None

        content_type = response.headers.get('Content-Type', '')
        mime_type = content_type.split(';')[0].strip().lower()
        if not mime_type or mime_type == 'application/octet-stream':
            return None
        return mime_type

    def get_storage_stats(self, urls=None):
        """
        Get statistics about stored media

        Args:
            urls: only count these stored media URLs (e.g. one guardian's
                  media); the whole store when None
        """
        total_size = 0
        file_count = 0

        if urls is None:
            paths = [os.path.join(root, file)
                     for root, dirs, files in os.walk(self.base_upload_dir)
                     for file in files]
        else:
            paths = [path for path in map(self.local_path, urls) if path and os.path.isfile(path)]

        for filepath in paths:
            total_size += os.path.getsize(filepath)
            file_count += 1

        return {
            'total_size_mb': total_size / (1024 * 1024),
            'file_count': file_count
        }
