"""
Image host client built on the Cloudinary SDK.

Uploads go through an unsigned upload preset. Deletes are signed by the SDK
with the API secret, which never leaves the server.
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from django.conf import settings

logger = logging.getLogger(__name__)

MAX_PARALLEL_UPLOADS = 4

# Square variants served to responsive image tags
RESPONSIVE_SIZES = [200, 400, 800, 1200]


class ImageHostError(Exception):
    """Raised when the image host is unreachable, misconfigured or rejects a request"""


def _setting(name: str, default: str = '') -> str:
    return getattr(settings, name, os.getenv(name, default)) or default


def get_config() -> Dict[str, str]:
    return {
        'cloud_name': _setting('IMAGE_HOST_CLOUD_NAME'),
        'api_key': _setting('IMAGE_HOST_API_KEY'),
        'api_secret': _setting('IMAGE_HOST_API_SECRET'),
        'upload_preset': _setting('IMAGE_HOST_UPLOAD_PRESET', 'ecommerce_products'),
        'folder': _setting('IMAGE_HOST_FOLDER', 'ecommerce-products'),
    }


def configure() -> Dict[str, str]:
    """Push the IMAGE_HOST_* settings into the SDK and return them"""
    config = get_config()
    cloudinary.config(
        cloud_name=config['cloud_name'],
        api_key=config['api_key'],
        api_secret=config['api_secret'],
        secure=True,
    )
    return config


def is_configured() -> bool:
    """True when signed operations (delete) can be performed"""
    config = get_config()
    return bool(config['cloud_name'] and config['api_key'] and config['api_secret'])


def upload_image(file_obj, folder: Optional[str] = None) -> Dict[str, Any]:
    """
    Upload a single file.

    Args:
        file_obj: An uploaded file or anything else the SDK accepts
        folder: Destination folder, defaults to IMAGE_HOST_FOLDER

    Returns:
        Dict with public_id, url, width and height
    """
    config = configure()
    if not config['cloud_name'] or not config['upload_preset']:
        raise ImageHostError('Image host is not configured')

    folder = folder or config['folder']
    try:
        payload = cloudinary.uploader.unsigned_upload(file_obj, config['upload_preset'], folder=folder)
    except cloudinary.exceptions.Error as e:
        logger.error(f"Image upload failed: {str(e)}")
        raise ImageHostError(str(e) or 'Image upload failed') from e

    logger.info(f"Uploaded image {payload.get('public_id')} to folder {folder}")
    return {
        'public_id': payload.get('public_id'),
        'url': payload.get('secure_url') or payload.get('url'),
        'width': payload.get('width'),
        'height': payload.get('height'),
    }


def upload_multiple_images(files: Iterable, folder: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Upload files concurrently. Results keep input order and the first one is
    flagged primary.

    All or nothing: when any upload fails, the ones that succeeded are
    deleted again before the error is raised.
    """
    files = list(files)
    if not files:
        return []

    def attempt(file_obj):
        try:
            return upload_image(file_obj, folder), None
        except ImageHostError as e:
            return None, e

    with ThreadPoolExecutor(max_workers=min(MAX_PARALLEL_UPLOADS, len(files))) as executor:
        outcomes = list(executor.map(attempt, files))

    errors = [error for _, error in outcomes if error is not None]
    if errors:
        uploaded = [result['public_id'] for result, _ in outcomes if result is not None]
        rollback_uploads(uploaded)
        raise errors[0]

    results = [result for result, _ in outcomes]
    for index, result in enumerate(results):
        result['is_primary'] = index == 0
    return results


def rollback_uploads(public_ids: Iterable[str]) -> List[str]:
    """Delete freshly uploaded images; returns the ids that could not be removed"""
    orphaned = []
    for public_id in public_ids:
        try:
            delete_image(public_id)
        except ImageHostError:
            orphaned.append(public_id)
    if orphaned:
        logger.warning(f"Upload rollback left orphaned images: {orphaned}")
    return orphaned


def delete_image(public_id: str) -> Dict[str, Any]:
    """
    Delete an image by public id.

    An image the host no longer knows ("not found") counts as deleted.
    Anything else raises ImageHostError.
    """
    if not public_id:
        raise ImageHostError('public_id is required')
    if not is_configured():
        raise ImageHostError('Image host credentials are not configured')

    configure()
    try:
        payload = cloudinary.uploader.destroy(public_id)
    except cloudinary.exceptions.Error as e:
        logger.error(f"Image delete failed for {public_id}: {str(e)}")
        raise ImageHostError(str(e) or 'Image delete failed') from e

    result = payload.get('result')
    if result not in ('ok', 'not found'):
        logger.error(f"Image host refused to delete {public_id}: {result}")
        raise ImageHostError(f"Image host refused to delete {public_id}: {result}")

    logger.info(f"Deleted image {public_id} ({result})")
    return payload


def get_optimized_image_url(public_id: str, **options) -> str:
    """Delivery URL with automatic format and quality plus any extra transformation"""
    configure()
    merged = {'fetch_format': 'auto', 'quality': 'auto'}
    merged.update({key: value for key, value in options.items() if value is not None})
    return cloudinary.CloudinaryImage(public_id).build_url(**merged)


def get_responsive_image_urls(public_id: str, **options) -> List[Dict[str, Any]]:
    variants = []
    for size in RESPONSIVE_SIZES:
        variant_options = dict(options, width=size, height=size, crop='fill')
        variants.append({
            'width': size,
            'height': size,
            'url': get_optimized_image_url(public_id, **variant_options),
        })
    return variants
