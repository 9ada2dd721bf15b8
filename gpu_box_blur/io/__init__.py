# IO package initialization
from .image_loader import load_image, SUPPORTED_EXTENSIONS
from .image_saver import save_image

__all__ = [
    'load_image',
    'save_image',
    'SUPPORTED_EXTENSIONS',
]
