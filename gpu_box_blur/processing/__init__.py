# Processing package initialization
from .box_blur import box_blur_reference, box_blur_image

__all__ = [
    'box_blur_reference',
    'box_blur_image',
]
