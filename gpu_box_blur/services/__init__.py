from .blur_service import BlurService

__all__ = ['BlurService']
