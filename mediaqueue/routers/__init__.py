# Routers package for the media upload queue

from . import uploads

__all__ = ["uploads"]
