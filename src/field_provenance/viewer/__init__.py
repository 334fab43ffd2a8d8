"""
Document viewer modules.

- Document byte sources (inline, URL, portal API, Azure Blob)
- PDF rasterization
- Viewport state machine
- Overlay composition and painting
- Field/document synchronization and the review session
"""

from .document_source import DocumentLoadError, DocumentLoader, SubmissionDocument
from .overlay import OverlayRenderer, OverlayScene
from .render_surface import RenderSurface, RenderSurfaceConfig
from .session import ReviewSession
from .sync import SynchronizationController
from .viewport import ViewportController

__all__ = [
    'DocumentLoadError',
    'DocumentLoader',
    'SubmissionDocument',
    'OverlayRenderer',
    'OverlayScene',
    'RenderSurface',
    'RenderSurfaceConfig',
    'ReviewSession',
    'SynchronizationController',
    'ViewportController',
]
