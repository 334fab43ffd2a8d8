"""
Synchronization Controller

The single owner of the highlight target. Field clicks from the data panel
resolve through the provenance of the current document, set the highlight and
steer the viewport to the field's page; switching documents always clears the
highlight before the new document is shown.
"""

import logging
from typing import Callable, List, Optional, Tuple

from ..core.field_resolver import resolve
from ..core.models import ExtractedDocument, FormLike, FormProvenance, HighlightTarget, ViewportState
from ..core.provenance_store import ProvenanceStore
from .viewport import ViewportController

logger = logging.getLogger(__name__)

HighlightListener = Callable[[Optional[HighlightTarget]], None]


class SynchronizationController:
    """Keeps the field panel selection and the document viewer in step."""

    def __init__(self, viewport: ViewportController):
        self.viewport = viewport
        self.document: Optional[ExtractedDocument] = None
        self._store = ProvenanceStore()
        self._highlight: Optional[HighlightTarget] = None
        self._page_pending = False
        self._listeners: List[HighlightListener] = []

        viewport.add_ready_listener(self._on_viewport_ready)

    @property
    def highlight(self) -> Optional[HighlightTarget]:
        return self._highlight

    @property
    def store(self) -> ProvenanceStore:
        return self._store

    @property
    def forms(self) -> Tuple[FormProvenance, ...]:
        return self._store.forms

    def add_highlight_listener(self, listener: HighlightListener):
        self._listeners.append(listener)

    def remove_highlight_listener(self, listener: HighlightListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_highlight(self, target: Optional[HighlightTarget]):
        if target == self._highlight:
            return
        self._highlight = target
        for listener in list(self._listeners):
            listener(target)

    def select_field(self, field_name: str, form: FormLike) -> Optional[HighlightTarget]:
        """
        Highlight a field and bring its page into view.

        Args:
            field_name: Name of the clicked field
            form: The form the field belongs to

        Returns:
            The new target, or None when the field has no source region
        """
        target = resolve(self._store.forms, field_name, form)
        if target is None:
            logger.info(f"No source available for '{field_name}'")
            self.clear_highlight()
            return None

        # Replaces any previous selection; there is never more than one
        self._set_highlight(target)
        logger.debug(
            f"Highlighting '{target.field_name}' of {target.form_type} on page {target.page_number} "
            f"({target.granularity.value})")
        # Not READY yet: the page is requested once the load completes
        self._page_pending = not self.viewport.request_page(target.page_number)
        return target

    def on_field_click(self, field_name: str, form: FormLike) -> None:
        """Callback handed to field panels."""
        self.select_field(field_name, form)

    def clear_highlight(self):
        self._page_pending = False
        self._set_highlight(None)

    def switch_document(self, document: Optional[ExtractedDocument]):
        """Make ``document`` current; the previous highlight never carries over."""
        self.clear_highlight()
        self.document = document
        self._store = ProvenanceStore(document.provenance if document else ())

        duplicates = self._store.duplicate_field_names()
        if duplicates:
            logger.debug(f"Fields present in several forms resolve to the first form: {', '.join(duplicates)}")

    def refresh_document(self, document: ExtractedDocument) -> bool:
        """
        Replace the current document with an updated copy of itself.

        The highlight is kept. Documents with another id are ignored; use
        ``switch_document`` for those.
        """
        if self.document is None or document.id != self.document.id:
            logger.debug(f"Ignoring refresh of non-current document {document.id}")
            return False
        self.document = document
        self._store = ProvenanceStore(document.provenance)
        return True

    def _on_viewport_ready(self, state: ViewportState):
        # A field selected before the viewport was READY gets its page now
        if self._page_pending and self._highlight is not None:
            self._page_pending = False
            self.viewport.request_page(self._highlight.page_number)
