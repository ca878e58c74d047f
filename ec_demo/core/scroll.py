# ec_demo/core/scroll.py

# Viewport extent used before the first layout pass has measured the pane.
# Content always fits inside it, so nothing scrolls until a real size arrives.
UNSIZED_VIEWPORT = 0xFFFF


class ScrollState:
    """
    Scroll bookkeeping for one axis of a viewport over growing content.

    Invariant after every operation:
        0 <= position <= max(0, content_extent - viewport_extent)

    On a sticky axis the position follows the bottom: when it sat on the
    last scrollable offset before the content grew, it follows the new last
    offset. A user who scrolled away is left where they are. Non-sticky axes
    (the horizontal one) are only ever clamped.
    """

    def __init__(self, viewport_extent: int = UNSIZED_VIEWPORT, sticky: bool = True):
        self.position = 0
        # Only sticky axes follow the tail; the others are just clamped.
        self.sticky = sticky
        self.viewport_extent = max(0, viewport_extent)
        self.content_extent = 0

    @property
    def max_position(self) -> int:
        """The largest valid position, i.e. the scrollable range."""
        return max(0, self.content_extent - self.viewport_extent)

    @property
    def at_end(self) -> bool:
        return self.position >= self.max_position

    def update(self, content_extent: int) -> None:
        """Records a new content extent; a sticky axis on the tail stays on it."""
        tracking_tail = self.sticky and self.at_end
        self.content_extent = max(0, content_extent)
        self._settle(tracking_tail)

    def resize(self, viewport_extent: int) -> None:
        """Records a new viewport extent, keeping tail tracking intact."""
        tracking_tail = self.sticky and self.at_end
        self.viewport_extent = max(0, viewport_extent)
        self._settle(tracking_tail)

    def scroll_back(self) -> None:
        """Moves one step towards the start (up / left)."""
        self.position = max(0, self.position - 1)

    def scroll_forward(self) -> None:
        """Moves one step towards the end (down / right)."""
        if self.content_extent > self.viewport_extent:
            self.position = min(self.position + 1, self.max_position)

    def scroll_to(self, position: int) -> None:
        """Jumps to `position`, clamped into the valid range (scrollbar drags)."""
        self.position = min(max(0, position), self.max_position)

    def _settle(self, tracking_tail: bool) -> None:
        if tracking_tail:
            self.position = self.max_position
        else:
            self.position = min(self.position, self.max_position)

    def __repr__(self) -> str:
        return (f"ScrollState(position={self.position}, viewport={self.viewport_extent}, "
                f"content={self.content_extent})")
