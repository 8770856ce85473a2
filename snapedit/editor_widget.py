"""
Image preview with an interactive crop overlay, plus Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the background ``TaskThread``, and the
``ImagePreviewWidget`` the editor window shows the current image in.

The widget only maps between screen and image coordinates; every change to
the crop rectangle goes through the geometry engine (``move_crop_rect``,
``resize_crop_from_corner``), so a drag can never leave the image.
"""

from dataclasses import dataclass

from PIL import Image
from PyQt6.QtCore import QPointF, QRectF, QThread, Qt, pyqtSignal
from PyQt6.QtGui import (
    QBrush, QColor, QImage, QKeyEvent, QMouseEvent, QPainter, QPainterPath,
    QPaintEvent, QPen, QPixmap, QResizeEvent,
)
from PyQt6.QtWidgets import QSizePolicy, QWidget

from snapedit.config import HANDLE_SIZE, MIN_CROP_SIZE, NUDGE_LARGE, NUDGE_SMALL
from snapedit.geometry import move_crop_rect, resize_crop_from_corner
from snapedit.models import CropRect, ShapeMask


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap (the pixels are copied)."""
    rgba = pil_img.convert("RGBA")
    data = rgba.tobytes("raw", "RGBA")
    qimg = QImage(data, rgba.width, rgba.height, rgba.width * 4, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg)


# =============================================================================
# Background task runner
# =============================================================================

class TaskThread(QThread):
    """Runs one blocking call (file load, backend operation) off the GUI thread.

    ``succeeded`` carries the call's return value, ``failed`` the exception.
    """
    succeeded = pyqtSignal(object)
    failed = pyqtSignal(object)

    def __init__(self, fn, parent=None):
        super().__init__(parent)
        self._fn = fn

    def run(self):
        try:
            result = self._fn()
        except Exception as e:
            self.failed.emit(e)
        else:
            self.succeeded.emit(result)


# =============================================================================
# Image preview widget
# =============================================================================

@dataclass(frozen=True)
class _Drag:
    """One mouse gesture on the crop overlay.

    ``anchor`` is the fixed opposite corner for a corner drag, ``None`` for a
    move.  ``origin`` is where the press landed, in image coordinates.
    """
    start: CropRect
    origin: tuple[float, float]
    anchor: tuple[int, int] | None = None


def _corners(rect: CropRect) -> list[tuple[int, int]]:
    return [(rect.x, rect.y), (rect.right, rect.y), (rect.x, rect.bottom), (rect.right, rect.bottom)]


def _opposite(rect: CropRect, corner: tuple[int, int]) -> tuple[int, int]:
    cx, cy = corner
    return (rect.x if cx == rect.right else rect.right, rect.y if cy == rect.bottom else rect.bottom)


class ImagePreviewWidget(QWidget):
    """Displays the current image; in crop mode, an editable crop rectangle."""

    crop_changed = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMouseTracking(True)

        self._pixmap: QPixmap | None = None
        self._img_w = 0
        self._img_h = 0
        self._busy_text = ""

        self._crop_enabled = False
        self._crop = CropRect()
        self._aspect_ratio: float | None = None  # None = free-form
        self._shape = ShapeMask.RECTANGLE
        self._show_grid = True

        # Image → screen: screen = image * scale + offset
        self._scale = 1.0
        self._offset = QPointF()

        self._drag: _Drag | None = None

    # --- display API ---

    def set_busy(self, text: str):
        """Show a status text over the image (empty string hides it)."""
        self._busy_text = text
        self._drag = None
        self.update()

    def set_image(self, pixmap: QPixmap, img_w: int, img_h: int):
        self._pixmap = pixmap
        self._img_w = img_w
        self._img_h = img_h
        self._fit_to_widget()
        self.update()

    def clear(self):
        self._pixmap = None
        self._img_w = self._img_h = 0
        self._crop = CropRect()
        self._drag = None
        self.update()

    # --- crop overlay API ---

    def set_crop_enabled(self, enabled: bool):
        self._crop_enabled = enabled
        self._drag = None
        self.update()

    def set_crop(self, crop: CropRect, aspect_ratio: float | None):
        """Set the crop rectangle and its locked aspect ratio (None = free)."""
        self._aspect_ratio = aspect_ratio
        self._crop = crop
        self.update()

    def get_crop(self) -> CropRect:
        return self._crop

    def set_shape(self, shape: ShapeMask):
        self._shape = shape
        self.update()

    def set_show_grid(self, show: bool):
        self._show_grid = show
        self.update()

    # --- coordinate mapping ---

    def _fit_to_widget(self):
        if self._img_w <= 0 or self._img_h <= 0:
            return
        self._scale = min(self.width() / self._img_w, self.height() / self._img_h)
        self._offset = QPointF(
            (self.width() - self._img_w * self._scale) / 2,
            (self.height() - self._img_h * self._scale) / 2,
        )

    def _to_screen(self, x: float, y: float) -> QPointF:
        return QPointF(x, y) * self._scale + self._offset

    def _to_image(self, pos: QPointF) -> tuple[float, float]:
        if self._scale <= 0:
            return 0.0, 0.0
        p = (pos - self._offset) / self._scale
        return p.x(), p.y()

    def _screen_rect(self, rect: CropRect) -> QRectF:
        return QRectF(self._to_screen(rect.x, rect.y), self._to_screen(rect.right, rect.bottom))

    def _corner_at(self, pos: QPointF) -> tuple[int, int] | None:
        """Crop corner whose handle is under *pos*, if any."""
        for corner in _corners(self._crop):
            c = self._to_screen(*corner)
            if abs(pos.x() - c.x()) <= HANDLE_SIZE and abs(pos.y() - c.y()) <= HANDLE_SIZE:
                return corner
        return None

    # --- painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(30, 30, 30))

        if self._pixmap is None:
            painter.setPen(QColor(128, 128, 128))
            painter.drawText(
                self.rect(), Qt.AlignmentFlag.AlignCenter,
                self._busy_text or "Open an image to start editing",
            )
            painter.end()
            return

        image_rect = self._screen_rect(CropRect(0, 0, self._img_w, self._img_h))
        painter.drawPixmap(image_rect.toRect(), self._pixmap)

        if self._crop_enabled and self._crop.w > 0 and self._crop.h > 0:
            self._paint_crop(painter, image_rect)

        if self._busy_text:
            painter.fillRect(self.rect(), QColor(0, 0, 0, 120))
            painter.setPen(QColor(255, 255, 255))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, self._busy_text)

        painter.end()

    def _paint_crop(self, painter: QPainter, image_rect: QRectF):
        crop = self._screen_rect(self._crop)

        # Everything the crop will discard is dimmed, including the
        # corners outside an ellipse
        kept = QPainterPath()
        if self._shape is ShapeMask.ELLIPSE:
            kept.addEllipse(crop)
        else:
            kept.addRect(crop)
        outside = QPainterPath()
        outside.addRect(image_rect)
        painter.fillPath(outside.subtracted(kept), QBrush(QColor(0, 0, 0, 140)))

        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.setPen(QPen(QColor(255, 255, 255), 2))
        painter.drawRect(crop)
        if self._shape is ShapeMask.ELLIPSE:
            painter.setPen(QPen(QColor(58, 110, 165), 2))
            painter.drawEllipse(crop)

        if self._show_grid:
            painter.setPen(QPen(QColor(255, 255, 255, 80), 1, Qt.PenStyle.DashLine))
            for third in (1 / 3, 2 / 3):
                x = crop.left() + crop.width() * third
                y = crop.top() + crop.height() * third
                painter.drawLine(QPointF(x, crop.top()), QPointF(x, crop.bottom()))
                painter.drawLine(QPointF(crop.left(), y), QPointF(crop.right(), y))

        painter.setPen(QPen(QColor(0, 0, 0), 1))
        painter.setBrush(QBrush(QColor(255, 255, 255)))
        for corner in _corners(self._crop):
            painter.drawEllipse(self._to_screen(*corner), HANDLE_SIZE / 2, HANDLE_SIZE / 2)

        painter.setPen(QColor(255, 255, 255))
        painter.drawText(
            QRectF(crop.left(), crop.bottom() + 4, crop.width(), 18),
            Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop,
            f"{self._crop.w} × {self._crop.h}",
        )

    def resizeEvent(self, event: QResizeEvent):
        self._fit_to_widget()
        super().resizeEvent(event)

    # --- mouse ---

    def _interactive(self) -> bool:
        return self._pixmap is not None and self._crop_enabled and not self._busy_text

    def _update_cursor(self, pos: QPointF):
        corner = self._corner_at(pos)
        if corner is not None:
            # TL/BR share one diagonal, TR/BL the other
            on_main_diagonal = (corner[0] == self._crop.x) == (corner[1] == self._crop.y)
            self.setCursor(
                Qt.CursorShape.SizeFDiagCursor if on_main_diagonal else Qt.CursorShape.SizeBDiagCursor
            )
        elif self._screen_rect(self._crop).contains(pos):
            self.setCursor(Qt.CursorShape.SizeAllCursor)
        else:
            self.unsetCursor()

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton or not self._interactive():
            return
        pos = event.position()
        corner = self._corner_at(pos)
        if corner is not None:
            self._drag = _Drag(self._crop, self._to_image(pos), _opposite(self._crop, corner))
        elif self._screen_rect(self._crop).contains(pos):
            self._drag = _Drag(self._crop, self._to_image(pos))

    def mouseMoveEvent(self, event: QMouseEvent):
        if not self._interactive():
            return
        pos = event.position()
        if self._drag is None:
            self._update_cursor(pos)
            return

        ix, iy = self._to_image(pos)
        drag = self._drag
        if drag.anchor is None:
            crop = move_crop_rect(
                drag.start, ix - drag.origin[0], iy - drag.origin[1], self._img_w, self._img_h,
            )
        else:
            crop = resize_crop_from_corner(
                drag.anchor, (ix, iy), self._img_w, self._img_h,
                ratio=self._aspect_ratio, min_size=MIN_CROP_SIZE,
            )
        if crop != self._crop:
            self._crop = crop
            self.crop_changed.emit()
            self.update()

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self._drag = None

    # --- keyboard ---

    _NUDGE_KEYS = {
        Qt.Key.Key_Left: (-1, 0),
        Qt.Key.Key_Right: (1, 0),
        Qt.Key.Key_Up: (0, -1),
        Qt.Key.Key_Down: (0, 1),
    }

    def keyPressEvent(self, event: QKeyEvent):
        direction = self._NUDGE_KEYS.get(event.key())
        if direction is None or not self._interactive():
            super().keyPressEvent(event)
            return
        step = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        crop = move_crop_rect(self._crop, direction[0] * step, direction[1] * step, self._img_w, self._img_h)
        if crop != self._crop:
            self._crop = crop
            self.crop_changed.emit()
            self.update()
