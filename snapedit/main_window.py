"""
Main editor window.

Hosts one edit session at a time: opens an image, gathers resize / crop /
convert parameters, runs the operation pipeline on a background thread,
re-renders from the session's current image, and exports it.  Undo/redo
move the session cursor; the history panel mirrors the session state.
"""

import logging
import time
from pathlib import Path

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QBrush, QColor, QFont, QKeySequence
from PyQt6.QtWidgets import (
    QApplication, QButtonGroup, QCheckBox, QComboBox, QFileDialog, QFormLayout,
    QGroupBox, QHBoxLayout, QLabel, QLineEdit, QListWidget, QListWidgetItem,
    QMainWindow, QMenu, QMessageBox, QPushButton, QSlider, QSpinBox, QSplitter,
    QStatusBar, QTabWidget, QToolBar, QVBoxLayout, QWidget,
)

from snapedit import pipeline
from snapedit.backend import PillowBackend
from snapedit.config import (
    IMAGE_EXTENSIONS, PERCENT_DEFAULT, PERCENT_MAX, PERCENT_MIN,
    QUALITY_DEFAULT, QUALITY_MAX, QUALITY_MIN,
)
from snapedit.editor_widget import ImagePreviewWidget, TaskThread, pil_to_qpixmap
from snapedit.errors import BackendFailure, EditError, InvalidDimension, NoOp, OperationInProgress
from snapedit.geometry import fit_crop_to_ratio, locked_dimension, resolve_preset
from snapedit.image_io import FolderExportSink, default_export_name
from snapedit.models import (
    ConvertRequest, CropRect, CropRequest, EditSessionState, ImageFormat, ResizeMode,
    ResizeRequest, ShapeMask,
)
from snapedit.presets import CROP_RATIOS, MATTE_COLORS, all_presets
from snapedit.recent_files import clear_recent_files, load_recent_files, new_recent_file, save_recent_file
from snapedit.session import EditSession, current_entry

logger = logging.getLogger(__name__)

_TAB_CROP = 1


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("SnapEdit")
        self.setMinimumSize(900, 560)

        # Screen-aware startup size, clamped to 80% of screen
        preferred_w, preferred_h = 1440, 900
        screen = QApplication.primaryScreen()
        if screen is not None:
            avail = screen.availableGeometry()
            preferred_w = min(preferred_w, int(avail.width() * 0.8))
            preferred_h = min(preferred_h, int(avail.height() * 0.8))
        self.resize(preferred_w, preferred_h)

        self._backend = PillowBackend()
        self._session: EditSession | None = None
        self._source_path: Path | None = None
        self._export_folder: Path | None = None
        self._task: TaskThread | None = None
        self._loading = False

        self._build_ui()
        self._update_button_states()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        self._build_toolbar()

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QHBoxLayout(central)
        main_layout.setContentsMargins(4, 4, 4, 4)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        main_layout.addWidget(splitter)

        self._preview = ImagePreviewWidget()
        self._preview.crop_changed.connect(self._on_crop_dragged)
        splitter.addWidget(self._preview)

        splitter.addWidget(self._build_right_panel())
        splitter.setSizes([1000, 320])

        self._status = QStatusBar()
        self.setStatusBar(self._status)
        self._status.showMessage("Open an image to begin.")

    def _build_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        act_open = QAction("📂 Open Image", self)
        act_open.setShortcut(QKeySequence.StandardKey.Open)
        act_open.triggered.connect(self._select_image)
        toolbar.addAction(act_open)
        self._act_open = act_open

        self._recent_menu = QMenu("Recent", self)
        self._recent_menu.aboutToShow.connect(self._populate_recent_menu)
        act_recent = self._recent_menu.menuAction()
        act_recent.setText("🕘 Recent")
        toolbar.addAction(act_recent)

        toolbar.addSeparator()

        act_undo = QAction("↶ Undo", self)
        act_undo.setShortcut(QKeySequence.StandardKey.Undo)
        act_undo.triggered.connect(self._undo)
        toolbar.addAction(act_undo)
        self._act_undo = act_undo

        act_redo = QAction("↷ Redo", self)
        act_redo.setShortcut(QKeySequence.StandardKey.Redo)
        act_redo.triggered.connect(self._redo)
        toolbar.addAction(act_redo)
        self._act_redo = act_redo

        toolbar.addSeparator()

        act_export = QAction("💾 Export Current Image", self)
        act_export.setShortcut(QKeySequence.StandardKey.Save)
        act_export.triggered.connect(self._export_current)
        toolbar.addAction(act_export)
        self._act_export = act_export

    def _build_right_panel(self) -> QWidget:
        right_panel = QWidget()
        right_panel.setMinimumWidth(280)
        layout = QVBoxLayout(right_panel)
        layout.setContentsMargins(4, 0, 0, 0)

        self._info_label = QLabel("No image")
        self._info_label.setStyleSheet("color: #aaa; padding: 2px;")
        layout.addWidget(self._info_label)

        self._tabs = QTabWidget()
        self._tabs.addTab(self._build_resize_tab(), "Resize")
        self._tabs.addTab(self._build_crop_tab(), "Crop")
        self._tabs.addTab(self._build_convert_tab(), "Convert")
        self._tabs.currentChanged.connect(self._on_tab_changed)
        layout.addWidget(self._tabs)
        layout.addWidget(self._build_output_group())

        layout.addWidget(self._build_history_group(), stretch=1)
        return right_panel

    def _build_resize_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)

        mode_row = QHBoxLayout()
        mode_row.addWidget(QLabel("Mode:"))
        self._resize_mode = QComboBox()
        self._resize_mode.addItem("Pixels", ResizeMode.PIXELS)
        self._resize_mode.addItem("Percent", ResizeMode.PERCENT)
        self._resize_mode.currentIndexChanged.connect(self._on_resize_mode_changed)
        mode_row.addWidget(self._resize_mode)
        layout.addLayout(mode_row)

        # Pixel mode
        self._pixels_box = QWidget()
        pixels_layout = QFormLayout(self._pixels_box)
        pixels_layout.setContentsMargins(0, 0, 0, 0)
        self._aspect_lock = QCheckBox("🔒 Lock aspect ratio")
        self._aspect_lock.setChecked(True)
        pixels_layout.addRow(self._aspect_lock)
        self._width_edit = QLineEdit()
        self._width_edit.setPlaceholderText("Width")
        self._width_edit.textEdited.connect(lambda text: self._on_dimension_edited(text, True))
        pixels_layout.addRow("Width:", self._width_edit)
        self._height_edit = QLineEdit()
        self._height_edit.setPlaceholderText("Height")
        self._height_edit.textEdited.connect(lambda text: self._on_dimension_edited(text, False))
        pixels_layout.addRow("Height:", self._height_edit)

        self._preset_combo = QComboBox()
        self._preset_combo.addItem("Presets…", None)
        for preset in all_presets():
            self._preset_combo.addItem(preset.label, preset)
        self._preset_combo.activated.connect(self._on_preset_selected)
        pixels_layout.addRow(self._preset_combo)
        layout.addWidget(self._pixels_box)

        # Percent mode
        self._percent_box = QWidget()
        percent_layout = QHBoxLayout(self._percent_box)
        percent_layout.setContentsMargins(0, 0, 0, 0)
        percent_layout.addWidget(QLabel("Scale:"))
        self._percent_slider = QSlider(Qt.Orientation.Horizontal)
        self._percent_slider.setRange(PERCENT_MIN, PERCENT_MAX)
        self._percent_slider.setValue(PERCENT_DEFAULT)
        percent_layout.addWidget(self._percent_slider, stretch=1)
        self._percent_label = QLabel(f"{PERCENT_DEFAULT}%")
        self._percent_label.setFixedWidth(40)
        percent_layout.addWidget(self._percent_label)
        self._percent_slider.valueChanged.connect(lambda v: self._percent_label.setText(f"{v}%"))
        layout.addWidget(self._percent_box)

        btn_apply = QPushButton("Apply Resize")
        btn_apply.clicked.connect(self._apply_resize)
        layout.addWidget(btn_apply)
        layout.addStretch()

        self._on_resize_mode_changed()
        return tab

    def _build_crop_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)

        shape_row = QHBoxLayout()
        shape_row.addWidget(QLabel("Shape:"))
        self._crop_shape = QComboBox()
        self._crop_shape.addItem("Rectangle", ShapeMask.RECTANGLE)
        self._crop_shape.addItem("Ellipse", ShapeMask.ELLIPSE)
        self._crop_shape.currentIndexChanged.connect(
            lambda _i: self._preview.set_shape(self._crop_shape.currentData())
        )
        shape_row.addWidget(self._crop_shape)
        layout.addLayout(shape_row)

        ratio_group = QGroupBox("Aspect Ratio")
        ratio_layout = QHBoxLayout(ratio_group)
        self._ratio_buttons = QButtonGroup(self)
        self._ratio_buttons.setExclusive(True)
        for i, ratio in enumerate(CROP_RATIOS):
            btn = QPushButton(ratio.name)
            btn.setCheckable(True)
            btn.setChecked(i == 0)
            self._ratio_buttons.addButton(btn, i)
            ratio_layout.addWidget(btn)
        self._ratio_buttons.idClicked.connect(self._on_ratio_selected)
        layout.addWidget(ratio_group)

        self._grid_check = QCheckBox("Show grid (rule of thirds)")
        self._grid_check.setChecked(True)
        self._grid_check.toggled.connect(self._preview.set_show_grid)
        layout.addWidget(self._grid_check)

        form = QFormLayout()
        self._crop_spins: dict[str, QSpinBox] = {}
        for key, label in (("x", "X:"), ("y", "Y:"), ("w", "Width:"), ("h", "Height:")):
            spin = QSpinBox()
            spin.setRange(0, 1_000_000)
            spin.valueChanged.connect(self._on_crop_spin_changed)
            form.addRow(label, spin)
            self._crop_spins[key] = spin
        layout.addLayout(form)

        btn_apply = QPushButton("Apply Crop")
        btn_apply.clicked.connect(self._apply_crop)
        layout.addWidget(btn_apply)
        layout.addStretch()
        return tab

    def _build_convert_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)
        note = QLabel("Re-encode the current image with the output settings below.")
        note.setWordWrap(True)
        note.setStyleSheet("color: #aaa;")
        layout.addWidget(note)

        btn_apply = QPushButton("Convert Image")
        btn_apply.clicked.connect(self._apply_convert)
        layout.addWidget(btn_apply)
        layout.addStretch()
        return tab

    def _build_output_group(self) -> QGroupBox:
        """Format, quality and background shared by resize, crop and convert."""
        group = QGroupBox("Output")
        layout = QVBoxLayout(group)

        fmt_row = QHBoxLayout()
        fmt_row.addWidget(QLabel("Format:"))
        self._output_format = QComboBox()
        self._output_format.addItem("Keep current", None)
        self._output_format.addItem("JPEG — smaller size", ImageFormat.RASTER_LOSSY)
        self._output_format.addItem("PNG — transparency", ImageFormat.RASTER_LOSSLESS)
        self._output_format.currentIndexChanged.connect(self._update_output_controls)
        fmt_row.addWidget(self._output_format)
        layout.addLayout(fmt_row)

        quality_row = QHBoxLayout()
        quality_row.addWidget(QLabel("Quality:"))
        self._quality_slider = QSlider(Qt.Orientation.Horizontal)
        self._quality_slider.setRange(QUALITY_MIN, QUALITY_MAX)
        self._quality_slider.setValue(QUALITY_DEFAULT)
        quality_row.addWidget(self._quality_slider, stretch=1)
        self._quality_label = QLabel(str(QUALITY_DEFAULT))
        self._quality_label.setFixedWidth(28)
        quality_row.addWidget(self._quality_label)
        self._quality_slider.valueChanged.connect(lambda v: self._quality_label.setText(str(v)))
        layout.addLayout(quality_row)

        self._matte_box = QWidget()
        matte_row = QHBoxLayout(self._matte_box)
        matte_row.setContentsMargins(0, 0, 0, 0)
        matte_row.addWidget(QLabel("Background:"))
        self._matte_combo = QComboBox()
        self._matte_combo.addItem("Choose…", None)
        for color in MATTE_COLORS:
            self._matte_combo.addItem(color, color)
        matte_row.addWidget(self._matte_combo)
        layout.addWidget(self._matte_box)

        self._update_output_controls()
        return group

    def _build_history_group(self) -> QGroupBox:
        group = QGroupBox("History")
        layout = QVBoxLayout(group)
        self._history_list = QListWidget()
        self._history_list.setSelectionMode(QListWidget.SelectionMode.NoSelection)
        layout.addWidget(self._history_list)
        return group

    # =========================================================================
    # Opening images
    # =========================================================================

    def _select_image(self):
        patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
        start_dir = str(self._source_path.parent if self._source_path else Path.home())
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", start_dir, f"Images ({patterns})")
        if path:
            self._open_image(Path(path))

    def _populate_recent_menu(self):
        self._recent_menu.clear()
        entries = load_recent_files()
        if not entries:
            act = self._recent_menu.addAction("(no recent files)")
            act.setEnabled(False)
            return
        for entry in entries:
            act = self._recent_menu.addAction(f"{entry.name}  ·  {entry.operation}")
            act.setToolTip(entry.uri)
            act.triggered.connect(lambda _checked=False, uri=entry.uri: self._open_image(Path(uri)))
        self._recent_menu.addSeparator()
        act_clear = self._recent_menu.addAction("Clear recent files")
        act_clear.triggered.connect(self._clear_recent)

    def _clear_recent(self):
        try:
            clear_recent_files()
        except OSError as exc:
            logger.warning("Could not clear recent files: %s", exc)
            return
        self._status.showMessage("Recent files cleared")

    def _open_image(self, path: Path):
        if self._busy():
            return
        if not path.is_file():
            QMessageBox.warning(self, "Open Failed", f"File not found:\n{path}")
            return

        self._loading = True
        self._preview.set_busy(f"Loading {path.name}…")
        self._update_button_states()

        backend = self._backend
        self._task = TaskThread(lambda: backend.load(path), self)
        self._task.succeeded.connect(lambda descriptor: self._on_image_loaded(path, descriptor))
        self._task.failed.connect(lambda exc: self._on_image_load_error(path, exc))
        self._task.start()

    def _on_image_loaded(self, path: Path, descriptor):
        self._loading = False
        self._preview.set_busy("")

        # The previous session's images are no longer reachable
        if self._session is not None:
            self._session.discard()
            for entry in self._session.state.history:
                self._backend.release(entry.image.reference)

        self._session = EditSession(descriptor)
        self._source_path = path
        self._record_recent(path, current_entry(self._session.state).kind)
        self._show_current()
        self._status.showMessage(f"Opened {path.name}")

    def _on_image_load_error(self, path: Path, exc: Exception):
        self._loading = False
        self._preview.set_busy("")
        self._update_button_states()
        logger.warning("Failed to load %s: %s", path, exc)
        QMessageBox.warning(self, "Open Failed", f"Could not open {path.name}:\n{exc}")

    # =========================================================================
    # Rendering from the session
    # =========================================================================

    def _show_current(self):
        """Re-render everything from the session's current image."""
        if self._session is None:
            self._preview.clear()
            self._update_button_states()
            return

        image = self._session.current
        self._preview.set_image(pil_to_qpixmap(self._backend.image(image.reference)), image.width, image.height)
        self._info_label.setText(f"{image.width} × {image.height}  ·  {image.format.label}")

        self._width_edit.setText(str(image.width))
        self._height_edit.setText(str(image.height))
        self._apply_selected_ratio()
        self._update_output_controls()
        self._refresh_history()
        self._update_button_states()

    def _refresh_history(self):
        self._history_list.clear()
        state = self._session.state
        for i, entry in enumerate(state.history):
            img = entry.image
            stamp = entry.committed_at.astimezone().strftime("%H:%M:%S")
            item = QListWidgetItem(
                f"{i + 1}. {entry.kind.name.title()}  {img.width}×{img.height} {img.format.label}  ({stamp})"
            )
            if i == state.cursor:
                font = QFont()
                font.setBold(True)
                item.setFont(font)
            elif i > state.cursor:
                item.setForeground(QBrush(QColor("#777")))
            self._history_list.addItem(item)
        self._history_list.scrollToItem(self._history_list.item(state.cursor))

    def _busy(self) -> bool:
        return self._loading or (self._session is not None and self._session.busy)

    def _update_button_states(self):
        has_session = self._session is not None
        busy = self._busy()
        self._act_open.setEnabled(not busy)
        self._act_undo.setEnabled(has_session and not busy and self._session.can_undo)
        self._act_redo.setEnabled(has_session and not busy and self._session.can_redo)
        self._act_export.setEnabled(has_session and not busy)
        self._tabs.setEnabled(has_session and not busy)

    # =========================================================================
    # Undo / redo
    # =========================================================================

    def _undo(self):
        if self._session is None or self._busy():
            return
        try:
            self._session.undo()
        except NoOp:
            self._status.showMessage("Nothing to undo")
            return
        self._show_current()

    def _redo(self):
        if self._session is None or self._busy():
            return
        try:
            self._session.redo()
        except NoOp:
            self._status.showMessage("Nothing to redo")
            return
        self._show_current()

    # =========================================================================
    # Resize controls
    # =========================================================================

    def _on_resize_mode_changed(self, *_args):
        percent = self._resize_mode.currentData() is ResizeMode.PERCENT
        self._pixels_box.setVisible(not percent)
        self._percent_box.setVisible(percent)

    def _on_dimension_edited(self, text: str, is_width: bool):
        """Keep the other field in step while the aspect lock is on."""
        if self._session is None or not self._aspect_lock.isChecked():
            return
        try:
            other = locked_dimension(text, is_width, self._session.state.aspect_ratio)
        except InvalidDimension:
            return  # half-typed input; the pipeline rejects it on apply
        (self._height_edit if is_width else self._width_edit).setText(str(other))

    def _on_preset_selected(self, index: int):
        preset = self._preset_combo.itemData(index)
        if preset is None:
            return
        size = resolve_preset(preset)
        self._width_edit.setText(str(size.width))
        self._height_edit.setText(str(size.height))
        self._preset_combo.setCurrentIndex(0)

    def _apply_resize(self):
        request = ResizeRequest(
            mode=self._resize_mode.currentData(),
            target_width=self._width_edit.text(),
            target_height=self._height_edit.text(),
            percent=self._percent_slider.value(),
            aspect_locked=self._aspect_lock.isChecked(),
            quality=self._quality_slider.value(),
            output_format=self._output_format.currentData(),
            matte_color=self._matte_choice(),
        )
        self._run_operation("Resizing", pipeline.apply_resize, request)

    # =========================================================================
    # Crop controls
    # =========================================================================

    def _on_tab_changed(self, index: int):
        self._preview.set_crop_enabled(index == _TAB_CROP)
        if index == _TAB_CROP:
            self._preview.setFocus()

    def _selected_ratio(self):
        return CROP_RATIOS[max(0, self._ratio_buttons.checkedId())]

    def _on_ratio_selected(self, _idx: int):
        self._apply_selected_ratio()

    def _apply_selected_ratio(self):
        """Re-derive the crop rectangle from the full image for the selected ratio."""
        if self._session is None:
            return
        image = self._session.current
        ratio = self._selected_ratio().ratio
        self._preview.set_crop(fit_crop_to_ratio(image.width, image.height, ratio), ratio)
        self._sync_crop_spins()

    def _sync_crop_spins(self):
        crop = self._preview.get_crop()
        for key, value in (("x", crop.x), ("y", crop.y), ("w", crop.w), ("h", crop.h)):
            spin = self._crop_spins[key]
            spin.blockSignals(True)
            spin.setValue(value)
            spin.blockSignals(False)

    def _on_crop_dragged(self):
        self._sync_crop_spins()

    def _on_crop_spin_changed(self, _value: int):
        """Typed-in values become a free-form rectangle on the overlay."""
        if self._session is None:
            return
        typed = CropRect(
            self._crop_spins["x"].value(), self._crop_spins["y"].value(),
            self._crop_spins["w"].value(), self._crop_spins["h"].value(),
        )
        self._preview.set_crop(typed, None)
        self._ratio_buttons.button(0).setChecked(True)

    def _apply_crop(self):
        crop = self._preview.get_crop()
        request = CropRequest(
            x=crop.x, y=crop.y, width=crop.w, height=crop.h,
            ratio=self._selected_ratio().ratio,
            shape=self._crop_shape.currentData(),
            quality=self._quality_slider.value(),
            output_format=self._output_format.currentData(),
            matte_color=self._matte_choice(),
        )
        self._run_operation("Cropping", pipeline.apply_crop, request)

    # =========================================================================
    # Output settings and convert
    # =========================================================================

    def _target_format(self) -> ImageFormat | None:
        """The format the next operation writes (None before an image is open)."""
        chosen = self._output_format.currentData()
        if chosen is not None:
            return chosen
        return self._session.current.format if self._session is not None else None

    def _matte_choice(self) -> str | None:
        return self._matte_combo.currentData() if not self._matte_box.isHidden() else None

    def _update_output_controls(self, *_args):
        target = self._target_format()
        self._quality_slider.setEnabled(target is ImageFormat.RASTER_LOSSY)
        source_has_alpha = self._session is not None and self._session.current.format.supports_transparency
        self._matte_box.setVisible(
            source_has_alpha and target is not None and not target.supports_transparency
        )

    def _apply_convert(self):
        request = ConvertRequest(
            target_format=self._target_format(),
            quality=self._quality_slider.value(),
            matte_color=self._matte_choice(),
        )
        self._run_operation("Converting", pipeline.apply_convert, request)

    # =========================================================================
    # Operation dispatch
    # =========================================================================

    def _run_operation(self, label: str, apply_fn, request):
        """Run one pipeline call on a worker thread against the live session."""
        if self._session is None:
            return
        session = self._session
        try:
            generation = session.begin_operation()
        except OperationInProgress as exc:
            self._status.showMessage(str(exc))
            return

        state = session.state
        image = session.current
        backend = self._backend

        self._preview.set_busy(f"{label}…")
        self._update_button_states()

        self._task = TaskThread(lambda: apply_fn(state, request, image, backend), self)
        self._task.succeeded.connect(
            lambda result: self._on_operation_done(session, generation, state, result)
        )
        self._task.failed.connect(
            lambda exc: self._on_operation_failed(session, generation, exc)
        )
        self._task.start()

    def _on_operation_done(self, session: EditSession, generation: int,
                           before: EditSessionState, result: tuple):
        new_state, image = result
        if not session.finish_operation(generation, new_state):
            self._backend.release(image.reference)
            return

        # Entries pruned from the redo branch are gone for good
        kept = {entry.image.reference for entry in new_state.history}
        for entry in before.history:
            if entry.image.reference not in kept:
                self._backend.release(entry.image.reference)

        if session is self._session:
            self._preview.set_busy("")
            self._show_current()
            self._status.showMessage(
                f"{current_entry(new_state).kind.name.title()}: {image.width} × {image.height} {image.format.label}"
            )

    def _on_operation_failed(self, session: EditSession, generation: int, exc: Exception):
        session.abandon_operation(generation)
        if session is not self._session:
            return
        self._preview.set_busy("")
        self._update_button_states()
        if isinstance(exc, BackendFailure):
            logger.error("Operation failed: %s", exc)
            QMessageBox.critical(self, "Error", f"The image could not be processed:\n{exc}")
        elif isinstance(exc, EditError):
            self._status.showMessage(str(exc))
            QMessageBox.warning(self, "Invalid Settings", str(exc))
        else:
            logger.exception("Unexpected error during operation", exc_info=exc)
            QMessageBox.critical(self, "Error", f"Unexpected error:\n{exc}")

    # =========================================================================
    # Export and recent files
    # =========================================================================

    def _export_current(self):
        if self._session is None or self._busy():
            return
        if self._export_folder is None:
            folder = QFileDialog.getExistingDirectory(
                self, "Select Export Folder",
                str(self._source_path.parent if self._source_path else Path.home()),
            )
            if not folder:
                return
            self._export_folder = Path(folder)

        entry = current_entry(self._session.state)
        sink = FolderExportSink(self._backend, self._export_folder)
        name = default_export_name(entry.kind, int(time.time() * 1000))
        try:
            out_path = sink.persist(entry.image.reference, name)
        except OSError as exc:
            QMessageBox.critical(self, "Export Failed", f"Could not write image:\n{exc}")
            return

        self._record_recent(out_path, entry.kind)
        self._status.showMessage(f"Exported: {out_path}")

    def _record_recent(self, path: Path, kind):
        try:
            save_recent_file(new_recent_file(path, kind))
        except OSError as exc:
            logger.warning("Could not update recent files: %s", exc)

    # =========================================================================
    # Shutdown
    # =========================================================================

    def closeEvent(self, event):
        """Drop the session, wait for any worker, and free backend images."""
        if self._session is not None:
            self._session.discard()
        if self._task is not None and self._task.isRunning():
            self._task.wait()
        self._backend.release_all()
        super().closeEvent(event)
