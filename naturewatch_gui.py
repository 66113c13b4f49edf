#!/usr/bin/env python3
"""
NatureWatch Desktop UI - Classic desktop interface using PyQt5.

Usage:
    python naturewatch_gui.py

Logs are written to: ~/.naturewatch/gui.log
"""

import logging
import sys
import threading
import traceback
from datetime import datetime
from pathlib import Path

# Setup logging before other imports
LOG_DIR = Path.home() / ".naturewatch"
LOG_DIR.mkdir(exist_ok=True)
LOG_FILE = LOG_DIR / "gui.log"

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    handlers=[
        logging.FileHandler(LOG_FILE),
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)
logger.info(f"=== NatureWatch GUI started at {datetime.now().isoformat()} ===")

from PyQt5.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QPushButton, QLabel, QFileDialog, QProgressBar, QMessageBox, QFrame,
    QSlider, QListWidget,
)
from PyQt5.QtCore import Qt, pyqtSignal, QObject
from PyQt5.QtGui import QDragEnterEvent, QDropEvent, QFont

from naturewatch import (
    AnalysisSession,
    BatchProgress,
    ExportError,
    ExtractionError,
    ExtractionFailed,
    FrameUpdated,
    ItemFailed,
    ItemStarted,
)
from naturewatch.video import VIDEO_EXTENSIONS

logger.info("All imports successful")

DROP_ZONE_IDLE = """
    DropZone {
        border: 2px dashed #888;
        border-radius: 8px;
        background: #f5f5f5;
    }
    DropZone:hover {
        border-color: #2e7d32;
        background: #e8f5e9;
    }
"""

DROP_ZONE_ACTIVE = """
    DropZone {
        border: 2px solid #2e7d32;
        border-radius: 8px;
        background: #e8f5e9;
    }
"""


class WorkerSignals(QObject):
    """Signals for thread communication."""
    status = pyqtSignal(str)
    progress = pyqtSignal(int)
    frame_updated = pyqtSignal(str)
    finished = pyqtSignal(str)
    error = pyqtSignal(str)


class DropZone(QFrame):
    """Drag and drop area for video files."""

    fileDropped = pyqtSignal(Path)

    def __init__(self):
        super().__init__()
        self.setAcceptDrops(True)
        self.setFrameStyle(QFrame.StyledPanel | QFrame.Sunken)
        self.setMinimumHeight(100)
        self.setStyleSheet(DROP_ZONE_IDLE)

        layout = QVBoxLayout(self)
        layout.setAlignment(Qt.AlignCenter)

        self.label = QLabel("📁 Drop a nature video here\nor click Browse")
        self.label.setAlignment(Qt.AlignCenter)
        self.label.setStyleSheet("color: #666; font-size: 14px;")
        layout.addWidget(self.label)

    def dragEnterEvent(self, event: QDragEnterEvent):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
            self.setStyleSheet(DROP_ZONE_ACTIVE)

    def dragLeaveEvent(self, event):
        self.setStyleSheet(DROP_ZONE_IDLE)

    def dropEvent(self, event: QDropEvent):
        self.setStyleSheet(DROP_ZONE_IDLE)

        urls = event.mimeData().urls()
        if urls:
            path = Path(urls[0].toLocalFile())
            if path.suffix.lower() in VIDEO_EXTENSIONS:
                self.fileDropped.emit(path)

    def setFile(self, path: Path):
        self.label.setText(f"📹 {path.name}")
        self.label.setStyleSheet("color: #2e7d32; font-size: 14px; font-weight: bold;")


def open_session(path: Path, on_event) -> AnalysisSession:
    return AnalysisSession.open(path, on_event=on_event)


class NatureWatchWindow(QMainWindow):
    def __init__(self, session_factory=open_session):
        super().__init__()
        self.video_path = None
        self.session = None
        self.processing = False
        self.signals = WorkerSignals()
        self._session_factory = session_factory

        self._setup_ui()
        self._connect_signals()

    def _setup_ui(self):
        self.setWindowTitle("NatureWatch")
        self.setMinimumSize(520, 560)

        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(20, 20, 20, 20)
        layout.setSpacing(12)

        # Title
        title = QLabel("🌲 NatureWatch")
        title.setFont(QFont("", 22, QFont.Bold))
        title.setAlignment(Qt.AlignCenter)
        layout.addWidget(title)

        # Drop zone
        self.drop_zone = DropZone()
        self.drop_zone.fileDropped.connect(self._set_video)
        layout.addWidget(self.drop_zone)

        # Browse button
        browse_btn = QPushButton("Browse...")
        browse_btn.clicked.connect(self._browse_file)
        layout.addWidget(browse_btn)

        # Action buttons
        btn_layout = QHBoxLayout()

        self.analyze_btn = QPushButton("🔍 Analyze Video")
        self.analyze_btn.setEnabled(False)
        self.analyze_btn.clicked.connect(self._analyze)
        btn_layout.addWidget(self.analyze_btn)

        self.frame_btn = QPushButton("🎯 Analyze Frame")
        self.frame_btn.setEnabled(False)
        self.frame_btn.clicked.connect(self._analyze_frame)
        btn_layout.addWidget(self.frame_btn)

        self.export_btn = QPushButton("💾 Export")
        self.export_btn.setEnabled(False)
        self.export_btn.clicked.connect(self._export)
        btn_layout.addWidget(self.export_btn)

        layout.addLayout(btn_layout)

        # Frame scrubber
        seek_layout = QHBoxLayout()
        self.slider = QSlider(Qt.Horizontal)
        self.slider.setEnabled(False)
        self.slider.valueChanged.connect(self._on_seek)
        seek_layout.addWidget(self.slider)
        self.time_label = QLabel("0.00s")
        seek_layout.addWidget(self.time_label)
        layout.addLayout(seek_layout)

        self.stats_label = QLabel("Static: 0  Dynamic: 0  Total: 0")
        self.stats_label.setStyleSheet("color: #444;")
        layout.addWidget(self.stats_label)

        # Objects seen so far
        layout.addWidget(QLabel("Detected objects"))
        self.inventory_list = QListWidget()
        layout.addWidget(self.inventory_list)

        # Status
        self.status_label = QLabel("Select a video file to begin")
        self.status_label.setAlignment(Qt.AlignCenter)
        self.status_label.setStyleSheet("color: #666;")
        layout.addWidget(self.status_label)

        # Progress bar
        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.setVisible(False)
        layout.addWidget(self.progress)

    def _connect_signals(self):
        self.signals.status.connect(self._on_status)
        self.signals.progress.connect(self.progress.setValue)
        self.signals.frame_updated.connect(self._on_frame_updated)
        self.signals.finished.connect(self._on_finished)
        self.signals.error.connect(self._on_error)

    def _browse_file(self):
        if self.processing:
            return

        path, _ = QFileDialog.getOpenFileName(
            self,
            "Select Video File",
            "",
            "Video Files (*.mp4 *.mov *.avi *.mkv *.webm);;All Files (*)"
        )
        if path:
            self._set_video(Path(path))

    def _set_video(self, path: Path):
        if self.processing:
            return

        if self.session is not None:
            self.session.close()
            self.session = None

        logger.info(f"Loading video: {path}")
        try:
            self.session = self._session_factory(path, self._on_session_event)
        except Exception as e:
            logger.error(f"Loading failed: {e}")
            logger.error(traceback.format_exc())
            self._on_error(str(e))
            return

        self.video_path = path
        self.drop_zone.setFile(path)
        self.inventory_list.clear()
        self.slider.setRange(0, max(0, len(self.session.frames) - 1))
        self.slider.setValue(0)
        self.slider.setEnabled(True)
        self.analyze_btn.setEnabled(True)
        self.frame_btn.setEnabled(True)
        self.export_btn.setEnabled(True)
        self._refresh_frame()
        self.status_label.setText(f"Ready: {path.name}")

    def _set_processing(self, active: bool):
        self.processing = active
        self.analyze_btn.setEnabled(not active)
        self.frame_btn.setEnabled(not active)
        self.export_btn.setEnabled(not active)
        self.progress.setVisible(active)

    def _current_frame(self):
        frames = self.session.frames
        return frames[self.slider.value()] if frames else None

    def _on_session_event(self, event):
        # Called from worker threads; only emit signals here
        if isinstance(event, BatchProgress):
            self.signals.progress.emit(int(event.percent))
            self.signals.status.emit(f"Processed {event.processed} of {event.total} frames")
        elif isinstance(event, ItemStarted):
            self.signals.status.emit(f"Processing {event.frame_id} ({event.timestamp:.2f}s)...")
        elif isinstance(event, FrameUpdated):
            self.signals.frame_updated.emit(event.frame.id)
        elif isinstance(event, (ItemFailed, ExtractionFailed)):
            logger.warning(f"Frame {event.frame_id} skipped: {event.reason}")
            self.signals.status.emit(f"Skipped {event.frame_id}: {event.reason}")

    def _analyze(self):
        if not self.session or self.processing:
            return

        session = self.session
        logger.info(f"Starting analysis for: {self.video_path}")

        def task():
            try:
                self.signals.status.emit("Analyzing frames...")
                result = session.analyze_all()
                logger.info(f"Analysis complete: {result}")
                if result.cancelled:
                    self.signals.finished.emit("Analysis cancelled")
                else:
                    self.signals.finished.emit(
                        f"Analyzed {result.completed} of {result.total} frames")
            except Exception as e:
                logger.error(f"Analysis failed: {e}")
                logger.error(traceback.format_exc())
                self.signals.error.emit(str(e))

        self._set_processing(True)
        self.progress.setValue(0)
        threading.Thread(target=task, daemon=True).start()

    def _analyze_frame(self):
        if not self.session or self.processing:
            return

        session = self.session
        frame = self._current_frame()
        if frame is None:
            return

        def task():
            try:
                session.analyze_at(frame.timestamp)
            except ExtractionError as e:
                self.signals.status.emit(f"Could not read frame at {frame.timestamp:.2f}s: {e}")
            except Exception as e:
                logger.error(f"Frame analysis failed: {e}")
                logger.error(traceback.format_exc())
                self.signals.error.emit(str(e))

        threading.Thread(target=task, daemon=True).start()

    def _export(self):
        if not self.session or self.processing:
            return

        directory = QFileDialog.getExistingDirectory(self, "Export Analysis To")
        if not directory:
            return
        try:
            output_path = self.session.save_export(Path(directory))
        except ExportError as e:
            logger.error(f"Export failed: {e}")
            self._on_error("Failed to export analysis results")
            return
        self.status_label.setText(f"Exported: {output_path.name}")

    def _on_seek(self, value: int):
        if self.session:
            self._refresh_frame()

    def _refresh_frame(self):
        frame = self._current_frame()
        if frame is None:
            return
        self.time_label.setText(f"{frame.timestamp:.2f}s")
        stats = self.session.statistics(frame.id)
        self.stats_label.setText(
            f"Static: {sum(stats['static'].values())}  "
            f"Dynamic: {sum(stats['dynamic'].values())}  "
            f"Total: {stats['total']}"
        )

    def _refresh_inventory(self):
        self.inventory_list.clear()
        for label, entry in sorted(self.session.inventory.items()):
            self.inventory_list.addItem(f"{label}: {entry.count} ({entry.last_confidence:.0%})")

    def _on_frame_updated(self, frame_id: str):
        if not self.session:
            return
        self._refresh_inventory()
        frame = self._current_frame()
        if frame is not None and frame.id == frame_id:
            self._refresh_frame()

    def _on_status(self, message: str):
        logger.debug(f"Status: {message}")
        self.status_label.setText(message)

    def _on_finished(self, message: str):
        logger.info(f"Finished: {message}")
        self._set_processing(False)
        self.status_label.setText(message)
        self._refresh_inventory()
        self._refresh_frame()
        QMessageBox.information(self, "Complete", message)

    def _on_error(self, error: str):
        logger.error(f"Error shown to user: {error}")
        self._set_processing(False)
        self.status_label.setText(f"Error: {error}")
        QMessageBox.critical(self, "Error", error)

    def closeEvent(self, event):
        if self.session is not None:
            self.session.close()
        super().closeEvent(event)


def main():
    logger.info("Creating QApplication")
    app = QApplication(sys.argv)
    logger.info("Creating NatureWatchWindow")
    window = NatureWatchWindow()
    window.show()
    logger.info("Window shown, entering event loop")
    sys.exit(app.exec_())


if __name__ == '__main__':
    main()
