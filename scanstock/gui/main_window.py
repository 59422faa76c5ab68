from __future__ import annotations

import logging
from pathlib import Path

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (
    QComboBox,
    QFormLayout,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QStackedWidget,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from config import DB_PATH, NORMALIZE_MANUAL_ENTRY
from scanstock.camera_session import OpticalScanSession, OpticalSessionHandle
from scanstock.db_manager import InventoryDB, Product
from scanstock.logic.cart import Cart
from scanstock.logic.codes import normalize_code
from scanstock.logic.consumers import PosCartConsumer, ProductSearchConsumer
from scanstock.logic.inbound import StockAccumulator
from scanstock.logic.outbound import STOCK_OUT_REASONS, StockOutService
from scanstock.logic.router import Consumer, ConsumerMode, ScanRouter
from scanstock.scanner_handler import KeyedInputCapture

logger = logging.getLogger(__name__)

INVENTORY_PAGE = 0
POS_PAGE = 1

MODE_LABELS = {
    ConsumerMode.MANUAL: "Manual",
    ConsumerMode.USB: "USB Scanner",
    ConsumerMode.CAMERA: "Camera",
}

INVENTORY_CONSUMERS = (
    Consumer.STOCK_IN,
    Consumer.PRODUCT_SEARCH,
    Consumer.CREATE_BARCODE,
    Consumer.INVENTORY_FILTER,
)


class MainWindow(QMainWindow):
    def __init__(self, db_path: Path | str = DB_PATH):
        super().__init__()
        self.db = InventoryDB(db_path)
        self.accumulator = StockAccumulator(self.db)
        self.stock_out = StockOutService(self.db)
        self.cart = Cart()

        self.capture = KeyedInputCapture(parent=self)
        self.router = ScanRouter(self.capture)
        self.capture.code_scanned.connect(self._on_usb_code)

        self.mode_boxes: dict[Consumer, QComboBox] = {}
        self._mode_options: dict[Consumer, tuple[ConsumerMode, ...]] = {}
        self.camera_sessions: dict[Consumer, OpticalScanSession] = {}
        self.camera_handles: dict[Consumer, OpticalSessionHandle] = {}
        self.camera_previews: dict[Consumer, QLabel] = {}
        self.camera_start_buttons: dict[Consumer, QPushButton] = {}
        self._updating_cart_table = False
        self.scan_labels: dict[Consumer, QLabel] = {}

        self.search_consumer = ProductSearchConsumer(self.db, on_found=self._select_product)
        self.pos_consumer = PosCartConsumer(
            self.db,
            self.cart,
            stop_camera=lambda: self._stop_camera(Consumer.POS_CART),
            on_added=lambda _product: self.refresh_cart_table(),
        )

        self.setWindowTitle("ScanStock Inventory & POS")
        self.resize(1180, 780)
        self._build_ui()
        self._register_consumers()
        self.switch_page(INVENTORY_PAGE)
        self.refresh_all()

    # -- routing ---------------------------------------------------------

    def _register_consumers(self) -> None:
        self.router.register(
            Consumer.STOCK_IN,
            self._on_stock_in_scan,
            mode=ConsumerMode.USB,
            guard=lambda: self._on_inventory_page() and self.accumulator.has_product,
        )
        self.router.register(
            Consumer.PRODUCT_SEARCH, self._on_search_scan, guard=self._on_inventory_page
        )
        self.router.register(
            Consumer.CREATE_BARCODE, self._on_create_scan, guard=self._on_inventory_page
        )
        self.router.register(
            Consumer.INVENTORY_FILTER, self._on_filter_scan, guard=self._on_inventory_page
        )
        self.router.register(
            Consumer.POS_CART,
            self._on_pos_scan,
            mode=ConsumerMode.USB,
            guard=lambda: self.page_stack.currentIndex() == POS_PAGE,
        )
        for consumer, box in self.mode_boxes.items():
            box.setCurrentIndex(self._mode_options[consumer].index(self.router.mode(consumer)))

    def _on_inventory_page(self) -> bool:
        return self.page_stack.currentIndex() == INVENTORY_PAGE

    def _on_usb_code(self, code: str) -> None:
        self.router.route(code, ConsumerMode.USB)

    def _on_camera_code(self, consumer: Consumer, code: str) -> None:
        self.router.route(code, ConsumerMode.CAMERA, origin=consumer)

    def _on_stock_in_scan(self, code: str, _channel: ConsumerMode) -> None:
        self.accumulator.accept_scan(code)
        self._show_last_scanned(Consumer.STOCK_IN)
        self.refresh_stock_in_panel()

    def _on_search_scan(self, code: str, _channel: ConsumerMode) -> None:
        self._show_last_scanned(Consumer.PRODUCT_SEARCH)
        if self.search_consumer(code) is None:
            self.search_status.setText(self.search_consumer.error)

    def _on_create_scan(self, code: str, _channel: ConsumerMode) -> None:
        self._show_last_scanned(Consumer.CREATE_BARCODE)
        self.product_barcode.setText(code)

    def _on_filter_scan(self, code: str, _channel: ConsumerMode) -> None:
        self._show_last_scanned(Consumer.INVENTORY_FILTER)
        self.inventory_search.setText(code)

    def _on_pos_scan(self, code: str, channel: ConsumerMode) -> None:
        self._show_last_scanned(Consumer.POS_CART)
        self.pos_consumer(code, channel)
        self.pos_status.setText(self.pos_consumer.error)

    def _show_last_scanned(self, consumer: Consumer) -> None:
        label = self.scan_labels.get(consumer)
        if label is not None:
            label.setText(f"Last scanned: {self.router.last_scanned(consumer) or '-'}")

    # -- layout ----------------------------------------------------------

    def _build_ui(self) -> None:
        root = QWidget()
        self.setCentralWidget(root)
        main_layout = QVBoxLayout(root)

        nav = QHBoxLayout()
        self.inventory_page_btn = QPushButton("Inventory")
        self.pos_page_btn = QPushButton("Point of Sale")
        self.page_buttons = [self.inventory_page_btn, self.pos_page_btn]
        for index, btn in enumerate(self.page_buttons):
            btn.setCheckable(True)
            btn.clicked.connect(lambda _, i=index: self.switch_page(i))
            nav.addWidget(btn)
        nav.addStretch(1)
        main_layout.addLayout(nav)

        self.page_stack = QStackedWidget()
        self.page_stack.addWidget(self._build_inventory_page())
        self.page_stack.addWidget(self._build_pos_page())
        main_layout.addWidget(self.page_stack)

    def _build_inventory_page(self) -> QWidget:
        page = QWidget()
        layout = QGridLayout(page)
        layout.addWidget(self._build_product_box(), 0, 0)
        layout.addWidget(self._build_search_box(), 0, 1)
        layout.addWidget(self._build_stock_in_box(), 1, 0)
        layout.addWidget(self._build_inventory_box(), 1, 1)
        return page

    def _build_pos_page(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.addWidget(self._build_pos_scan_box())
        layout.addWidget(self._build_cart_box(), 1)
        return page

    def _mode_box(self, consumer: Consumer, modes: tuple[ConsumerMode, ...]) -> QComboBox:
        box = QComboBox()
        for mode in modes:
            box.addItem(MODE_LABELS[mode], mode)
        box.currentIndexChanged.connect(lambda _, c=consumer: self._on_mode_changed(c))
        self.mode_boxes[consumer] = box
        self._mode_options[consumer] = modes
        return box

    def _camera_row(self, consumer: Consumer) -> QWidget:
        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)

        preview = QLabel()
        preview.setFixedSize(240, 160)
        preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        preview.setStyleSheet("background: #222;")

        session = OpticalScanSession(parent=self)
        session.code_decoded.connect(lambda code, c=consumer: self._on_camera_code(c, code))
        session.start_failed.connect(self._warn)
        session.session_lost.connect(self._warn)
        self.camera_sessions[consumer] = session
        self.camera_previews[consumer] = preview

        buttons = QHBoxLayout()
        start_btn = QPushButton("Start Camera")
        session.session_started.connect(lambda b=start_btn: b.setEnabled(False))
        session.session_stopped.connect(lambda b=start_btn: b.setEnabled(True))
        self.camera_start_buttons[consumer] = start_btn
        start_btn.clicked.connect(lambda _, c=consumer: self._start_camera(c))
        stop_btn = QPushButton("Stop")
        stop_btn.clicked.connect(lambda _, c=consumer: self._stop_camera(c))
        buttons.addWidget(start_btn)
        buttons.addWidget(stop_btn)
        buttons.addStretch(1)

        layout.addLayout(buttons)
        layout.addWidget(preview)
        container.setVisible(False)
        container.setObjectName(f"camera_{consumer.value}")
        return container

    def _scan_label(self, consumer: Consumer) -> QLabel:
        label = QLabel("Last scanned: -")
        self.scan_labels[consumer] = label
        return label

    def _build_product_box(self) -> QGroupBox:
        box = QGroupBox("New Product")
        form = QFormLayout(box)

        self.product_name = QLineEdit()
        self.product_category = QLineEdit()
        self.product_price = QLineEdit("0")
        self.product_barcode = QLineEdit()
        self.product_barcode.setPlaceholderText("Scan or enter barcode")

        form.addRow("Name", self.product_name)
        form.addRow("Category", self.product_category)
        form.addRow("Price", self.product_price)
        form.addRow(
            "Barcode mode",
            self._mode_box(Consumer.CREATE_BARCODE, tuple(ConsumerMode)),
        )
        form.addRow("Barcode", self.product_barcode)
        form.addRow(self._camera_row(Consumer.CREATE_BARCODE))
        form.addRow(self._scan_label(Consumer.CREATE_BARCODE))

        btn = QPushButton("Create Product")
        btn.clicked.connect(self.save_product)
        form.addRow(btn)
        return box

    def _build_search_box(self) -> QGroupBox:
        box = QGroupBox("Update Product")
        layout = QVBoxLayout(box)

        row = QHBoxLayout()
        self.product_search = QLineEdit()
        self.product_search.setPlaceholderText("Search by name or barcode")
        self.product_search.textChanged.connect(self.refresh_search_list)
        self.product_search.returnPressed.connect(self.search_by_typed_code)
        row.addWidget(self.product_search, 1)
        row.addWidget(self._mode_box(Consumer.PRODUCT_SEARCH, tuple(ConsumerMode)))
        layout.addLayout(row)
        layout.addWidget(self._camera_row(Consumer.PRODUCT_SEARCH))
        layout.addWidget(self._scan_label(Consumer.PRODUCT_SEARCH))

        self.search_status = QLabel()
        layout.addWidget(self.search_status)

        self.search_list = QListWidget()
        self.search_list.itemClicked.connect(
            lambda item: self._select_product(item.data(Qt.ItemDataRole.UserRole))
        )
        layout.addWidget(self.search_list, 1)
        return box

    def _build_stock_in_box(self) -> QGroupBox:
        box = QGroupBox("Stock In / Stock Out")
        form = QFormLayout(box)

        self.selected_label = QLabel("No product selected")
        form.addRow("Product", self.selected_label)

        self.manual_qty = QLineEdit()
        self.manual_qty.setPlaceholderText("Enter quantity to add")
        self.commit_btn = QPushButton("Add Stock")
        self.commit_btn.clicked.connect(self.commit_stock_in)
        form.addRow("Quantity", self.manual_qty)

        form.addRow(
            "Scan mode (Stock In)",
            self._mode_box(Consumer.STOCK_IN, (ConsumerMode.USB, ConsumerMode.CAMERA)),
        )
        accum_row = QHBoxLayout()
        self.pending_label = QLabel("0")
        reset_btn = QPushButton("Reset")
        reset_btn.clicked.connect(self.reset_stock_in)
        accum_row.addWidget(self.pending_label, 1)
        accum_row.addWidget(reset_btn)
        form.addRow("Scanned quantity", accum_row)
        self.mismatch_label = QLabel()
        self.mismatch_label.setStyleSheet("color: #901414;")
        form.addRow(self.mismatch_label)
        form.addRow(self._camera_row(Consumer.STOCK_IN))
        form.addRow(self._scan_label(Consumer.STOCK_IN))
        form.addRow(self.commit_btn)

        self.stock_out_qty = QLineEdit()
        self.stock_out_qty.setPlaceholderText("Enter quantity to remove")
        self.stock_out_reason = QComboBox()
        self.stock_out_reason.addItem("Select reason", None)
        for value, label in STOCK_OUT_REASONS.items():
            self.stock_out_reason.addItem(label, value)
        stock_out_btn = QPushButton("Remove Stock")
        stock_out_btn.clicked.connect(self.remove_stock)
        form.addRow("Quantity to remove", self.stock_out_qty)
        form.addRow("Reason", self.stock_out_reason)
        form.addRow(stock_out_btn)
        return box

    def _build_inventory_box(self) -> QGroupBox:
        box = QGroupBox("Inventory Monitor")
        layout = QVBoxLayout(box)

        row = QHBoxLayout()
        self.inventory_search = QLineEdit()
        self.inventory_search.setPlaceholderText("Search product or scan barcode")
        self.inventory_search.textChanged.connect(self._apply_inventory_filter)
        row.addWidget(self.inventory_search, 1)
        row.addWidget(self._mode_box(Consumer.INVENTORY_FILTER, tuple(ConsumerMode)))
        layout.addLayout(row)
        layout.addWidget(self._camera_row(Consumer.INVENTORY_FILTER))
        layout.addWidget(self._scan_label(Consumer.INVENTORY_FILTER))

        self.inventory_table = QTableWidget(0, 5)
        self.inventory_table.setHorizontalHeaderLabels(["Name", "Category", "Price", "Stock", "Barcode"])
        self.inventory_table.horizontalHeader().setStretchLastSection(True)
        self.inventory_table.setSortingEnabled(True)
        layout.addWidget(self.inventory_table)
        return box

    def _build_pos_scan_box(self) -> QGroupBox:
        box = QGroupBox("Barcode Scanner")
        layout = QVBoxLayout(box)
        row = QHBoxLayout()
        row.addWidget(QLabel("Scan mode"))
        row.addWidget(self._mode_box(Consumer.POS_CART, (ConsumerMode.USB, ConsumerMode.CAMERA)))
        row.addStretch(1)
        layout.addLayout(row)
        layout.addWidget(self._camera_row(Consumer.POS_CART))
        layout.addWidget(self._scan_label(Consumer.POS_CART))
        self.pos_status = QLabel()
        self.pos_status.setStyleSheet("color: #901414;")
        layout.addWidget(self.pos_status)
        return box

    def _build_cart_box(self) -> QGroupBox:
        box = QGroupBox("Cart")
        layout = QVBoxLayout(box)

        self.cart_table = QTableWidget(0, 5)
        self.cart_table.setHorizontalHeaderLabels(["Product", "Quantity", "Price", "Subtotal", ""])
        self.cart_table.horizontalHeader().setStretchLastSection(True)
        layout.addWidget(self.cart_table)

        row = QHBoxLayout()
        self.checkout_btn = QPushButton("Checkout")
        self.checkout_btn.clicked.connect(self.checkout_cart)
        clear_btn = QPushButton("Clear")
        clear_btn.clicked.connect(self.clear_cart)
        self.total_label = QLabel("Total: 0.00")
        row.addWidget(self.checkout_btn)
        row.addWidget(clear_btn)
        row.addWidget(self.total_label)
        layout.addLayout(row)
        return box

    # -- modes and cameras -----------------------------------------------

    def _on_mode_changed(self, consumer: Consumer) -> None:
        mode = self._mode_options[consumer][self.mode_boxes[consumer].currentIndex()]
        self.router.set_mode(consumer, mode)
        if mode is not ConsumerMode.CAMERA:
            self._stop_camera(consumer)
        camera_row = self.findChild(QWidget, f"camera_{consumer.value}")
        if camera_row is not None:
            camera_row.setVisible(mode is ConsumerMode.CAMERA)

    def _start_camera(self, consumer: Consumer) -> None:
        if self.router.mode(consumer) is not ConsumerMode.CAMERA:
            return
        # Inventory consumers share one physical camera.
        if consumer in INVENTORY_CONSUMERS:
            self._stop_all_cameras([c for c in INVENTORY_CONSUMERS if c is not consumer])
        self._stop_camera(consumer)
        handle = self.camera_sessions[consumer].start(self.camera_previews[consumer])
        if handle is not None:
            self.camera_handles[consumer] = handle

    def _stop_camera(self, consumer: Consumer) -> None:
        handle = self.camera_handles.pop(consumer, None)
        session = self.camera_sessions.get(consumer)
        if session is not None and handle is not None:
            session.stop(handle)

    def _stop_all_cameras(self, consumers=None) -> None:
        for consumer in consumers or list(self.camera_sessions):
            self._stop_camera(consumer)

    def switch_page(self, index: int) -> None:
        if index == INVENTORY_PAGE:
            self._stop_all_cameras([Consumer.POS_CART])
        else:
            self._stop_all_cameras(list(INVENTORY_CONSUMERS))

        self.page_stack.setCurrentIndex(index)
        for i, btn in enumerate(self.page_buttons):
            btn.setChecked(i == index)

    def closeEvent(self, event) -> None:
        self._stop_all_cameras()
        self.router.close()
        self.capture.release_all()
        super().closeEvent(event)

    # -- actions ---------------------------------------------------------

    def save_product(self) -> None:
        name = self.product_name.text().strip()
        category = self.product_category.text().strip()
        if not name or not category:
            self._warn("Name and category are required")
            return
        try:
            price = float(self.product_price.text().strip())
        except ValueError:
            self._warn("Price must be a number")
            return

        barcode = self._manual_code(self.product_barcode.text())
        if barcode and self.db.lookup_product_by_code(barcode):
            self._warn("A product with this barcode already exists")
            return

        product = self.db.upsert_product(
            Product(id=None, name=name, category=category, price=price, barcode=barcode or None)
        )
        logger.info("product created: %s (%s)", product.name, product.barcode or "no barcode")
        for field in (self.product_name, self.product_category, self.product_barcode):
            field.clear()
        self.product_price.setText("0")
        self._info(f"Product created: {product.name}")
        self.refresh_all()

    def search_by_typed_code(self) -> None:
        code = self._manual_code(self.product_search.text())
        if not code:
            return
        product = self.db.lookup_product_by_code(code)
        if product:
            self._select_product(product)

    def _manual_code(self, text: str) -> str:
        # Typed codes are stored as entered unless manual normalization is switched on.
        code = text.strip()
        return normalize_code(code) if NORMALIZE_MANUAL_ENTRY else code

    def _select_product(self, product: Product | None) -> None:
        self.accumulator.select_product(product)
        self.search_status.clear()
        if product is not None:
            self.product_search.blockSignals(True)
            self.product_search.setText(product.name)
            self.product_search.blockSignals(False)
            self.refresh_search_list()
        self.refresh_stock_in_panel()

    def commit_stock_in(self) -> None:
        try:
            self.accumulator.commit(self.manual_qty.text())
        except ValueError as exc:
            self._warn(str(exc))
            return
        self.manual_qty.clear()
        self.refresh_all()

    def reset_stock_in(self) -> None:
        self.accumulator.reset()
        self.refresh_stock_in_panel()

    def remove_stock(self) -> None:
        try:
            updated = self.stock_out.remove(
                self.accumulator.product,
                self.stock_out_qty.text(),
                self.stock_out_reason.currentData(),
            )
        except ValueError as exc:
            self._warn(str(exc))
            return
        self._info(f"Stock removed: {updated.name} has {updated.quantity} left")
        self.accumulator.select_product(updated)
        self.stock_out_qty.clear()
        self.stock_out_reason.setCurrentIndex(0)
        self.refresh_all()

    def checkout_cart(self) -> None:
        try:
            total = self.stock_out.checkout(self.cart)
        except ValueError as exc:
            self._warn(str(exc))
            return
        self._info(f"Checkout complete: {total:.2f}")
        self.refresh_all()

    def clear_cart(self) -> None:
        self.cart.clear()
        self.refresh_cart_table()

    def _on_cart_qty_changed(self, product_id: int, quantity: int) -> None:
        if self._updating_cart_table:
            return
        if not self.cart.set_quantity(product_id, quantity):
            available = self.db.get_product(product_id)
            on_hand = available.quantity if available else 0
            self._warn(f"Only {on_hand} items available in stock")
        self.refresh_cart_table()

    def _remove_cart_item(self, product_id: int) -> None:
        self.cart.remove(product_id)
        self.refresh_cart_table()

    # -- refresh ---------------------------------------------------------

    def refresh_all(self) -> None:
        if self.accumulator.product is not None and self.accumulator.product.id is not None:
            self.accumulator.select_product(self.db.get_product(self.accumulator.product.id))
        self.refresh_inventory_table()
        self.refresh_search_list()
        self.refresh_stock_in_panel()
        self.refresh_cart_table()

    def refresh_stock_in_panel(self) -> None:
        product = self.accumulator.product
        if product is None:
            self.selected_label.setText("No product selected")
        else:
            self.selected_label.setText(
                f"{product.name} ({product.barcode or 'no barcode'}) - {product.quantity} in stock"
            )
        self.pending_label.setText(str(self.accumulator.pending_count))
        self.mismatch_label.setText(self.accumulator.last_mismatch or "")

    def refresh_search_list(self) -> None:
        self.search_list.clear()
        for product in self.db.list_products(self.product_search.text()):
            item = QListWidgetItem(
                f"{product.name} - {product.category} - {product.quantity} in stock"
            )
            item.setData(Qt.ItemDataRole.UserRole, product)
            self.search_list.addItem(item)

    def refresh_inventory_table(self) -> None:
        products = self.db.list_products()
        self.inventory_table.setSortingEnabled(False)
        self.inventory_table.setRowCount(len(products))
        for r, product in enumerate(products):
            self.inventory_table.setItem(r, 0, QTableWidgetItem(product.name))
            self.inventory_table.setItem(r, 1, QTableWidgetItem(product.category))
            self.inventory_table.setItem(r, 2, QTableWidgetItem(f"{product.price:.2f}"))
            self.inventory_table.setItem(r, 3, QTableWidgetItem(str(product.quantity)))
            self.inventory_table.setItem(r, 4, QTableWidgetItem(product.barcode or "-"))
        self.inventory_table.setSortingEnabled(True)
        self._apply_inventory_filter(self.inventory_search.text())

    def _apply_inventory_filter(self, keyword: str) -> None:
        normalized = keyword.strip().lower()
        for r in range(self.inventory_table.rowCount()):
            values = [
                self.inventory_table.item(r, c).text() if self.inventory_table.item(r, c) else ""
                for c in (0, 1, 4)
            ]
            matched = not normalized or any(normalized in value.lower() for value in values)
            self.inventory_table.setRowHidden(r, not matched)

    def refresh_cart_table(self) -> None:
        lines = self.cart.lines()

        self._updating_cart_table = True
        try:
            self.cart_table.setRowCount(len(lines))
            for r, line in enumerate(lines):
                product_id = line.product.id
                self.cart_table.setItem(r, 0, QTableWidgetItem(line.product.name))
                self.cart_table.setItem(r, 2, QTableWidgetItem(f"{line.product.price:.2f}"))
                self.cart_table.setItem(r, 3, QTableWidgetItem(f"{line.subtotal:.2f}"))

                qty_spin = QSpinBox()
                qty_spin.setRange(0, 999999)
                qty_spin.setValue(line.quantity)
                qty_spin.valueChanged.connect(
                    lambda value, p=product_id: self._on_cart_qty_changed(p, value)
                )
                self.cart_table.setCellWidget(r, 1, qty_spin)

                remove_btn = QPushButton("Remove")
                remove_btn.clicked.connect(lambda _, p=product_id: self._remove_cart_item(p))
                self.cart_table.setCellWidget(r, 4, remove_btn)
        finally:
            self._updating_cart_table = False
        self.total_label.setText(f"Total: {self.cart.total:.2f}")

    def _warn(self, msg: str) -> None:
        QMessageBox.warning(self, "Notice", msg)

    def _info(self, msg: str) -> None:
        QMessageBox.information(self, "Notice", msg)
