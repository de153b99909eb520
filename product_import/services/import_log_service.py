"""
Import Log Service - Reports the outcome of every imported product.

ProductImportLogger receives each product after its batch has been processed,
counts ok and failed products, and writes one line per product error to the
output stream (the console for CLI runs). Exceptions that stopped an import
are reported through handle_exception().
"""

import logging
import sys
from typing import Optional, TextIO

from ..models.product import Product

logger = logging.getLogger(__name__)


class ProductImportLogger:
    """
    Console reporter for an import run.

    Attributes:
        ok_product_count: Products imported without errors
        failed_product_count: Products with at least one error
        exception_occurred: True once handle_exception() was called
    """

    def __init__(self, output: Optional[TextIO] = None):
        self.output = output if output is not None else sys.stdout
        self.ok_product_count = 0
        self.failed_product_count = 0
        self.exception_occurred = False

    def product_imported(self, product: Product) -> None:
        """Count the product and report its errors, if any."""
        if product.is_ok():
            self.ok_product_count += 1
            return

        self.failed_product_count += 1
        for error in product.get_errors():
            self._write(f"{error} for product '{product.sku}' that starts in line {product.line_number}")

    def handle_exception(self, exception: Exception) -> None:
        """Report an exception that aborted the import."""
        self.exception_occurred = True
        logger.error(f"Import aborted: {exception}")
        self._write(f"ERROR: {exception}")

    def info(self, message: str) -> None:
        self._write(message)

    def get_summary(self) -> str:
        """One line summary of the run."""
        return f"{self.ok_product_count} products imported, {self.failed_product_count} failed"

    def _write(self, line: str) -> None:
        self.output.write(line + "\n")
