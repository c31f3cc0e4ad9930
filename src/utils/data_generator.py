# ========================
# src/utils/data_generator.py
# ========================

"""
Sample Data Generator

Generates batches of sales CSV files for demonstrating and load-testing the
merge engine. Files in a batch can deliberately diverge from each other's
column layout so schema reconciliation is exercised.
"""

import csv
import random
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

BASE_COLUMNS = [
    'order_id', 'product_name', 'category', 'quantity', 'unit_price',
    'discount_percent', 'region', 'sale_date', 'customer_email'
]

# Extra columns some exports carry; they are not part of the base layout
EXTRA_COLUMNS = ['sales_rep', 'channel']


class DataGenerator:
    """
    Data generator for creating realistic CSV inputs.
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator.

        Args:
            seed (int): Random seed for reproducible data generation
        """
        self.random = random.Random(seed)
        self._initialize_data_patterns()
        logger.info(f"DataGenerator initialized with seed: {seed}")

    def _initialize_data_patterns(self) -> None:
        """Initialize product catalog and value pools."""
        self.products = [
            {"name": "Laptop Pro 15", "category": "Electronics", "base_price": 1200},
            {"name": "Smartphone X", "category": "Electronics", "base_price": 800},
            {"name": "Wireless Headphones", "category": "Electronics", "base_price": 150},
            {"name": "4K LED TV", "category": "Home Appliance", "base_price": 2000},
            {"name": "Blender Pro", "category": "Home Appliance", "base_price": 80},
            {"name": "Coffee Maker Elite", "category": "Home Appliance", "base_price": 120},
            {"name": "Men's T-shirt, Blue", "category": "Fashion", "base_price": 25},
            {"name": "Running Shoes", "category": "Fashion", "base_price": 95},
        ]
        self.regions = ["North", "South", "East", "West"]
        self.customers = ["user1@example.com", "buyer@email.com", "shopper@domain.com", ""]
        self.sales_reps = ["A. Rao", "B. Chen", "C. Okafor"]
        self.channels = ["online", "store", "partner"]

    def column_layout(self, file_index: int, drift: bool = True) -> List[str]:
        """
        Column layout of the ``file_index``-th file of a batch.

        The first file always uses the base layout. With ``drift`` enabled,
        later files rotate through: an extra column, a missing column, and a
        reordered layout.
        """
        columns = list(BASE_COLUMNS)
        if not drift or file_index == 0:
            return columns

        variant = file_index % 3
        if variant == 1:
            return columns + [EXTRA_COLUMNS[file_index % len(EXTRA_COLUMNS)]]
        if variant == 2:
            return [column for column in columns if column != 'customer_email']
        return list(reversed(columns))

    def generate_dataset(self,
                         file_path: str,
                         num_rows: int,
                         columns: Optional[List[str]] = None,
                         blank_rate: float = 0.05,
                         start_date: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Generate one CSV file.

        Args:
            file_path (str): Output CSV file path
            num_rows (int): Number of rows to generate
            columns (list): Column layout, defaults to the base layout
            blank_rate (float): Fraction of cells left empty
            start_date (datetime): Start date for the sale date range

        Returns:
            dict: Generation statistics
        """
        columns = columns or list(BASE_COLUMNS)
        if start_date is None:
            start_date = datetime(2024, 1, 1)

        logger.info(f"Generating {num_rows:,} rows into {file_path}...")
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

        blank_cells = 0
        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(columns)

            for i in range(num_rows):
                record = self._generate_single_record(i, start_date)
                row = []
                for column in columns:
                    value = record[column]
                    if column != 'order_id' and self.random.random() < blank_rate:
                        value = ''
                    if value == '':
                        blank_cells += 1
                    row.append(value)
                writer.writerow(row)

                if (i + 1) % 100000 == 0:
                    logger.debug(f"Generated {i + 1:,} records")

        stats = {
            'file_path': str(file_path),
            'total_rows': num_rows,
            'columns': columns,
            'blank_cells': blank_cells,
            'file_size': Path(file_path).stat().st_size,
        }
        logger.info(f"Dataset generated: {file_path} ({stats['file_size']:,} bytes)")
        return stats

    def generate_file_batch(self,
                            output_dir: str,
                            num_files: int,
                            rows_per_file: int,
                            drift: bool = True,
                            prefix: str = "sales_part") -> List[Dict[str, Any]]:
        """
        Generate ``num_files`` CSV files meant to be merged together.

        Returns:
            list[dict]: Generation statistics of each file, in file order
        """
        logger.info(f"Generating {num_files} files of {rows_per_file:,} rows in {output_dir}")
        batch = []
        for index in range(num_files):
            file_path = Path(output_dir) / f"{prefix}_{index + 1:02d}.csv"
            batch.append(self.generate_dataset(
                str(file_path),
                rows_per_file,
                columns=self.column_layout(index, drift=drift),
            ))
        return batch

    def _generate_single_record(self, index: int, start_date: datetime) -> Dict[str, Any]:
        """Generate a single record covering every known column."""
        product = self.random.choice(self.products)
        quantity = self.random.randint(1, 20)
        unit_price = round(product["base_price"] * self.random.uniform(0.8, 1.2), 2)
        sale_date = start_date + timedelta(days=self.random.randint(0, 365))

        return {
            'order_id': f"ORD-{index:08d}",
            'product_name': product["name"],
            'category': product["category"],
            'quantity': quantity,
            'unit_price': unit_price,
            'discount_percent': round(self.random.uniform(0.0, 0.3), 2),
            'region': self.random.choice(self.regions),
            'sale_date': sale_date.strftime("%Y-%m-%d"),
            'customer_email': self.random.choice(self.customers),
            'sales_rep': self.random.choice(self.sales_reps),
            'channel': self.random.choice(self.channels),
        }
