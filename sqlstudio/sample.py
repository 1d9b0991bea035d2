"""
Sample Database

Backs the special sqlite target "preview": a small shop schema with
users, products and orders, so the studio can be tried without a database
at hand.
"""

import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

SAMPLE_FILE = "sample.db"

SAMPLE_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE products (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    price REAL NOT NULL,
    stock INTEGER NOT NULL DEFAULT 0,
    image BLOB
);

CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id),
    product_id INTEGER NOT NULL REFERENCES products(id),
    quantity INTEGER NOT NULL,
    ordered_at TEXT NOT NULL
);

CREATE INDEX idx_orders_user ON orders(user_id);
CREATE INDEX idx_orders_product ON orders(product_id);

CREATE VIEW order_totals AS
SELECT o.id, u.name AS customer, p.name AS product, o.quantity * p.price AS total
FROM orders o
JOIN users u ON u.id = o.user_id
JOIN products p ON p.id = o.product_id;

CREATE TRIGGER orders_reduce_stock AFTER INSERT ON orders
BEGIN
    UPDATE products SET stock = stock - NEW.quantity WHERE id = NEW.product_id;
END;

INSERT INTO users (id, name, email) VALUES
    (1, 'Ada Lovelace', 'ada@example.com'),
    (2, 'Alan Turing', 'alan@example.com'),
    (3, 'Grace Hopper', 'grace@example.com'),
    (4, 'Edsger Dijkstra', 'edsger@example.com');

INSERT INTO products (id, name, price, stock, image) VALUES
    (1, 'Keyboard', 49.90, 120, X'89504E47'),
    (2, 'Mouse', 19.50, 300, NULL),
    (3, 'Monitor', 219.00, 40, NULL);

INSERT INTO orders (user_id, product_id, quantity, ordered_at) VALUES
    (1, 1, 1, '2024-01-03 10:15:00'),
    (1, 2, 2, '2024-01-03 10:15:00'),
    (2, 3, 1, '2024-02-11 16:40:00'),
    (3, 1, 3, '2024-02-20 09:05:00'),
    (4, 2, 1, '2024-03-01 12:00:00'),
    (4, 3, 2, '2024-03-02 18:30:00');
"""


def create_sample_database(path: Union[str, Path]) -> Path:
    """Write a fresh sample database to path, replacing any existing file."""
    path = Path(path)
    if path.exists():
        path.unlink()

    conn = sqlite3.connect(path)
    try:
        conn.executescript(SAMPLE_SCHEMA)
        conn.commit()
    finally:
        conn.close()

    logger.info(f"Sample database written to {path}")
    return path


def ensure_sample_database(directory: Optional[Union[str, Path]] = None) -> Path:
    """Path of the sample database in directory (default: cwd), created if missing."""
    path = Path(directory or os.getcwd()) / SAMPLE_FILE
    if path.is_file():
        return path
    return create_sample_database(path)
