"""
A small library schema: authors with sidecar attributes, books, and the
authors/books junction, plus the entity classes mapped onto them.
"""
from dataclasses import dataclass, field

import fluentdb as db
import pytest
from fluentdb import ColumnType, Schema


@db.record('authors', eav={'attributes': 'authors_eav'})
@dataclass
class Author:
    name: str
    id: int = 0
    attributes: dict = field(default_factory=dict)


@db.record('books')
@dataclass
class Book:
    title: str
    price: float = 0.0
    id: int = 0


@db.junction('authors_to_books', author=Author, book=Book)
class AuthorsToBooks:
    pass


def create_library(schema):
    schema.create_table('authors', {
        'id': ColumnType.AUTOINCREMENT,
        'name': ColumnType.STRING,
        })
    schema.create_table('authors_eav', {
        'entity': ColumnType.INTEGER,
        'attribute': ColumnType.STRING,
        'value': ColumnType.STRING_NULLABLE,
        }, {
        Schema.PRIMARY: ['entity', 'attribute'],
        Schema.FOREIGN: {'entity': schema['authors']['id']},
        })
    schema.create_table('books', {
        'id': ColumnType.AUTOINCREMENT,
        'title': ColumnType.STRING | ColumnType.UNIQUE,
        'price': ColumnType.FLOAT,
        })
    schema.create_table('authors_to_books', {
        'author': ColumnType.INTEGER,
        'book': ColumnType.INTEGER,
        }, {
        Schema.PRIMARY: ['author', 'book'],
        'author': schema['authors']['id'],
        'book': schema['books']['id'],
        })


@pytest.fixture
def library_conn():
    """In-memory SQLite connection holding the library schema."""
    cn = db.connect({'drivername': 'sqlite', 'database': ':memory:'})
    create_library(cn.get_schema())
    yield cn
    cn.close()
