"""
The library schema on PostgreSQL: generated keys come from RETURNING.
"""
import fluentdb as db
import pytest
from tests.fixtures.library import Author, AuthorsToBooks, Book

pytestmark = pytest.mark.postgres


def test_save_uses_returning(pg_conn):
    seen = []
    pg_conn.set_logger(seen.append)
    author = Author('Ursula K. Le Guin', attributes={'born': '1929'})
    assert pg_conn.save(author) == 1
    assert any(sql.endswith('RETURNING "id"') for sql in seen)
    assert pg_conn.get_record(Author).load(1) == author


def test_savepoints(pg_conn):
    books = pg_conn['books']
    pg_conn.begin()
    books.insert({'title': 'Dune', 'price': 9})
    pg_conn.begin()
    books.insert({'title': 'Emma', 'price': 5})
    pg_conn.rollback()
    pg_conn.commit()
    assert db.select_column(pg_conn, 'SELECT title FROM books') == ['Dune']


def test_insert_ignore(pg_conn):
    books = pg_conn['books']
    assert books.apply({'title': 'Dune', 'price': 9}) == 1
    assert books.apply({'title': 'Dune', 'price': 9}) == 0


def test_percent_with_parameters(pg_conn):
    pg_conn['books'].insert({'title': 'Dune', 'price': 9})
    count = pg_conn.query("SELECT COUNT(*) FROM books WHERE title LIKE 'D%' AND price > %(p)s",
                          {'p': 1}).fetch_scalar()
    assert count == 1


def test_dates_and_math(pg_conn):
    strategy = pg_conn.strategy
    tomorrow = db.DateTime.today().add_days(1).is_greater(db.DateTime.today())
    assert db.select_scalar(pg_conn, 'SELECT ' + tomorrow.render(strategy)) is True
    value = db.select_scalar(pg_conn, 'SELECT ' + db.Numeric.pi().round(2).render(strategy))
    assert float(value) == 3.14


def test_junction(pg_conn):
    author = Author('Frank Herbert')
    book = Book('Dune', 9.0)
    pg_conn.save(author)
    pg_conn.save(book)
    links = pg_conn.get_junction(AuthorsToBooks)
    assert links.link({'author': author.id, 'book': book.id}) == 1
    assert links.link({'author': author.id, 'book': book.id}) == 0
    assert links.get_collection('book', {'author': author.id}).get_all() == [book]


def test_unique_key_constraint(pg_conn):
    schema = pg_conn.get_schema()
    schema.add_unique_key_constraint('authors', ['name'])
    authors = pg_conn['authors']
    assert authors.apply({'name': 'A'}) == 1
    assert authors.apply({'name': 'A'}) == 0
    schema.drop_unique_key_constraint('authors', ['name'])
    assert authors.apply({'name': 'A'}) == 1
