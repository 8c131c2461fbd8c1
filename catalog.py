SEARCH_FIELDS = ('title', 'author', 'isbn', 'category')


def matches(book, query):
    """True when the lowercased query is a substring of any searchable field."""
    for field in SEARCH_FIELDS:
        value = getattr(book, field, None)
        if value and query in value.lower():
            return True
    return False


def filter_books(books, query):
    """Filter the catalog the way the search box does.

    A blank or whitespace-only query returns ``books`` unchanged; anything
    else keeps the books where the query, case-insensitively, appears in the
    title, author, ISBN or category.
    """
    if not query or not query.strip():
        return books
    needle = query.lower()
    return [book for book in books if matches(book, needle)]
