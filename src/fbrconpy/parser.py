"""
Provides utility functions for parsing the words returned by
a Frostbite server into Python objects.
"""
from typing import Sequence

from .errors import MalformedResponse

VARS_PREFIX = "vars."


def _parse_count(words: Sequence[str], index: int, what: str) -> int:
    try:
        count = int(words[index])
    except IndexError:
        raise MalformedResponse(f"response ended before the {what}") from None
    except ValueError:
        raise MalformedResponse(
            f"expected the {what} at word {index}, got {words[index]!r}"
        ) from None

    if count < 0:
        raise MalformedResponse(f"{what} cannot be negative, got {count}")
    return count


def tabulate(
    words: Sequence[str],
    columns: int | None = None,
) -> list[dict[str, str]]:
    """Converts a row-oriented response into a list of mappings,
    one per row, keyed by the column names.

    Without ``columns``, the words are expected in the form servers use
    for player lists, where the column names are preceded by their count
    and the values are preceded by the number of rows::

        >>> tabulate(["2", "name", "score", "1", "Alice", "10"])
        [{'name': 'Alice', 'score': '10'}]

    With ``columns``, the words are simply the column names followed by
    the values of every row::

        >>> tabulate(["name", "score", "Alice", "10", "Bob", "20"], columns=2)
        [{'name': 'Alice', 'score': '10'}, {'name': 'Bob', 'score': '20'}]

    :param words: The words of the response, without its status word.
    :param columns: The number of columns, if not given in the response.
    :returns: A list of rows mapping each column name to its value.
    :raises MalformedResponse:
        The number of values cannot be split into rows of equal width,
        or a count in the response does not match its contents.

    """
    expected_rows = None
    if columns is None:
        columns = _parse_count(words, 0, "column count")
        names = words[1 : columns + 1]
        if len(names) != columns:
            raise MalformedResponse(
                f"expected {columns} column name(s), got {len(names)}"
            )
        expected_rows = _parse_count(words, columns + 1, "row count")
        values = words[columns + 2 :]
    else:
        if columns < 1:
            raise ValueError(f"columns must be 1 or higher, not {columns!r}")
        names = words[:columns]
        if len(names) != columns:
            raise MalformedResponse(
                f"expected {columns} column name(s), got {len(names)}"
            )
        values = words[columns:]

    if columns == 0:
        if values or expected_rows:
            raise MalformedResponse("response has rows but no columns")
        return []

    n_rows, remainder = divmod(len(values), columns)
    if remainder:
        raise MalformedResponse(
            f"{len(values)} value(s) cannot be split into rows of {columns} column(s)"
        )
    elif expected_rows is not None and n_rows != expected_rows:
        raise MalformedResponse(
            f"response declared {expected_rows} row(s) but contains {n_rows}"
        )

    return [
        dict(zip(names, values[i : i + columns]))
        for i in range(0, len(values), columns)
    ]


def parse_bool(words: Sequence[str]) -> bool:
    """Parses the first word of a response as a boolean variable.

    :raises MalformedResponse: The response is empty.

    """
    if not words:
        raise MalformedResponse("expected a boolean but the response was empty")
    return words[0] == "true"


def split_vars(commands: Sequence[str]) -> list[str]:
    """Returns the commands that correspond to server variables,
    e.g. ``vars.serverName``.
    """
    return [c for c in commands if c.startswith(VARS_PREFIX)]
